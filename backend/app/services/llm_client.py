"""
LLM Client - Abstraction layer for chat completion providers (OpenAI, Ollama).

Supports the OpenAI-compatible API (/v1/chat/completions) and the Ollama
native API (/api/chat). The provider can be switched via the LLM_PROVIDER
environment variable.
"""
from typing import List, Dict, Optional
import httpx

from app.core.config import settings


class LLMClient:
    """
    Unified LLM client supporting multiple providers.

    Supported providers:
    - openai: OpenAI or any OpenAI-compatible server (vLLM, LiteLLM, ...)
    - ollama: Local Ollama server using native API (/api/chat)
    """

    def __init__(
        self,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = (api_base or settings.LLM_API_BASE).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.LLM_API_KEY
        self.model = model or settings.LLM_MODEL
        self.provider = provider or settings.LLM_PROVIDER
        self.timeout = timeout or settings.LLM_TIMEOUT
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def chat(
        self,
        messages: List[Dict],
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> str:
        """
        Send chat completion request and return the response content.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            temperature: Sampling temperature (0.0 - 1.0)
            max_tokens: Maximum tokens to generate
            json_mode: Ask the provider to emit a single JSON object

        Returns:
            The assistant's response content as a string

        Raises:
            httpx.HTTPError: On transport failures and non-2xx responses
        """
        # Use provided max_tokens or fall back to instance default
        tokens_limit = max_tokens or self.max_tokens

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            if self.provider == "ollama":
                # Ollama native API
                payload = {
                    "model": self.model,
                    "messages": messages,
                    "stream": False,
                    "options": {
                        "temperature": temperature,
                        "num_predict": tokens_limit,
                    },
                }
                if json_mode:
                    payload["format"] = "json"
                resp = await client.post(f"{self.api_base}/api/chat", json=payload)
                resp.raise_for_status()
                data = resp.json()
                return data["message"]["content"]
            else:
                # OpenAI-compatible API
                payload = {
                    "model": self.model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": tokens_limit,
                    "stream": False,
                }
                if json_mode:
                    payload["response_format"] = {"type": "json_object"}
                resp = await client.post(
                    f"{self.api_base}/v1/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
                resp.raise_for_status()
                data = resp.json()
                return data["choices"][0]["message"]["content"] or ""

    async def health_check(self) -> Dict:
        """
        Check if the LLM server is reachable and responsive.

        Returns:
            Dict with 'status', 'provider', 'model', and optional 'error' keys
        """
        result = {"provider": self.provider, "model": self.model, "api_base": self.api_base}
        if self.provider == "ollama":
            url, headers = f"{self.api_base}/api/tags", {}
        else:
            url, headers = f"{self.api_base}/v1/models", self._headers()

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                resp = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            return {**result, "status": "unreachable", "error": str(e)}

        if resp.status_code != 200:
            return {**result, "status": "unhealthy", "error": f"HTTP {resp.status_code}"}
        return {**result, "status": "healthy"}


# Default client instance
_default_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get the default LLM client instance (singleton)."""
    global _default_client
    if _default_client is None:
        _default_client = LLMClient()
    return _default_client
