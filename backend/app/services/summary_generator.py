"""
Structured summary generation.

Turns a raw transcript into an overview plus 4-6 timestamped sections
using the configured chat completion service.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.exceptions import AIServiceError
from app.schemas.summary import StructuredSummary, SummarySection
from app.services.json_parser import parse_llm_json
from app.services.llm_client import LLMClient, get_llm_client

logger = logging.getLogger(__name__)

FALLBACK_OVERALL_SUMMARY = "Summary not available."
FALLBACK_SECTION_TITLE = "Content Overview"
TRUNCATION_MARKER = "..."

# [00:01:23]
_TIMESTAMP_MARKER = re.compile(r"\[\d{2}:\d{2}:\d{2}\]")
# "Speaker 1:", "John:", "Dr. Smith:" at the start of a line
_SPEAKER_PREFIX = re.compile(
    r"^[ \t]*[A-Z][\w'.-]*(?:[ \t]+[\w'.-]+){0,2}[ \t]*:[ \t]*", re.MULTILINE
)
_WHITESPACE = re.compile(r"\s+")

SYSTEM_PROMPT = (
    "You are a helpful assistant that creates structured summaries of YouTube "
    "video transcripts. You break down the content into logical sections with "
    "timestamps and provide concise summaries for each section."
)

USER_PROMPT_TEMPLATE = """Analyze the following YouTube video transcript and create a structured summary with the following components:

1. An overall summary of the entire video (100 words or less)
2. 4-6 logical sections based on the content, each with:
   - A short, descriptive title for the section
   - A concise summary of that section (30-50 words)
   - An approximate timestamp (in MM:SS format) where that section ends

Format your response as valid JSON with this structure:
{{
  "overallSummary": "The overall summary text...",
  "sections": [
    {{
      "title": "Section Title",
      "content": "Section summary text...",
      "timestamp": "MM:SS"
    }}
  ]
}}

Here is the transcript:
{transcript}

Ensure your response is a single valid JSON object that can be parsed directly."""


def preprocess_transcript(transcript: str, max_chars: Optional[int] = None) -> str:
    """
    Prepare a transcript for summarization.

    Removes [HH:MM:SS] markers and speaker labels, collapses whitespace and
    keeps at most ``max_chars`` characters from the start of the text.
    """
    max_chars = max_chars or settings.TRANSCRIPT_MAX_CHARS

    processed = _TIMESTAMP_MARKER.sub("", transcript or "")
    processed = _SPEAKER_PREFIX.sub("", processed)
    processed = _WHITESPACE.sub(" ", processed).strip()

    if len(processed) > max_chars:
        processed = processed[:max_chars] + TRUNCATION_MARKER

    return processed


def build_summary_messages(processed_transcript: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": USER_PROMPT_TEMPLATE.format(transcript=processed_transcript),
        },
    ]


def normalize_summary(data: Any) -> StructuredSummary:
    """
    Apply the structural fallbacks to a decoded model response.

    An empty overview becomes a placeholder and a missing or empty section
    list becomes a single overview section. Section objects themselves are
    kept as returned.
    """
    if not isinstance(data, dict):
        raise AIServiceError()

    overall = data.get("overallSummary")
    if not isinstance(overall, str) or not overall.strip():
        overall = FALLBACK_OVERALL_SUMMARY

    sections = data.get("sections")
    if not isinstance(sections, list) or not sections:
        sections = [
            SummarySection(
                title=FALLBACK_SECTION_TITLE,
                content=overall,
                timestamp="00:00",
            ).model_dump()
        ]

    return StructuredSummary(overallSummary=overall, sections=sections)


class SummaryGenerator:
    """Generates structured summaries through an LLM client."""

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        max_chars: Optional[int] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.llm_client = llm_client or get_llm_client()
        self.max_chars = max_chars or settings.TRANSCRIPT_MAX_CHARS
        self.max_tokens = max_tokens or settings.SUMMARY_MAX_TOKENS
        self.temperature = (
            temperature if temperature is not None else settings.SUMMARY_TEMPERATURE
        )

    async def generate(self, transcript: str) -> StructuredSummary:
        """
        Generate a structured summary of a transcript.

        Args:
            transcript: Raw transcript text

        Returns:
            StructuredSummary with at least one section

        Raises:
            AIServiceError: On any failure (request, parsing, validation)
        """
        processed = preprocess_transcript(transcript, self.max_chars)
        logger.info(f"Processed transcript length: {len(processed)} characters")

        try:
            raw = await self.llm_client.chat(
                build_summary_messages(processed),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                json_mode=True,
            )
            return normalize_summary(parse_llm_json(raw.strip() if raw else ""))
        except AIServiceError:
            logger.error("LLM returned an unusable summary response")
            raise
        except Exception as e:
            logger.error(f"Summary generation failed: {type(e).__name__}: {e}")
            raise AIServiceError(cause=e)


_default_generator: Optional[SummaryGenerator] = None


def get_summary_generator() -> SummaryGenerator:
    """Get the default summary generator instance (singleton)."""
    global _default_generator
    if _default_generator is None:
        _default_generator = SummaryGenerator()
    return _default_generator
