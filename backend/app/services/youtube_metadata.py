"""
YouTube Data API client for video metadata.
"""
import logging
from typing import Optional

import httpx

from app.core.config import settings
from app.core.exceptions import VideoMetadataUnavailableError, VideoNotFoundError

logger = logging.getLogger(__name__)


class YouTubeMetadataClient:
    """Looks up video titles through the YouTube Data API v3."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.YOUTUBE_API_KEY
        self.api_base = (api_base or settings.YOUTUBE_API_BASE).rstrip("/")
        self.timeout = timeout or settings.YOUTUBE_API_TIMEOUT
        self._transport = transport

    async def fetch_title(self, video_id: str) -> str:
        """
        Fetch the title of a video.

        Args:
            video_id: YouTube video ID

        Returns:
            The video title

        Raises:
            VideoMetadataUnavailableError: If the API is unreachable or answers non-2xx
            VideoNotFoundError: If the API knows no video with this ID
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.get(
                    f"{self.api_base}/videos",
                    params={"part": "snippet", "id": video_id, "key": self.api_key},
                )
        except httpx.HTTPError as e:
            logger.error(f"YouTube API request failed for {video_id}: {e}")
            raise VideoMetadataUnavailableError(cause=e)

        if not resp.is_success:
            logger.error(
                f"YouTube API error for {video_id}: HTTP {resp.status_code} {resp.text[:200]}"
            )
            raise VideoMetadataUnavailableError()

        try:
            data = resp.json()
        except ValueError as e:
            logger.error(f"YouTube API returned invalid JSON for {video_id}")
            raise VideoMetadataUnavailableError(cause=e)

        items = data.get("items") or []
        if not items:
            logger.info(f"YouTube API has no video {video_id}")
            raise VideoNotFoundError()

        return items[0].get("snippet", {}).get("title", "")
