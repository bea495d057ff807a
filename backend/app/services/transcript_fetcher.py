"""
Transcript acquisition with source-tier fallback.

This module handles:
- Resolving the video title through the YouTube Data API
- Trying transcript strategies in a fixed preference order
- Tagging the winning transcript with the tier it came from
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from app.core.config import settings
from app.core.exceptions import TranscriptUnavailableError
from app.services.transcript_provider import (
    TranscriptOptions,
    TranscriptProvider,
    YouTubeTranscriptProvider,
)
from app.services.youtube_metadata import YouTubeMetadataClient

logger = logging.getLogger(__name__)

# Thread pool for blocking transcript requests
_executor = ThreadPoolExecutor(max_workers=4)


class TranscriptSourceKind(str, Enum):
    """Transcript provenance, declared from most to least preferred."""

    OFFICIAL = "Official transcript"
    AUTO_GENERATED = "Auto-generated transcript"
    MANUAL_CAPTIONS = "Manual captions"
    AUTO_CAPTIONS = "Auto-generated captions"
    UNKNOWN = "Unknown source"


@dataclass(frozen=True)
class TranscriptStrategy:
    kind: TranscriptSourceKind
    options: TranscriptOptions


@dataclass(frozen=True)
class TranscriptResult:
    text: str
    video_title: str
    source_kind: TranscriptSourceKind


def default_strategies(lang: Optional[str] = None) -> list[TranscriptStrategy]:
    """Build the strategy list in preference order for a language."""
    lang = lang or settings.TRANSCRIPT_LANGUAGE
    options = {
        TranscriptSourceKind.OFFICIAL: TranscriptOptions(lang=lang),
        TranscriptSourceKind.AUTO_GENERATED: TranscriptOptions(lang=lang, auto=True),
        TranscriptSourceKind.MANUAL_CAPTIONS: TranscriptOptions(lang=lang, captions=True),
        TranscriptSourceKind.AUTO_CAPTIONS: TranscriptOptions(
            lang=lang, auto=True, captions=True
        ),
        # Last resort: let the provider pick
        TranscriptSourceKind.UNKNOWN: TranscriptOptions(),
    }
    return [TranscriptStrategy(kind, options[kind]) for kind in TranscriptSourceKind]


class TranscriptSourceChain:
    """
    Obtains a usable transcript for a video.

    Strategies are attempted strictly in order; the first one that yields
    non-empty text wins and no further strategies are tried. A failing
    strategy is never fatal on its own, only exhaustion of the list is.
    """

    def __init__(
        self,
        metadata_client: Optional[YouTubeMetadataClient] = None,
        provider: Optional[TranscriptProvider] = None,
        strategies: Optional[Sequence[TranscriptStrategy]] = None,
    ):
        self.metadata_client = metadata_client or YouTubeMetadataClient()
        self.provider = provider or YouTubeTranscriptProvider()
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    async def fetch(self, video_id: str) -> TranscriptResult:
        """
        Fetch the title and the best available transcript of a video.

        Args:
            video_id: YouTube video ID

        Returns:
            TranscriptResult with non-empty text

        Raises:
            VideoMetadataUnavailableError: If the metadata lookup fails
            VideoNotFoundError: If the video does not exist
            TranscriptUnavailableError: If every strategy failed
        """
        video_title = await self.metadata_client.fetch_title(video_id)

        loop = asyncio.get_running_loop()
        last_error: Optional[BaseException] = None

        for strategy in self.strategies:
            logger.info(f"Attempting transcript source '{strategy.kind.value}' for {video_id}")
            try:
                segments = await loop.run_in_executor(
                    _executor, self.provider.fetch_segments, video_id, strategy.options
                )
            except Exception as e:
                logger.warning(
                    f"Transcript source '{strategy.kind.value}' failed for {video_id}: "
                    f"{type(e).__name__}: {e}"
                )
                last_error = e
                continue

            text = " ".join(s.strip() for s in segments or [] if s and s.strip())
            if text:
                logger.info(
                    f"Fetched transcript for {video_id} from '{strategy.kind.value}' "
                    f"({len(text)} chars)"
                )
                return TranscriptResult(
                    text=text,
                    video_title=video_title,
                    source_kind=strategy.kind,
                )

            logger.info(f"Transcript source '{strategy.kind.value}' returned no text for {video_id}")

        logger.error(f"All transcript sources failed for {video_id}: {last_error!r}")
        raise TranscriptUnavailableError(cause=last_error)


_default_chain: Optional[TranscriptSourceChain] = None


def get_transcript_chain() -> TranscriptSourceChain:
    """Get the default transcript chain instance (singleton)."""
    global _default_chain
    if _default_chain is None:
        _default_chain = TranscriptSourceChain()
    return _default_chain
