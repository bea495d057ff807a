"""
Transcript provider adapter around youtube-transcript-api.

The provider performs exactly one retrieval per call, driven by
``TranscriptOptions``; choosing which options to try and in which order is
the job of the transcript source chain.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional

from youtube_transcript_api import YouTubeTranscriptApi
from youtube_transcript_api.proxies import GenericProxyConfig

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptOptions:
    """
    Retrieval options for one provider call.

    Attributes:
        lang: Language code to request; None means provider defaults
        auto: Request an auto-generated (ASR) track instead of a human one
        captions: Accept a caption track in any language, not just ``lang``
    """

    lang: Optional[str] = None
    auto: bool = False
    captions: bool = False


class TranscriptNotOffered(LookupError):
    """The video has no track matching the requested options."""


class TranscriptProvider(ABC):
    @abstractmethod
    def fetch_segments(self, video_id: str, options: TranscriptOptions) -> List[str]:
        """Return the ordered text segments of one transcript track."""
        ...


class YouTubeTranscriptProvider(TranscriptProvider):
    """Blocking provider; run it in an executor from async code."""

    def __init__(
        self,
        api: Optional[YouTubeTranscriptApi] = None,
        proxy_url: Optional[str] = None,
    ):
        if api is None:
            proxy_url = proxy_url or settings.TRANSCRIPT_PROXY_URL
            proxy_config = (
                GenericProxyConfig(http_url=proxy_url, https_url=proxy_url)
                if proxy_url
                else None
            )
            api = YouTubeTranscriptApi(proxy_config=proxy_config)
        self._api = api

    def fetch_segments(self, video_id: str, options: TranscriptOptions) -> List[str]:
        if options.lang is None:
            # Provider default: English if available, whatever kind it is
            fetched = self._api.fetch(video_id)
        else:
            listing = self._api.list(video_id)
            transcript = self._select(listing, options)
            logger.debug(
                f"Selected {transcript.language_code} "
                f"({'generated' if transcript.is_generated else 'manual'}) track for {video_id}"
            )
            fetched = transcript.fetch()

        return _snippet_texts(fetched)

    @staticmethod
    def _select(listing, options: TranscriptOptions):
        if not options.captions:
            if options.auto:
                return listing.find_generated_transcript([options.lang])
            return listing.find_manually_created_transcript([options.lang])

        # Caption tiers take any language, preferring the requested one
        candidates = [t for t in listing if t.is_generated == options.auto]
        if not candidates:
            kind = "auto-generated" if options.auto else "manual"
            raise TranscriptNotOffered(f"No {kind} caption track")
        candidates.sort(key=lambda t: t.language_code != options.lang)
        return candidates[0]


def _snippet_texts(fetched: Iterable) -> List[str]:
    texts = []
    for snippet in fetched:
        text = snippet["text"] if isinstance(snippet, dict) else snippet.text
        texts.append(text)
    return texts
