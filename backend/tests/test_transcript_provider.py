"""
Tests for the youtube-transcript-api provider adapter.
"""
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from app.services.transcript_provider import (
    TranscriptNotOffered,
    TranscriptOptions,
    YouTubeTranscriptProvider,
)


def _track(language_code: str, is_generated: bool, texts):
    track = Mock()
    track.language_code = language_code
    track.is_generated = is_generated
    track.fetch.return_value = [SimpleNamespace(text=t) for t in texts]
    return track


class FakeTranscriptList:
    def __init__(self, tracks):
        self.tracks = tracks

    def __iter__(self):
        return iter(self.tracks)

    def _find(self, languages, generated):
        for track in self.tracks:
            if track.language_code in languages and track.is_generated == generated:
                return track
        raise LookupError(f"no track for {languages}")

    def find_manually_created_transcript(self, languages):
        return self._find(languages, False)

    def find_generated_transcript(self, languages):
        return self._find(languages, True)


@pytest.fixture
def api():
    manual_en = _track("en", False, ["manual", "english"])
    auto_en = _track("en", True, ["auto", "english"])
    manual_fr = _track("fr", False, ["manuel"])
    auto_de = _track("de", True, ["automatisch"])
    api = Mock()
    api.list.return_value = FakeTranscriptList([manual_fr, manual_en, auto_de, auto_en])
    api.fetch.return_value = [{"text": "default"}, {"text": "track"}]
    return api


class TestYouTubeTranscriptProvider:
    def test_manual_transcript_in_language(self, api):
        provider = YouTubeTranscriptProvider(api=api)
        assert provider.fetch_segments("vid", TranscriptOptions(lang="en")) == [
            "manual",
            "english",
        ]
        api.list.assert_called_once_with("vid")

    def test_generated_transcript_in_language(self, api):
        provider = YouTubeTranscriptProvider(api=api)
        segments = provider.fetch_segments("vid", TranscriptOptions(lang="en", auto=True))
        assert segments == ["auto", "english"]

    def test_missing_language_propagates(self, api):
        provider = YouTubeTranscriptProvider(api=api)
        with pytest.raises(LookupError):
            provider.fetch_segments("vid", TranscriptOptions(lang="ja"))

    def test_captions_prefer_requested_language(self, api):
        provider = YouTubeTranscriptProvider(api=api)
        segments = provider.fetch_segments(
            "vid", TranscriptOptions(lang="en", captions=True)
        )
        assert segments == ["manual", "english"]

    def test_captions_accept_other_languages(self, api):
        provider = YouTubeTranscriptProvider(api=api)
        segments = provider.fetch_segments(
            "vid", TranscriptOptions(lang="ja", auto=True, captions=True)
        )
        assert segments == ["automatisch"]

    def test_captions_none_of_kind(self, api):
        api.list.return_value = FakeTranscriptList([_track("en", False, ["x"])])
        provider = YouTubeTranscriptProvider(api=api)
        with pytest.raises(TranscriptNotOffered):
            provider.fetch_segments(
                "vid", TranscriptOptions(lang="en", auto=True, captions=True)
            )

    def test_provider_default_track(self, api):
        provider = YouTubeTranscriptProvider(api=api)
        assert provider.fetch_segments("vid", TranscriptOptions()) == ["default", "track"]
        api.fetch.assert_called_once_with("vid")
        api.list.assert_not_called()
