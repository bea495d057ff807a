"""
YouTube URL parsing.
"""

import re
from typing import Optional

# Tried in order; the identifier runs until the first "&", "?" or "/".
_VIDEO_ID_PATTERNS = [
    # Canonical watch URLs (and the legacy /v/ form)
    re.compile(r"(?:youtube\.com/watch\?v=|youtube\.com/v/)([^&?/]+)"),
    # Short links
    re.compile(r"youtu\.be/([^&?/]+)"),
    # Embeds
    re.compile(r"youtube\.com/embed/([^&?/]+)"),
]


def extract_video_id(url: Optional[str]) -> Optional[str]:
    """
    Extract the YouTube video ID from a URL.

    Supported formats:
    - https://www.youtube.com/watch?v=VIDEO_ID
    - https://youtu.be/VIDEO_ID
    - https://www.youtube.com/embed/VIDEO_ID

    Args:
        url: YouTube URL

    Returns:
        Video ID string or None if the URL is empty or not recognized
    """
    if not url:
        return None

    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match and match.group(1):
            return match.group(1)
    return None
