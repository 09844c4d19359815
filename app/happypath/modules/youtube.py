import re
from typing import Optional
from urllib.parse import urlparse, parse_qs

VIDEO_ID_LENGTH = 11

_ID_PATTERNS = (
    re.compile(r"(?:v=|/embed/|youtu\.be/)([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\.com/shorts/([A-Za-z0-9_-]{11})"),
)
_BARE_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")


def extract_video_id(url: Optional[str]) -> Optional[str]:
    """
    watch, embed, youtu.be ve shorts bağlantılarından 11 karakterlik video kimliğini çıkarır.
    Bulunamazsa None döner.
    """
    if not url:
        return None
    url = url.strip()
    for pattern in _ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)

    try:
        query = parse_qs(urlparse(url).query)
    except ValueError:
        return None
    candidate = (query.get("v") or [None])[0]
    if candidate and _BARE_ID.match(candidate):
        return candidate
    return None


def thumbnail_url(video_id: str, quality: str = "hq") -> str:
    return f"https://i.ytimg.com/vi/{video_id}/{quality}default.jpg"
