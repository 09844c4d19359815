import pytest

from app.happypath.modules.youtube import extract_video_id, thumbnail_url


@pytest.mark.parametrize("url", [
    "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
    "https://youtu.be/dQw4w9WgXcQ",
    "https://youtu.be/dQw4w9WgXcQ?t=42",
    "https://www.youtube.com/embed/dQw4w9WgXcQ",
    "https://www.youtube.com/shorts/dQw4w9WgXcQ",
    "  https://m.youtube.com/watch?v=dQw4w9WgXcQ  ",
])
def test_extracts_canonical_id(url):
    assert extract_video_id(url) == "dQw4w9WgXcQ"


@pytest.mark.parametrize("url", [None, "", "https://vimeo.com/123456", "https://www.youtube.com/watch?v=short", "not a url"])
def test_returns_none_for_unrecognized_urls(url):
    assert extract_video_id(url) is None


def test_thumbnail_url():
    assert thumbnail_url("dQw4w9WgXcQ") == "https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg"
    assert thumbnail_url("dQw4w9WgXcQ", quality="mq") == "https://i.ytimg.com/vi/dQw4w9WgXcQ/mqdefault.jpg"
