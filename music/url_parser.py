import re
from enum import Enum, auto


class InputType(Enum):
    URL = auto()
    SEARCH_QUERY = auto()


# Scheme-less YouTube links are still links
_YOUTUBE_RE = re.compile(
    r"(?:https?://)?(?:www\.|m\.|music\.)?(?:youtube\.com|youtu\.be)/?\S+"
)

_URL_RE = re.compile(r"https?://\S+")


def classify(query: str) -> tuple[InputType, str]:
    """Return (InputType, cleaned_value) for a user query.

    URLs are handed to yt-dlp as-is; anything else is a search string.
    """
    query = query.strip()

    if _YOUTUBE_RE.match(query) or _URL_RE.fullmatch(query):
        return InputType.URL, query

    return InputType.SEARCH_QUERY, query
