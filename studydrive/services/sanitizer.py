"""Input sanitization for names, free text, tags, search queries, and URLs.

``sanitize_*`` functions never raise: they clean what they can and return the
result. ``validate_*`` functions sanitize and then raise ValidationError when
nothing usable is left.
"""

import json
import re
from typing import Iterable, List, Optional, Union
from urllib.parse import urlsplit

from ..core.config import settings
from ..exceptions import ValidationError

MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 2000
MAX_MESSAGE_LENGTH = 1000
MAX_SEARCH_LENGTH = 200

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_NAME_UNSAFE = re.compile(r'[<>:"/\\|?*\x00-\x1F\x7F]')
_WHITESPACE = re.compile(r"\s+")

_RESERVED_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)


def sanitize_text(value: Optional[str], max_length: int = 1000) -> str:
    if not value or not isinstance(value, str):
        return ""
    return _CONTROL_CHARS.sub("", value.strip()[:max_length])


def sanitize_name(name: Optional[str]) -> str:
    """Strip path and shell metacharacters, collapse whitespace, cap at 255."""
    if not name or not isinstance(name, str):
        return ""
    cleaned = _NAME_UNSAFE.sub("", name)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:MAX_NAME_LENGTH].strip()


def validate_name(name: Optional[str], field: str = "name") -> str:
    """Sanitized name, or ValidationError if it is empty or reserved."""
    cleaned = sanitize_name(name)
    if not cleaned:
        raise ValidationError(f"{field.capitalize()} cannot be empty", field=field)
    if cleaned in (".", ".."):
        raise ValidationError(f"{field.capitalize()} cannot be '{cleaned}'", field=field)
    stem = cleaned.split(".")[0].upper()
    if stem in _RESERVED_NAMES:
        raise ValidationError(f"{field.capitalize()} is a reserved system name", field=field)
    return cleaned


def sanitize_description(value: Optional[str]) -> Optional[str]:
    cleaned = sanitize_text(value, MAX_DESCRIPTION_LENGTH)
    return cleaned or None


def sanitize_tags(
    tags: Union[None, str, Iterable[str]],
    max_tags: Optional[int] = None,
    max_length: Optional[int] = None,
) -> List[str]:
    """Normalize a tag list.

    Accepts a list or a JSON-encoded list. Blank and non-string entries are
    dropped, each tag is capped, duplicates keep their first position, and the
    result is cut to ``max_tags``.
    """
    max_tags = max_tags or settings.max_tags
    max_length = max_length or settings.max_tag_length

    if tags is None:
        return []
    if isinstance(tags, str):
        if not tags.strip():
            return []
        try:
            tags = json.loads(tags)
        except ValueError:
            return []
    if not isinstance(tags, (list, tuple)):
        return []

    result: List[str] = []
    seen = set()
    for tag in tags:
        if not isinstance(tag, str):
            continue
        cleaned = sanitize_text(tag, max_length).strip()
        if not cleaned or cleaned in seen:
            continue
        seen.add(cleaned)
        result.append(cleaned)
        if len(result) >= max_tags:
            break
    return result


def sanitize_search_query(query: Optional[str]) -> str:
    return sanitize_text(query, MAX_SEARCH_LENGTH)


def validate_url(url: Optional[str]) -> str:
    """Accept absolute http(s) URLs only."""
    if not url or not isinstance(url, str):
        raise ValidationError("URL is required", field="url")
    url = url.strip()
    try:
        parts = urlsplit(url)
    except ValueError:
        raise ValidationError("Invalid URL format", field="url")
    if parts.scheme not in ("http", "https"):
        raise ValidationError("Only HTTP and HTTPS URLs are allowed", field="url")
    if not parts.netloc:
        raise ValidationError("Invalid URL format", field="url")
    return url
