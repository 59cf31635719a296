"""URL building and fragment sanitizing for rewritten hyperlink targets."""

import html
import re
from urllib.parse import quote

UNSAFE_FRAGMENT_CHARS = frozenset("!<>\"'&")

_TAG = re.compile(r"<[^>]+>")
_QUOTES = re.compile(r"[\"']")


def strip_html(value: str) -> str:
    """Drop tags, decode entities and remove quotes from an identifier."""
    if not value:
        return value
    without_tags = _TAG.sub("", value)
    decoded = html.unescape(without_tags)
    return _QUOTES.sub("", decoded).strip()


def is_fragment_safe(fragment: str) -> bool:
    return not any(
        char in UNSAFE_FRAGMENT_CHARS or char.isspace() or ord(char) < 32 or ord(char) == 127
        for char in fragment
    )


def sanitize_fragment(fragment: str) -> str:
    """Percent-encode characters that are unsafe in a relationship target fragment.

    The first pass encodes only the unsafe characters; if anything unsafe is
    still left the whole fragment is encoded.
    """
    if not fragment or is_fragment_safe(fragment):
        return fragment
    encoded = "".join(
        quote(char, safe="")
        if char in UNSAFE_FRAGMENT_CHARS or char.isspace() or ord(char) < 32 or ord(char) == 127
        else char
        for char in fragment
    )
    if is_fragment_safe(encoded):
        return encoded
    return quote(fragment, safe="")


def build_document_url(base_url: str, fragment_template: str, document_id: str) -> str:
    """``<base_url>#<sanitized fragment>`` for a document id.

    Raises:
        ValueError: if the document id is empty after cleaning.
    """
    clean_id = strip_html(document_id or "")
    if not clean_id:
        raise ValueError("Cannot build a document URL without a document id")
    fragment = fragment_template.format(document_id=clean_id)
    return f"{base_url}#{sanitize_fragment(fragment)}"
