"""Pure helpers for lookup ids, content ids and status markers in hyperlinks."""

import re
from functools import lru_cache
from urllib.parse import unquote

from bulk_editor.config.settings import DEFAULT_LOOKUP_ID_PATTERN

EXPIRED_MARKER = " - Expired"
NOT_FOUND_MARKER = " - Not Found"

_CONTENT_ID_SUFFIX = re.compile(r"\s*\(([0-9]{5,})\)\s*$")
_STRIP_CONTENT_ID = (
    re.compile(r"\s*\([0-9]{6}\)\s*$"),
    re.compile(r"\s*\([0-9]{5}\)\s*$"),
)
_DOCID = re.compile(r"docid=([^&]*)", re.IGNORECASE)
_SIX_DIGITS = re.compile(r"[0-9]{6}")
_FIVE_DIGITS = re.compile(r"^[0-9]{5}$")


@lru_cache(maxsize=16)
def compile_lookup_pattern(pattern: str) -> re.Pattern[str]:
    # A letter or digit glued to the prefix (TSRCx-, XTSRC-) is not a lookup id.
    return re.compile(rf"(?<![A-Za-z0-9])(?:{pattern})", re.IGNORECASE)


def combine_address(address: str, sub_address: str = "") -> str:
    if sub_address:
        return f"{address}#{sub_address}"
    return address


def extract_lookup_id(
    address: str,
    sub_address: str = "",
    pattern: str = DEFAULT_LOOKUP_ID_PATTERN,
) -> str:
    """Lookup id carried by a hyperlink target, or ``""``.

    ``TSRC-<segment>-<6 digits>`` / ``CMS-<segment>-<6 digits>`` anywhere in
    ``address#sub_address`` wins and is upper-cased; otherwise the value of a
    ``docid=`` parameter is used as is.
    """
    combined = combine_address(address or "", sub_address or "")
    if not combined:
        return ""
    match = compile_lookup_pattern(pattern).search(combined)
    if match:
        return match.group(0).upper()
    return extract_doc_id(combined)


def extract_doc_id(value: str) -> str:
    """Value of ``docid=`` up to the next ``&``, trimmed and URL-decoded."""
    match = _DOCID.search(value or "")
    if not match:
        return ""
    return unquote(match.group(1)).strip()


def extract_content_id(text: str) -> str:
    """Trailing ``(NNNNN+)`` content id of display text, digits only."""
    match = _CONTENT_ID_SUFFIX.search(text or "")
    return match.group(1) if match else ""


def strip_content_id(text: str) -> str:
    """Display text without a trailing 6- or 5-digit ``(content id)``."""
    result = text or ""
    for pattern in _STRIP_CONTENT_ID:
        result = pattern.sub("", result).strip()
    return result


def format_content_id(value: str) -> str:
    """Pad a 5-digit content id to 6 digits; anything else comes back unchanged."""
    if not value:
        return value
    stripped = value.strip()
    if _FIVE_DIGITS.match(stripped):
        return f"0{stripped}"
    return value


def display_content_id(value: str) -> str:
    """Six-digit form appended to display text: last 6 digits, or a padded 5-digit id."""
    stripped = (value or "").strip()
    if len(stripped) >= 6:
        return stripped[-6:]
    if len(stripped) == 5:
        return f"0{stripped}"
    return stripped.zfill(6) if stripped else ""


def contains_six_digits(value: str) -> bool:
    return bool(_SIX_DIGITS.search(value or ""))


def has_expired_marker(text: str) -> bool:
    return EXPIRED_MARKER.lower() in (text or "").lower()


def has_not_found_marker(text: str) -> bool:
    return NOT_FOUND_MARKER.lower() in (text or "").lower()


def has_status_marker(text: str) -> bool:
    return has_expired_marker(text) or has_not_found_marker(text)


def strip_status_markers(text: str) -> str:
    result = text or ""
    for marker in (EXPIRED_MARKER, NOT_FOUND_MARKER):
        result = re.sub(re.escape(marker), "", result, flags=re.IGNORECASE)
    return result.strip()


def append_content_id(text: str, content_id: str) -> str:
    """Append `` (NNNNNN)`` to display text, upgrading a stale 5-digit suffix.

    Returns the text unchanged when the 6-digit id is already present or a
    status marker is present.
    """
    last6 = display_content_id(content_id)
    if not last6 or has_status_marker(text):
        return text
    last5 = last6[1:]
    six_suffix = f" ({last6})"
    five_suffix = f" ({last5})"
    if text.endswith(five_suffix) and not text.endswith(six_suffix):
        return text[: -len(five_suffix)] + six_suffix
    if six_suffix.lower() in text.lower():
        return text
    return text.strip() + six_suffix
