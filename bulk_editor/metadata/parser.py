"""Builds a LookupResult from the metadata service JSON response."""

from collections.abc import Iterable
from typing import Any

from bulk_editor.metadata.models import STATUS_UNKNOWN, DocumentMetadata, LookupResult
from bulk_editor.processor.exceptions import CommunicationError


def property_variants(name: str) -> list[str]:
    """Spellings tried for a response property, most specific first.

    ``Document_ID`` -> Document_ID, document_id, DOCUMENT_ID, documentId,
    documentid, DOCUMENTID.
    """
    parts = [part for part in name.split("_") if part]
    camel = parts[0].lower() + "".join(p[:1].upper() + p[1:].lower() for p in parts[1:])
    compact = "".join(parts)
    variants = [name, name.lower(), name.upper(), camel, compact.lower(), compact.upper()]
    return list(dict.fromkeys(variants))


def read_property(record: dict[str, Any], name: str, default: str = "") -> str:
    for key in property_variants(name):
        value = record.get(key)
        if value is not None:
            return str(value).strip()
    return default


def parse_record(record: dict[str, Any]) -> DocumentMetadata:
    return DocumentMetadata(
        document_id=read_property(record, "Document_ID"),
        content_id=read_property(record, "Content_ID"),
        title=read_property(record, "Title"),
        status=read_property(record, "Status") or STATUS_UNKNOWN,
        lookup_id=read_property(record, "Lookup_ID"),
        author=read_property(record, "Author"),
        last_modified=read_property(record, "Last_Modified"),
    )


def index_records(records: Iterable[DocumentMetadata]) -> dict[str, DocumentMetadata]:
    """Case-insensitive index by Document_ID, Content_ID and Lookup_ID; first record wins."""
    index: dict[str, DocumentMetadata] = {}
    for record in records:
        for key in (record.document_id, record.content_id, record.lookup_id):
            normalized = key.strip().upper()
            if normalized and normalized not in index:
                index[normalized] = record
    return index


def parse_lookup_response(payload: Any, requested: Iterable[str]) -> LookupResult:
    """Bucket the requested identifiers into found / expired / missing.

    Raises:
        CommunicationError: if the payload is not an object or Results is not a list.
    """
    if not isinstance(payload, dict):
        raise CommunicationError("Metadata response must be a JSON object")

    raw_results: Any = None
    for key in ("Results", "results", "RESULTS"):
        if key in payload:
            raw_results = payload[key]
            break
    if raw_results is None:
        raw_results = []
    if not isinstance(raw_results, list):
        raise CommunicationError("Metadata response 'Results' must be a list")

    records = [parse_record(item) for item in raw_results if isinstance(item, dict)]
    index = index_records(records)

    result = LookupResult(
        version=read_property(payload, "Version"),
        changes=read_property(payload, "Changes"),
    )
    seen: set[int] = set()
    for identifier in requested:
        key = identifier.strip().upper()
        if not key:
            continue
        record = index.get(key)
        if record is None:
            result.missing.append(identifier)
            continue
        result.matches[key] = record
        if id(record) in seen:
            continue
        seen.add(id(record))
        if record.is_expired:
            result.expired.append(record)
        else:
            result.found.append(record)
    return result
