from dataclasses import dataclass, field


STATUS_RELEASED = "Released"
STATUS_EXPIRED = "Expired"
STATUS_UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DocumentMetadata:
    """One record returned by the metadata service."""

    document_id: str
    content_id: str
    title: str
    status: str = STATUS_UNKNOWN
    lookup_id: str = ""
    author: str = ""
    last_modified: str = ""

    @property
    def is_expired(self) -> bool:
        return self.status.strip().lower() == STATUS_EXPIRED.lower()


@dataclass
class LookupResult:
    """Lookup outcome bucketed against the requested identifiers.

    ``matches`` maps each requested identifier (upper-cased) to the record it
    resolved to, so callers can go from a hyperlink's lookup id straight to
    its metadata without re-deriving the index.
    """

    found: list[DocumentMetadata] = field(default_factory=list)
    expired: list[DocumentMetadata] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    matches: dict[str, DocumentMetadata] = field(default_factory=dict)
    version: str = ""
    changes: str = ""

    def match(self, lookup_id: str) -> DocumentMetadata | None:
        return self.matches.get(lookup_id.strip().upper())

    def is_missing(self, lookup_id: str) -> bool:
        key = lookup_id.strip().upper()
        return any(item.strip().upper() == key for item in self.missing)

    @property
    def total(self) -> int:
        return len(self.found) + len(self.expired) + len(self.missing)
