from abc import ABC, abstractmethod
from collections.abc import Iterable

from bulk_editor.metadata.models import LookupResult


class BaseMetadataClient(ABC):
    """Contract for all metadata lookup adapters."""

    @abstractmethod
    def lookup(self, identifiers: Iterable[str]) -> LookupResult:
        """Resolve lookup identifiers against the metadata service.

        Args:
            identifiers: Lookup ids extracted from hyperlinks. Blank values
                are ignored; an empty input returns an empty result without I/O.

        Returns:
            LookupResult with found, expired and missing buckets.

        Raises:
            CommunicationError: if the service cannot be reached or answers badly.
        """


def normalize_identifiers(identifiers: Iterable[str]) -> list[str]:
    """Strip, drop blanks, de-duplicate case-insensitively, sort."""
    unique: dict[str, str] = {}
    for identifier in identifiers:
        cleaned = (identifier or "").strip()
        if cleaned:
            unique.setdefault(cleaned.upper(), cleaned)
    return sorted(unique.values())
