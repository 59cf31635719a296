"""Example metadata client adapter.

Use this module as a reference when wiring a new metadata backend.
Implement BaseMetadataClient and register the provider in MetadataClientFactory.
"""

import re
from collections.abc import Iterable

from bulk_editor.metadata.base import BaseMetadataClient, normalize_identifiers
from bulk_editor.metadata.models import STATUS_RELEASED, LookupResult
from bulk_editor.metadata.parser import parse_lookup_response

_DIGITS = re.compile(r"([0-9]{5,6})(?![0-9])")


class ExampleMetadataClient(BaseMetadataClient):
    """Returns every requested id as a released document.

    No network calls. Useful for local development and dry runs. It never
    reports ids as expired or missing: those states only come from a real
    service.
    """

    def lookup(self, identifiers: Iterable[str]) -> LookupResult:
        requested = normalize_identifiers(identifiers)
        if not requested:
            return LookupResult()
        payload = {
            "Version": "example",
            "Changes": "",
            "Results": [self._record(identifier) for identifier in requested],
        }
        return parse_lookup_response(payload, requested)

    @staticmethod
    def _record(identifier: str) -> dict[str, str]:
        matches = _DIGITS.findall(identifier)
        content_id = matches[-1] if matches else identifier
        return {
            "Lookup_ID": identifier,
            "Document_ID": identifier.lower(),
            "Content_ID": content_id,
            "Title": f"Document {identifier}",
            "Status": STATUS_RELEASED,
        }
