from bulk_editor.metadata.base import BaseMetadataClient
from bulk_editor.metadata.factory import MetadataClientFactory
from bulk_editor.metadata.models import DocumentMetadata, LookupResult

__all__ = ["BaseMetadataClient", "DocumentMetadata", "LookupResult", "MetadataClientFactory"]
