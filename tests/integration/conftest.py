import json
from pathlib import Path

import httpx
import pytest

from bulk_editor.backup.manager import BackupManager
from bulk_editor.config.context import ProcessingContext
from bulk_editor.config.settings import Settings
from bulk_editor.logging.logger import Log
from bulk_editor.metadata.http_client import HttpMetadataClient
from bulk_editor.metadata.retry import RetryExecutor, RetryPolicy
from bulk_editor.worker.session import SessionManager

METADATA_URL = "https://metadata.example.com/lookup"

# Lookup id -> record served by the fake metadata service; ids not listed are missing.
CATALOG: dict[str, dict[str, str]] = {
    "TSRC-PROD-111111": {
        "Document_ID": "TSRC-PROD-111111",
        "Content_ID": "111111",
        "Title": "Claims Handbook",
        "Status": "Released",
    },
    "TSRC-PROD-222222": {
        "Document_ID": "TSRC-PROD-222222",
        "Content_ID": "222222",
        "Title": "Retired Procedure",
        "Status": "Expired",
    },
    "CMS-FORM-044444": {
        "Document_ID": "CMS-FORM-044444",
        "Content_ID": "44444",
        "Title": "Enrollment Form",
        "Status": "Released",
    },
}


class MetadataService:
    """In-process stand-in for the metadata endpoint, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[list[str]] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        requested = json.loads(request.content)["Lookup_ID"]
        self.requests.append(requested)
        results = [
            {"Lookup_ID": lookup_id, **CATALOG[lookup_id]}
            for lookup_id in requested
            if lookup_id in CATALOG
        ]
        return httpx.Response(200, json={"Version": "1.0", "Changes": "", "Results": results})

    def client(self, log: Log) -> HttpMetadataClient:
        return HttpMetadataClient(
            endpoint=METADATA_URL,
            log=log,
            retry=RetryExecutor(RetryPolicy(max_retries=0), log),
            transport=httpx.MockTransport(self.handle),
        )


@pytest.fixture()
def integration_settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        app_data_dir=str(tmp_path / "appdata"),
        metadata_provider="http",
        metadata_api_url=METADATA_URL,
        document_base_url="https://docs.example.com/nuxeo/thesource/",
        changelog_directory=str(tmp_path / "changelogs"),
    )


@pytest.fixture()
def integration_context(integration_settings: Settings) -> ProcessingContext:
    return ProcessingContext(settings=integration_settings, log=Log("bulk_editor.integration"))


@pytest.fixture()
def metadata_service() -> MetadataService:
    return MetadataService()


@pytest.fixture()
def backups(integration_context: ProcessingContext) -> BackupManager:
    return BackupManager(integration_context.settings.backup_root, integration_context.log)


@pytest.fixture()
def sessions(backups: BackupManager, integration_context: ProcessingContext) -> SessionManager:
    return SessionManager(backups, integration_context.log)
