import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from bulk_editor.config.context import ProcessingContext
from bulk_editor.metadata.base import BaseMetadataClient
from bulk_editor.metadata.models import LookupResult
from bulk_editor.processor.cancellation import CancellationToken
from bulk_editor.processor.exceptions import (
    CommunicationError,
    DocumentValidationError,
    RuleValidationError,
)
from bulk_editor.processor.models import DocumentStatus, ProcessingState
from bulk_editor.processor.orchestrator import build_orchestrator
from bulk_editor.replacement.models import TextReplacementRule

OLD_URL = "https://old.example.com/view?docid=TSRC-PROD-123456"

FULL_RUN = [
    ProcessingState.VALIDATING,
    ProcessingState.BACKING_UP,
    ProcessingState.EXTRACTING,
    ProcessingState.LOOKING_UP,
    ProcessingState.REWRITING,
    ProcessingState.SAVING,
    ProcessingState.LOGGING_CHANGES,
    ProcessingState.COMPLETED,
]


def _make_context(context: ProcessingContext, **overrides: object) -> ProcessingContext:
    return ProcessingContext(settings=context.settings.model_copy(update=overrides), log=context.log)


def _make_document(docx_builder, name: str = "policy.docx") -> Path:
    return docx_builder.build(
        name=name,
        body=[docx_builder.hyperlink("rId5", "Policy Manual")],
        links={"rId5": OLD_URL},
    )


def _make_client(side_effect) -> MagicMock:
    client = MagicMock(spec=BaseMetadataClient)
    client.lookup.side_effect = side_effect
    return client


class TestSuccessfulRun:
    def test_processes_document(self, context, docx_builder) -> None:
        path = _make_document(docx_builder)
        original = path.read_bytes()

        result = build_orchestrator(context).process(path)

        assert result.success is True
        assert result.status is DocumentStatus.COMPLETED
        assert result.state is ProcessingState.COMPLETED
        assert result.state_history == FULL_RUN
        assert result.document.backup is not None
        assert result.document.backup.backup_path.read_bytes() == original
        assert path.read_bytes() != original
        assert result.update.urls_updated == 1
        assert result.summary.startswith("Processed policy.docx: 1 hyperlinks updated")
        assert result.document.processed_at is not None

    def test_document_without_changes_not_rewritten(self, context, docx_builder) -> None:
        path = docx_builder.build(body=[docx_builder.paragraph("Nothing to do")])
        original = path.read_bytes()

        result = build_orchestrator(context).process(path)

        assert result.status is DocumentStatus.COMPLETED
        assert path.read_bytes() == original
        assert result.summary == "Processed sample.docx: no changes required"

    def test_progress_reported_per_stage(self, context, docx_builder) -> None:
        reports = []

        build_orchestrator(context).process(_make_document(docx_builder), progress=reports.append)

        assert reports[0].current_operation == "Validating"
        assert reports[0].percent_complete == 0
        assert reports[-1].current_operation == "Completed"
        assert reports[-1].percent_complete == 100.0
        assert all(report.file_name == "policy.docx" for report in reports)

    def test_backup_goes_to_session_directory(self, context, docx_builder) -> None:
        orchestrator = build_orchestrator(context)

        result = orchestrator.process(_make_document(docx_builder), session_id="run-1")

        expected = orchestrator.backup_manager.session_directory("run-1")
        assert result.document.backup.backup_path.parent == expected

    def test_replacement_rules_applied(self, context, docx_builder) -> None:
        rules_context = _make_context(
            context,
            enable_text_replacement=True,
            text_rules=[TextReplacementRule(source_text="draft", replacement_text="final")],
        )
        path = docx_builder.build(body=[docx_builder.paragraph("Draft copy")])

        result = build_orchestrator(rules_context).process(path)

        assert result.success is True
        assert "1 text replacements" in result.summary


class TestFailures:
    def test_validation_failure_has_no_backup(self, context, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("plain text")

        result = build_orchestrator(context).process(path)

        assert result.success is False
        assert result.status is DocumentStatus.FAILED
        assert result.state_history == [ProcessingState.VALIDATING, ProcessingState.FAILED]
        assert result.rolled_back is False
        assert result.document.backup is None
        assert result.document.errors[0].error_type == "DocumentValidationError"

    def test_lookup_failure_recovers_from_backup(self, context, docx_builder) -> None:
        path = _make_document(docx_builder)
        client = _make_client(CommunicationError("service down"))

        result = build_orchestrator(context, metadata_client=client).process(path)

        assert result.status is DocumentStatus.RECOVERED
        assert result.state is ProcessingState.ROLLED_BACK
        assert result.rolled_back is True
        assert result.error_message == "service down"
        assert result.state_history[-3:] == [
            ProcessingState.LOOKING_UP,
            ProcessingState.FAILED,
            ProcessingState.ROLLED_BACK,
        ]

    def test_failed_verification_restores_original_bytes(self, context, docx_builder) -> None:
        path = _make_document(docx_builder)
        original = path.read_bytes()

        with patch(
            "bulk_editor.processor.steps.verify_package",
            side_effect=DocumentValidationError("unreadable after save"),
        ):
            result = build_orchestrator(context).process(path)

        assert result.status is DocumentStatus.RECOVERED
        assert path.read_bytes() == original

    def test_failed_restore_keeps_failed_status(self, context, docx_builder) -> None:
        path = _make_document(docx_builder)
        client = _make_client(CommunicationError("service down"))
        orchestrator = build_orchestrator(context, metadata_client=client)

        with patch.object(orchestrator.backup_manager, "restore", side_effect=OSError("locked")):
            result = orchestrator.process(path)

        assert result.status is DocumentStatus.FAILED
        assert result.rolled_back is False
        assert [error.error_type for error in result.document.errors] == [
            "CommunicationError",
            "OSError",
        ]

    def test_timeout_between_steps(self, context, docx_builder) -> None:
        orchestrator = build_orchestrator(context)
        orchestrator._clock = MagicMock(side_effect=[0.0, 0.0, 10_000.0])

        result = orchestrator.process(_make_document(docx_builder))

        assert result.status is DocumentStatus.FAILED
        assert result.document.errors[0].error_type == "DocumentTimeoutError"
        assert result.state_history == [ProcessingState.VALIDATING, ProcessingState.FAILED]

    def test_invalid_rules_rejected_at_build(self, context) -> None:
        bad = _make_context(
            context,
            enable_text_replacement=True,
            text_rules=[TextReplacementRule(source_text="same", replacement_text="SAME")],
        )
        with pytest.raises(RuleValidationError):
            build_orchestrator(bad)


class TestCancellation:
    def test_cancelled_before_start(self, context, docx_builder) -> None:
        token = CancellationToken()
        token.cancel()

        result = build_orchestrator(context).process(_make_document(docx_builder), cancellation=token)

        assert result.cancelled is True
        assert result.status is DocumentStatus.CANCELLED
        assert result.state_history == [ProcessingState.CANCELLED]
        assert result.document.backup is None

    def test_cancelled_mid_run_restores(self, context, docx_builder) -> None:
        token = CancellationToken()

        def _lookup(identifiers):
            token.cancel("user stop")
            return LookupResult()

        path = _make_document(docx_builder)
        orchestrator = build_orchestrator(context, metadata_client=_make_client(_lookup))

        result = orchestrator.process(path, cancellation=token)

        assert result.cancelled is True
        assert result.rolled_back is True
        assert result.error_message == "user stop"
        assert result.state_history[-3:] == [
            ProcessingState.LOOKING_UP,
            ProcessingState.ROLLED_BACK,
            ProcessingState.CANCELLED,
        ]


class TestChangeLogExport:
    def test_export_written(self, context, docx_builder, tmp_path: Path) -> None:
        export_context = _make_context(context, changelog_directory=str(tmp_path / "logs"))

        build_orchestrator(export_context).process(_make_document(docx_builder))

        exported = list((tmp_path / "logs").glob("policy_changes_*.json"))
        assert len(exported) == 1
        payload = json.loads(exported[0].read_text(encoding="utf-8"))
        assert payload["documents"][0]["file_name"] == "policy.docx"

    def test_export_failure_does_not_fail_document(self, context, docx_builder, tmp_path: Path) -> None:
        export_context = _make_context(context, changelog_directory=str(tmp_path / "logs"))

        with patch(
            "bulk_editor.changelog.exporters.JsonExporter.export_to_file",
            side_effect=OSError("read-only"),
        ):
            result = build_orchestrator(export_context).process(_make_document(docx_builder))

        assert result.success is True
        assert result.status is DocumentStatus.COMPLETED
