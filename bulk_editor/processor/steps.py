from datetime import datetime
from pathlib import Path

from bulk_editor.backup.manager import BackupManager
from bulk_editor.changelog.exporters import BaseExporter
from bulk_editor.docx.package import verify_package
from bulk_editor.extraction.extractor import HyperlinkExtractor
from bulk_editor.logging.logger import Log
from bulk_editor.metadata.base import BaseMetadataClient
from bulk_editor.processor.models import ProcessingState
from bulk_editor.processor.pipeline import PipelineContext, PipelineStep
from bulk_editor.processor.validator import DocumentValidator
from bulk_editor.replacement.engine import ReplacementEngine
from bulk_editor.replacement.text_optimizer import TextOptimizer
from bulk_editor.rewriter.rewriter import DocumentRewriter


class ValidateStep(PipelineStep):
    state = ProcessingState.VALIDATING

    def __init__(self, validator: DocumentValidator) -> None:
        self._validator = validator

    def run(self, context: PipelineContext) -> PipelineContext:
        context.package = self._validator.validate(context.document.file_path)
        return context


class BackupStep(PipelineStep):
    state = ProcessingState.BACKING_UP

    def __init__(self, backup_manager: BackupManager) -> None:
        self._backup_manager = backup_manager

    def run(self, context: PipelineContext) -> PipelineContext:
        context.document.backup = self._backup_manager.create_backup(
            context.document.file_path,
            session_id=context.session_id,
        )
        return context


class ExtractStep(PipelineStep):
    state = ProcessingState.EXTRACTING

    def __init__(self, extractor: HyperlinkExtractor) -> None:
        self._extractor = extractor

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.package is None:
            raise ValueError("PipelineContext.package must be set before extraction")
        context.extraction = self._extractor.extract(context.package)
        context.document.hyperlinks = list(context.extraction.hyperlinks)
        return context


class LookupStep(PipelineStep):
    state = ProcessingState.LOOKING_UP

    def __init__(self, client: BaseMetadataClient, log: Log) -> None:
        self._client = client
        self._log = log

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.extraction is None:
            raise ValueError("PipelineContext.extraction must be set before lookup")
        context.lookup = self._client.lookup(context.extraction.unique_lookup_ids)
        self._log.info(
            f"Lookup for {context.document.file_name}: {len(context.lookup.found)} found, "
            f"{len(context.lookup.expired)} expired, {len(context.lookup.missing)} missing"
        )
        return context


class RewriteStep(PipelineStep):
    """Metadata-driven rewrite, then the user replacement rules, then text optimization."""

    state = ProcessingState.REWRITING

    def __init__(
        self,
        rewriter: DocumentRewriter,
        replacement_engine: ReplacementEngine,
        text_optimizer: TextOptimizer | None = None,
    ) -> None:
        self._rewriter = rewriter
        self._replacement_engine = replacement_engine
        self._text_optimizer = text_optimizer

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.package is None or context.extraction is None or context.lookup is None:
            raise ValueError("PipelineContext must hold package, extraction and lookup before rewrite")
        context.mutation_started = True
        context.update = self._rewriter.rewrite(context.package, context.extraction, context.lookup)
        context.document.change_log.extend(context.update.changes)
        if self._replacement_engine.enabled:
            context.replacement_changes = self._replacement_engine.apply(
                context.package, context.extraction.hyperlinks
            )
            context.document.change_log.extend(context.replacement_changes)
        if self._text_optimizer is not None and self._text_optimizer.enabled:
            context.document.change_log.extend(self._text_optimizer.optimize(context.package))
        return context


class SaveStep(PipelineStep):
    state = ProcessingState.SAVING

    def __init__(self, log: Log) -> None:
        self._log = log

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.package is None:
            raise ValueError("PipelineContext.package must be set before saving")
        if not context.package.is_dirty:
            self._log.info(f"No changes to save for {context.document.file_name}")
            context.saved = True
            return context
        saved_path = context.package.save()
        verify_package(saved_path)
        context.saved = True
        self._log.info(f"Saved {context.document.file_name}")
        return context


class LogChangesStep(PipelineStep):
    """Builds the summary and exports the change log; failures are logged only."""

    state = ProcessingState.LOGGING_CHANGES

    def __init__(self, exporter: BaseExporter | None, directory: Path | None, log: Log) -> None:
        self._exporter = exporter
        self._directory = directory
        self._log = log

    def run(self, context: PipelineContext) -> PipelineContext:
        document = context.document
        try:
            context.summary = document.change_log.summary(document.file_name)
            self._log.info(context.summary)
            if self._exporter is not None and self._directory is not None:
                stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                name = self._exporter.get_filename(f"{document.file_path.stem}_changes_{stamp}")
                snapshot = context.to_result(success=True)
                self._exporter.export_to_file([snapshot], self._directory / name)
        except Exception as exc:
            self._log.warning(f"Change log export failed for {document.file_name}: {exc}")
        return context
