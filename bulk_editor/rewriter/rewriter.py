from bulk_editor.changelog.models import ChangeEntry, ChangeType
from bulk_editor.config.context import ProcessingContext
from bulk_editor.docx.package import DocxPackage
from bulk_editor.extraction.identifiers import (
    EXPIRED_MARKER,
    NOT_FOUND_MARKER,
    append_content_id,
    display_content_id,
    has_expired_marker,
    has_status_marker,
    strip_content_id,
    strip_status_markers,
)
from bulk_editor.extraction.models import (
    ExtractionResult,
    Hyperlink,
    HyperlinkAction,
    HyperlinkStatus,
)
from bulk_editor.metadata.models import DocumentMetadata, LookupResult
from bulk_editor.rewriter.edits import remove_hyperlink, set_hyperlink_target, set_hyperlink_text
from bulk_editor.rewriter.models import UpdateResult
from bulk_editor.rewriter.urls import build_document_url


class DocumentRewriter:
    """Applies metadata lookup results to the hyperlinks of an open package.

    Only the in-memory package is mutated; saving is the caller's job.
    """

    def __init__(self, context: ProcessingContext) -> None:
        settings = context.settings
        self._log = context.log
        self._base_url = settings.document_base_url
        self._fragment_template = settings.document_view_fragment
        self._update_hyperlinks = settings.update_hyperlinks
        self._add_content_ids = settings.add_content_ids
        self._check_expired = settings.check_expired_content
        self._auto_replace_titles = settings.auto_replace_titles
        self._report_title_differences = settings.report_title_differences
        self._remove_invisible = settings.remove_invisible_hyperlinks

    def rewrite(
        self,
        package: DocxPackage,
        extraction: ExtractionResult,
        lookup: LookupResult,
    ) -> UpdateResult:
        result = UpdateResult()
        for link in extraction.hyperlinks:
            if not link.lookup_id or link.element is None:
                continue
            metadata = lookup.match(link.lookup_id)
            if metadata is not None:
                self._apply_metadata(package, link, metadata, result)
            elif lookup.is_missing(link.lookup_id):
                self._mark_not_found(package, link, result)

        if self._remove_invisible:
            for link in extraction.invisible_hyperlinks:
                self._remove_invisible_link(package, link, result)

        self._log.info(
            f"Rewrote {package.path.name}: {result.urls_updated} urls, "
            f"{result.content_ids_added} content ids, {result.expired_marked} expired, "
            f"{result.not_found_marked} not found, {result.removed} removed"
        )
        return result

    def _apply_metadata(
        self,
        package: DocxPackage,
        link: Hyperlink,
        metadata: DocumentMetadata,
        result: UpdateResult,
    ) -> None:
        expired = metadata.is_expired
        link.status = HyperlinkStatus.EXPIRED if expired else HyperlinkStatus.VALID
        if metadata.content_id:
            link.content_id = display_content_id(metadata.content_id)

        if self._update_hyperlinks:
            self._update_target(package, link, metadata, result)
        self._compare_title(package, link, metadata, result)
        if self._add_content_ids and metadata.content_id:
            self._add_content_id(package, link, metadata, result)
        if expired and self._check_expired:
            self._mark_expired(package, link, result)

    def _update_target(
        self,
        package: DocxPackage,
        link: Hyperlink,
        metadata: DocumentMetadata,
        result: UpdateResult,
    ) -> None:
        document_id = metadata.document_id or metadata.content_id
        try:
            new_url = build_document_url(self._base_url, self._fragment_template, document_id)
        except ValueError as exc:
            result.changes.append(
                ChangeEntry(
                    change_type=ChangeType.WARNING,
                    description=f"Cannot update hyperlink for {link.lookup_id}",
                    element_id=link.element_id,
                    details=str(exc),
                )
            )
            return
        old_url = link.target
        if new_url == old_url:
            return
        set_hyperlink_target(package, link, new_url)
        link.action = HyperlinkAction.UPDATED
        result.urls_updated += 1
        result.mark_updated(link)
        result.changes.append(
            ChangeEntry(
                change_type=ChangeType.HYPERLINK_UPDATED,
                description=f"Updated hyperlink target for {link.lookup_id}",
                old_value=old_url,
                new_value=new_url,
                element_id=link.element_id,
                details=f"Document ID: {document_id}",
            )
        )

    def _compare_title(
        self,
        package: DocxPackage,
        link: Hyperlink,
        metadata: DocumentMetadata,
        result: UpdateResult,
    ) -> None:
        api_title = metadata.title.strip()
        current_title = strip_content_id(strip_status_markers(link.display_text))
        if not api_title or current_title == api_title:
            return
        last6 = display_content_id(metadata.content_id)
        if self._auto_replace_titles:
            new_text = f"{api_title} ({last6})" if last6 else api_title
            set_hyperlink_text(package, link, new_text)
            link.action = HyperlinkAction.UPDATED
            result.titles_replaced += 1
            result.mark_updated(link)
            change_type = ChangeType.TITLE_REPLACED
            description = "Title replaced with metadata title"
        elif self._report_title_differences:
            result.title_differences += 1
            change_type = ChangeType.POSSIBLE_TITLE_CHANGE
            description = "Possible title change"
        else:
            return
        result.changes.append(
            ChangeEntry(
                change_type=change_type,
                description=description,
                old_value=current_title,
                new_value=api_title,
                element_id=link.element_id,
                details=f"Content ID: {last6}",
            )
        )

    def _add_content_id(
        self,
        package: DocxPackage,
        link: Hyperlink,
        metadata: DocumentMetadata,
        result: UpdateResult,
    ) -> None:
        old_text = link.display_text
        new_text = append_content_id(old_text, metadata.content_id)
        if new_text == old_text:
            return
        set_hyperlink_text(package, link, new_text)
        if link.action is HyperlinkAction.NONE:
            link.action = HyperlinkAction.UPDATED
        result.content_ids_added += 1
        result.mark_updated(link)
        result.changes.append(
            ChangeEntry(
                change_type=ChangeType.CONTENT_ID_ADDED,
                description=f"Added content ID {display_content_id(metadata.content_id)}",
                old_value=old_text,
                new_value=new_text,
                element_id=link.element_id,
            )
        )

    def _mark_expired(self, package: DocxPackage, link: Hyperlink, result: UpdateResult) -> None:
        if has_expired_marker(link.display_text):
            return
        self._append_marker(package, link, EXPIRED_MARKER, result)
        result.expired_marked += 1

    def _mark_not_found(self, package: DocxPackage, link: Hyperlink, result: UpdateResult) -> None:
        link.status = HyperlinkStatus.NOT_FOUND
        if has_status_marker(link.display_text):
            return
        self._append_marker(package, link, NOT_FOUND_MARKER, result)
        result.not_found_marked += 1

    def _append_marker(
        self,
        package: DocxPackage,
        link: Hyperlink,
        marker: str,
        result: UpdateResult,
    ) -> None:
        old_text = link.display_text
        new_text = old_text.rstrip() + marker
        set_hyperlink_text(package, link, new_text)
        if link.action is HyperlinkAction.NONE:
            link.action = HyperlinkAction.UPDATED
        result.mark_updated(link)
        result.changes.append(
            ChangeEntry(
                change_type=ChangeType.HYPERLINK_STATUS_ADDED,
                description=f"Added '{marker.strip(' -')}' status to {link.lookup_id}",
                old_value=old_text,
                new_value=new_text,
                element_id=link.element_id,
            )
        )

    def _remove_invisible_link(
        self,
        package: DocxPackage,
        link: Hyperlink,
        result: UpdateResult,
    ) -> None:
        if link.element is None:
            return
        element_id = link.element_id
        remove_hyperlink(package, link)
        link.action = HyperlinkAction.REMOVED
        result.removed += 1
        result.changes.append(
            ChangeEntry(
                change_type=ChangeType.HYPERLINK_REMOVED,
                description="Removed invisible hyperlink",
                old_value=link.target,
                element_id=element_id,
            )
        )
