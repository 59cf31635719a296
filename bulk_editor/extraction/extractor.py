from lxml import etree

from bulk_editor.config.context import ProcessingContext
from bulk_editor.docx.namespaces import REL_HYPERLINK, qn
from bulk_editor.docx.package import DocxPackage, same_rel_type
from bulk_editor.docx.text import element_text
from bulk_editor.extraction.identifiers import (
    extract_content_id,
    extract_lookup_id,
    has_status_marker,
)
from bulk_editor.extraction.models import ExtractionResult, ExtractionStats, Hyperlink

W_HYPERLINK = qn("w:hyperlink")
R_ID = qn("r:id")
W_ANCHOR = qn("w:anchor")
MC_FALLBACK = qn("mc:Fallback")


def split_target(target: str) -> tuple[str, str]:
    """``https://x/page#frag`` -> (``https://x/page``, ``frag``)."""
    address, _, sub_address = target.partition("#")
    return address, sub_address


def in_fallback(element: etree._Element) -> bool:
    """True for content under ``mc:Fallback`` (a duplicate of the mc:Choice branch)."""
    return any(ancestor.tag == MC_FALLBACK for ancestor in element.iterancestors())


class HyperlinkExtractor:
    """Collects every hyperlink in the body, headers, footers and notes.

    Text boxes and shapes are nested inside the part trees and are reached
    by the recursive walk. Read-only: the package is not modified.
    """

    def __init__(self, context: ProcessingContext) -> None:
        self._log = context.log
        self._pattern = context.settings.lookup_id_pattern

    def extract(self, package: DocxPackage) -> ExtractionResult:
        result = ExtractionResult()
        parts = package.content_parts()
        for part_name in parts:
            for hyperlink in self.extract_part(package, part_name):
                if hyperlink.is_invisible:
                    result.invisible_hyperlinks.append(hyperlink)
                    continue
                result.hyperlinks.append(hyperlink)
                if hyperlink.lookup_id:
                    result.unique_lookup_ids.add(hyperlink.lookup_id)

        result.stats = ExtractionStats(
            total=len(result.hyperlinks) + len(result.invisible_hyperlinks),
            visible=len(result.hyperlinks),
            invisible=len(result.invisible_hyperlinks),
            unique_lookup_ids=len(result.unique_lookup_ids),
            with_content_id=sum(1 for h in result.hyperlinks if h.content_id),
            with_status_marker=sum(
                1 for h in result.hyperlinks if has_status_marker(h.display_text)
            ),
            parts_scanned=len(parts),
        )
        self._log.info(
            f"Extracted {result.stats.visible} hyperlinks ({result.stats.invisible} invisible, "
            f"{result.stats.unique_lookup_ids} unique lookup ids) from {package.path.name}"
        )
        return result

    def extract_part(self, package: DocxPackage, part_name: str) -> list[Hyperlink]:
        root = package.xml(part_name)
        relationships = package.relationships(part_name)
        hyperlinks: list[Hyperlink] = []
        for element in root.iter(W_HYPERLINK):
            if in_fallback(element):
                continue
            relationship_id = element.get(R_ID, "")
            address = ""
            sub_address = element.get(W_ANCHOR, "")
            if relationship_id:
                relationship = relationships.get(relationship_id)
                if relationship is None or not same_rel_type(relationship.type, REL_HYPERLINK):
                    self._log.warning(
                        f"Hyperlink {relationship_id} in {part_name} has no hyperlink relationship"
                    )
                    continue
                address, fragment = split_target(relationship.target)
                sub_address = fragment or sub_address
            if not address and not sub_address:
                continue

            display_text = element_text(element)
            hyperlinks.append(
                Hyperlink(
                    relationship_id=relationship_id,
                    display_text=display_text,
                    address=address,
                    sub_address=sub_address,
                    lookup_id=extract_lookup_id(address, sub_address, self._pattern),
                    content_id=extract_content_id(display_text),
                    part_name=part_name,
                    element=element,
                )
            )
        return hyperlinks
