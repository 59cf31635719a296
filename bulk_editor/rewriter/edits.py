"""In-place edits of hyperlink elements and their relationships."""

from bulk_editor.docx.package import DocxPackage
from bulk_editor.docx.text import set_element_text
from bulk_editor.extraction.extractor import R_ID, W_ANCHOR, W_HYPERLINK, split_target
from bulk_editor.extraction.models import Hyperlink
from bulk_editor.processor.exceptions import ContentError


def _require_element(link: Hyperlink) -> None:
    if link.element is None:
        raise ContentError(f"Hyperlink {link.element_id} is not attached to the document")


def set_hyperlink_text(package: DocxPackage, link: Hyperlink, text: str) -> None:
    _require_element(link)
    set_element_text(link.element, text)
    link.display_text = text
    package.mark_dirty(link.part_name)


def set_hyperlink_target(package: DocxPackage, link: Hyperlink, url: str) -> None:
    """Point the hyperlink at ``url``; the whole URL lives in the relationship target."""
    _require_element(link)
    relationships = package.relationships(link.part_name)
    if link.relationship_id and relationships.get(link.relationship_id) is not None:
        relationships.set_target(link.relationship_id, url)
    else:
        link.relationship_id = relationships.add_hyperlink(url)
        link.element.set(R_ID, link.relationship_id)
    if W_ANCHOR in link.element.attrib:
        del link.element.attrib[W_ANCHOR]
    link.address, link.sub_address = split_target(url)
    package.mark_dirty(link.part_name)


def remove_hyperlink(package: DocxPackage, link: Hyperlink) -> None:
    """Delete the hyperlink element; drop its relationship when nothing else uses it."""
    _require_element(link)
    parent = link.element.getparent()
    if parent is None:
        raise ContentError(f"Hyperlink {link.element_id} has no parent element")
    parent.remove(link.element)
    if link.relationship_id:
        root = package.xml(link.part_name)
        still_used = any(
            element.get(R_ID) == link.relationship_id for element in root.iter(W_HYPERLINK)
        )
        if not still_used:
            package.relationships(link.part_name).remove(link.relationship_id)
    link.element = None
    package.mark_dirty(link.part_name)
