"""Reading and writing run text inside WordprocessingML elements."""

from lxml import etree

from bulk_editor.docx.namespaces import XML_SPACE, qn

W_R = qn("w:r")
W_T = qn("w:t")
W_RPR = qn("w:rPr")


def element_text(element: etree._Element) -> str:
    """Concatenated ``w:t`` text below ``element``."""
    return "".join(node.text or "" for node in element.iter(W_T))


def set_text_node(node: etree._Element, text: str) -> None:
    node.text = text
    if text != text.strip() or "  " in text:
        node.set(XML_SPACE, "preserve")
    elif XML_SPACE in node.attrib:
        del node.attrib[XML_SPACE]


def set_element_text(element: etree._Element, text: str) -> None:
    """Replace the visible text of ``element`` keeping the first run's formatting.

    The first ``w:t`` receives the whole text; other text nodes are removed,
    together with runs left holding nothing but properties.
    """
    nodes = list(element.iter(W_T))
    if not nodes:
        run = etree.SubElement(element, W_R)
        first = etree.SubElement(run, W_T)
    else:
        first = nodes[0]
        for extra in nodes[1:]:
            parent = extra.getparent()
            parent.remove(extra)
            if parent.tag == W_R and is_empty_run(parent):
                parent.getparent().remove(parent)
    set_text_node(first, text)


def is_empty_run(run: etree._Element) -> bool:
    return all(child.tag == W_RPR for child in run)


def is_plain_text_run(node: etree._Element) -> bool:
    """A run holding only properties and text nodes."""
    if node.tag != W_R:
        return False
    has_text = False
    for child in node:
        if child.tag == W_T:
            has_text = True
        elif child.tag != W_RPR:
            return False
    return has_text


def text_run_segments(paragraph: etree._Element) -> list[list[etree._Element]]:
    """Groups of consecutive plain text runs that are direct children of ``paragraph``.

    Anything else (hyperlinks, fields, drawings, tabs) ends a segment so
    replacements never cross it.
    """
    segments: list[list[etree._Element]] = []
    current: list[etree._Element] = []
    for child in paragraph:
        if is_plain_text_run(child):
            current.append(child)
            continue
        if child.tag in (qn("w:pPr"), qn("w:proofErr"), qn("w:bookmarkStart"), qn("w:bookmarkEnd")):
            continue
        if current:
            segments.append(current)
            current = []
    if current:
        segments.append(current)
    return segments


def collapse_runs(runs: list[etree._Element], text: str) -> None:
    """Write ``text`` into the first run and drop the rest of the segment."""
    first = runs[0]
    nodes = first.findall(W_T)
    set_text_node(nodes[0], text)
    for extra in nodes[1:]:
        first.remove(extra)
    for run in runs[1:]:
        run.getparent().remove(run)
