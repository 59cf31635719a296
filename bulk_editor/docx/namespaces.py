XML_NAMESPACES = {
    "w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "wp": "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing",
    "wps": "http://schemas.microsoft.com/office/word/2010/wordprocessingShape",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "v": "urn:schemas-microsoft-com:vml",
    "mc": "http://schemas.openxmlformats.org/markup-compatibility/2006",
    "pr": "http://schemas.openxmlformats.org/package/2006/relationships",
    "ct": "http://schemas.openxmlformats.org/package/2006/content-types",
}

XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

REL_TYPE_BASE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
REL_OFFICE_DOCUMENT = f"{REL_TYPE_BASE}/officeDocument"
REL_HYPERLINK = f"{REL_TYPE_BASE}/hyperlink"
REL_HEADER = f"{REL_TYPE_BASE}/header"
REL_FOOTER = f"{REL_TYPE_BASE}/footer"
REL_FOOTNOTES = f"{REL_TYPE_BASE}/footnotes"
REL_ENDNOTES = f"{REL_TYPE_BASE}/endnotes"

# Parts that can carry hyperlinks, in traversal order after the main part.
CONTENT_PART_TYPES = (REL_HEADER, REL_FOOTER, REL_FOOTNOTES, REL_ENDNOTES)


def qn(tag: str) -> str:
    """Clark notation for a prefixed tag: ``qn("w:t")`` -> ``{ns}t``."""
    prefix, local = tag.split(":", 1)
    return f"{{{XML_NAMESPACES[prefix]}}}{local}"
