import zipfile
from pathlib import Path
from xml.sax.saxutils import escape, quoteattr

import pytest

from bulk_editor.config.context import ProcessingContext
from bulk_editor.config.settings import Settings
from bulk_editor.logging.logger import Log

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
MC_NS = "http://schemas.openxmlformats.org/markup-compatibility/2006"
WPS_NS = "http://schemas.microsoft.com/office/word/2010/wordprocessingShape"
PKG_RELS_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
ROOT_ATTRS = f'xmlns:w="{W_NS}" xmlns:r="{R_NS}" xmlns:mc="{MC_NS}" xmlns:wps="{WPS_NS}"'

CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/word/document.xml" '
    'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    "</Types>"
)
PACKAGE_RELS = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    f'<Relationships xmlns="{PKG_RELS_NS}">'
    f'<Relationship Id="rId1" Type="{R_NS}/officeDocument" Target="word/document.xml"/>'
    "</Relationships>"
)


class DocxBuilder:
    """Writes minimal but valid .docx packages for tests."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    @staticmethod
    def paragraph(text: str) -> str:
        return f'<w:p><w:r><w:t xml:space="preserve">{escape(text)}</w:t></w:r></w:p>'

    @staticmethod
    def hyperlink(relationship_id: str, text: str, anchor: str = "") -> str:
        attrs = f' r:id="{relationship_id}"' if relationship_id else ""
        if anchor:
            attrs += f" w:anchor={quoteattr(anchor)}"
        runs = (
            f'<w:r><w:rPr><w:rStyle w:val="Hyperlink"/></w:rPr>'
            f'<w:t xml:space="preserve">{escape(text)}</w:t></w:r>'
            if text
            else ""
        )
        return f"<w:p><w:hyperlink{attrs}>{runs}</w:hyperlink></w:p>"

    @staticmethod
    def text_box(inner: str) -> str:
        return (
            "<w:p><w:r><mc:AlternateContent><mc:Choice Requires=\"wps\">"
            f"<wps:txbx><w:txbxContent>{inner}</w:txbxContent></wps:txbx>"
            "</mc:Choice><mc:Fallback>"
            f"<w:pict><w:txbxContent>{inner}</w:txbxContent></w:pict>"
            "</mc:Fallback></mc:AlternateContent></w:r></w:p>"
        )

    def build(
        self,
        name: str = "sample.docx",
        body: list[str] | None = None,
        links: dict[str, str] | None = None,
        header: list[str] | None = None,
        header_links: dict[str, str] | None = None,
        footnotes: list[str] | None = None,
        footnote_links: dict[str, str] | None = None,
    ) -> Path:
        path = self._root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        document_rels = dict(links or {})
        extra_rels: list[str] = []
        parts: dict[str, str] = {
            "word/document.xml": (
                f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
                f"<w:document {ROOT_ATTRS}><w:body>{''.join(body or [])}<w:sectPr/></w:body></w:document>"
            ),
        }
        if header is not None:
            parts["word/header1.xml"] = f"<w:hdr {ROOT_ATTRS}>{''.join(header)}</w:hdr>"
            parts["word/_rels/header1.xml.rels"] = _relationships(header_links or {})
            extra_rels.append(
                f'<Relationship Id="rIdHeader1" Type="{R_NS}/header" Target="header1.xml"/>'
            )
        if footnotes is not None:
            parts["word/footnotes.xml"] = (
                f'<w:footnotes {ROOT_ATTRS}><w:footnote w:id="1">{"".join(footnotes)}'
                "</w:footnote></w:footnotes>"
            )
            parts["word/_rels/footnotes.xml.rels"] = _relationships(footnote_links or {})
            extra_rels.append(
                f'<Relationship Id="rIdFootnotes" Type="{R_NS}/footnotes" Target="footnotes.xml"/>'
            )
        parts["word/_rels/document.xml.rels"] = _relationships(document_rels, extra_rels)

        with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as archive:
            archive.writestr("[Content_Types].xml", CONTENT_TYPES)
            archive.writestr("_rels/.rels", PACKAGE_RELS)
            for part_name, xml in parts.items():
                archive.writestr(part_name, xml)
        return path


def _relationships(links: dict[str, str], extra: list[str] | None = None) -> str:
    entries = [
        f'<Relationship Id="{rid}" Type="{R_NS}/hyperlink" Target={quoteattr(target)} '
        'TargetMode="External"/>'
        for rid, target in links.items()
    ]
    entries.extend(extra or [])
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<Relationships xmlns="{PKG_RELS_NS}">{"".join(entries)}</Relationships>'
    )


@pytest.fixture()
def docx_builder(tmp_path: Path) -> DocxBuilder:
    return DocxBuilder(tmp_path / "docs")


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, with backups under tmp_path."""
    return Settings(
        _env_file=None,
        app_data_dir=str(tmp_path / "appdata"),
        metadata_provider="example",
        document_base_url="https://docs.example.com/nuxeo/thesource/",
    )


@pytest.fixture()
def context(settings: Settings) -> ProcessingContext:
    return ProcessingContext(settings=settings, log=Log("bulk_editor.tests"))
