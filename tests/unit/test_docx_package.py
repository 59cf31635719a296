import zipfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from lxml import etree

from bulk_editor.docx.namespaces import REL_HYPERLINK, qn
from bulk_editor.docx.package import (
    DocxPackage,
    resolve_target,
    rels_part_name,
    same_rel_type,
    verify_package,
)
from bulk_editor.docx.text import collapse_runs, set_element_text, text_run_segments
from bulk_editor.processor.exceptions import DocumentValidationError

W = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"


def _paragraph(xml: str) -> etree._Element:
    return etree.fromstring(f'<w:p xmlns:w="{W}">{xml}</w:p>')


class TestPartNames:
    def test_rels_part_name(self) -> None:
        assert rels_part_name("word/document.xml") == "word/_rels/document.xml.rels"

    def test_resolve_target_relative(self) -> None:
        assert resolve_target("word/document.xml", "header1.xml") == "word/header1.xml"

    def test_resolve_target_absolute(self) -> None:
        assert resolve_target("word/document.xml", "/word/footnotes.xml") == "word/footnotes.xml"

    def test_same_rel_type_accepts_strict_namespace(self) -> None:
        strict = "http://purl.oclc.org/ooxml/officeDocument/relationships/hyperlink"
        assert same_rel_type(strict, REL_HYPERLINK)


class TestOpen:
    def test_opens_valid_package(self, docx_builder) -> None:
        path = docx_builder.build(body=[docx_builder.paragraph("Hello")])

        package = DocxPackage.open(path)

        assert package.main_part_name == "word/document.xml"
        assert package.body is not None

    def test_not_a_zip(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.docx"
        path.write_bytes(b"not a zip")
        with pytest.raises(DocumentValidationError):
            DocxPackage.open(path)

    def test_missing_main_part(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.docx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("[Content_Types].xml", "<Types/>")
        with pytest.raises(DocumentValidationError, match="main document part"):
            DocxPackage.open(path)

    def test_missing_body(self, tmp_path: Path) -> None:
        path = tmp_path / "nobody.docx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("[Content_Types].xml", "<Types/>")
            archive.writestr("word/document.xml", f'<w:document xmlns:w="{W}"/>')
        with pytest.raises(DocumentValidationError, match="no body"):
            DocxPackage.open(path)

    def test_malformed_xml(self, tmp_path: Path) -> None:
        path = tmp_path / "malformed.docx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("[Content_Types].xml", "<Types/>")
            archive.writestr("word/document.xml", "<w:document")
        with pytest.raises(DocumentValidationError):
            DocxPackage.open(path)


class TestContentParts:
    def test_main_then_header_then_footnotes(self, docx_builder) -> None:
        path = docx_builder.build(
            body=[docx_builder.paragraph("Body")],
            header=[docx_builder.paragraph("Header")],
            footnotes=[docx_builder.paragraph("Note")],
        )

        package = DocxPackage.open(path)

        assert package.content_parts() == [
            "word/document.xml",
            "word/header1.xml",
            "word/footnotes.xml",
        ]


class TestRelationships:
    def test_set_target_marks_dirty(self, docx_builder) -> None:
        path = docx_builder.build(
            body=[docx_builder.hyperlink("rId5", "Link")], links={"rId5": "https://old.example.com"}
        )
        package = DocxPackage.open(path)
        rels = package.relationships("word/document.xml")

        rels.set_target("rId5", "https://new.example.com")

        assert rels.get("rId5").target == "https://new.example.com"
        assert package.is_dirty

    def test_add_and_remove_hyperlink(self, docx_builder) -> None:
        path = docx_builder.build(body=[docx_builder.paragraph("x")], links={"rId5": "https://a"})
        package = DocxPackage.open(path)
        rels = package.relationships("word/document.xml")

        new_id = rels.add_hyperlink("https://b")

        assert new_id not in {"rId5"}
        assert rels.get(new_id).external is True
        assert rels.remove(new_id) is True
        assert rels.get(new_id) is None


class TestSave:
    def test_save_round_trip(self, docx_builder) -> None:
        path = docx_builder.build(
            body=[docx_builder.hyperlink("rId5", "Link")], links={"rId5": "https://old.example.com"}
        )
        package = DocxPackage.open(path)
        package.relationships("word/document.xml").set_target("rId5", "https://new.example.com")
        first_text = next(package.body.iter(qn("w:t")))
        first_text.text = "Changed"
        package.mark_dirty("word/document.xml")

        package.save()

        reopened = DocxPackage.open(path)
        assert reopened.relationships("word/document.xml").get("rId5").target == "https://new.example.com"
        assert next(reopened.body.iter(qn("w:t"))).text == "Changed"
        assert not package.is_dirty

    def test_save_keeps_part_order(self, docx_builder) -> None:
        path = docx_builder.build(body=[docx_builder.paragraph("x")])
        with zipfile.ZipFile(path) as archive:
            before = archive.namelist()

        DocxPackage.open(path).save()

        with zipfile.ZipFile(path) as archive:
            assert archive.namelist() == before

    def test_no_temp_files_left(self, docx_builder) -> None:
        path = docx_builder.build(body=[docx_builder.paragraph("x")])
        DocxPackage.open(path).save()
        assert [p.name for p in path.parent.iterdir()] == [path.name]


class TestVerifyPackage:
    def test_returns_package(self, docx_builder) -> None:
        path = docx_builder.build(body=[docx_builder.paragraph("x")])
        assert verify_package(path).body is not None

    def test_retries_with_growing_delay(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.docx"
        path.write_bytes(b"garbage")
        sleep = MagicMock()

        with pytest.raises(DocumentValidationError):
            verify_package(path, attempts=3, delay_seconds=0.1, sleep=sleep)

        assert [call.args[0] for call in sleep.call_args_list] == [0.1, 0.2]

    def test_zero_attempts_rejected(self, docx_builder) -> None:
        path = docx_builder.build(body=[docx_builder.paragraph("x")])
        with pytest.raises(ValueError, match="attempts"):
            verify_package(path, attempts=0)


class TestText:
    def test_set_element_text_keeps_first_run(self) -> None:
        paragraph = _paragraph(
            '<w:r><w:rPr><w:b/></w:rPr><w:t>Hello </w:t></w:r><w:r><w:t>World</w:t></w:r>'
        )

        set_element_text(paragraph, "Replaced")

        runs = paragraph.findall(qn("w:r"))
        assert len(runs) == 1
        assert runs[0].find(qn("w:rPr")) is not None
        assert runs[0].find(qn("w:t")).text == "Replaced"

    def test_segments_break_at_hyperlinks(self) -> None:
        paragraph = _paragraph(
            "<w:r><w:t>before</w:t></w:r>"
            "<w:hyperlink><w:r><w:t>link</w:t></w:r></w:hyperlink>"
            "<w:r><w:t>after</w:t></w:r><w:r><w:t> more</w:t></w:r>"
        )

        segments = text_run_segments(paragraph)

        assert [len(runs) for runs in segments] == [1, 2]

    def test_collapse_runs_preserves_spaces(self) -> None:
        paragraph = _paragraph("<w:r><w:t>a</w:t></w:r><w:r><w:t>b</w:t></w:r>")
        runs = paragraph.findall(qn("w:r"))

        collapse_runs(runs, " spaced ")

        texts = [node.text for node in paragraph.iter(qn("w:t"))]
        assert texts == [" spaced "]
        node = next(paragraph.iter(qn("w:t")))
        assert node.get("{http://www.w3.org/XML/1998/namespace}space") == "preserve"
