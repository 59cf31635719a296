"""Zip-packaged WordprocessingML document: parts, relationships, atomic save."""

import os
import posixpath
import time
import uuid
import zipfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from lxml import etree

from bulk_editor.docx.namespaces import (
    CONTENT_PART_TYPES,
    REL_HYPERLINK,
    REL_OFFICE_DOCUMENT,
    qn,
)
from bulk_editor.processor.exceptions import ContentError, DocumentValidationError

CONTENT_TYPES_PART = "[Content_Types].xml"
PACKAGE_RELS_PART = "_rels/.rels"
DEFAULT_MAIN_PART = "word/document.xml"

_PARSER = etree.XMLParser(resolve_entities=False, huge_tree=True)


def rels_part_name(part_name: str) -> str:
    """``word/document.xml`` -> ``word/_rels/document.xml.rels``."""
    directory, name = posixpath.split(part_name)
    return posixpath.join(directory, "_rels", f"{name}.rels")


def resolve_target(source_part: str, target: str) -> str:
    """Resolve an internal relationship target relative to its source part."""
    if target.startswith("/"):
        return target.lstrip("/")
    base = posixpath.dirname(source_part)
    return posixpath.normpath(posixpath.join(base, target))


def same_rel_type(actual: str, expected: str) -> bool:
    """Compare relationship types by their last segment (transitional and strict URIs)."""
    return actual.rsplit("/", 1)[-1] == expected.rsplit("/", 1)[-1]


def parse_xml(data: bytes, part_name: str) -> etree._Element:
    try:
        return etree.fromstring(data, _PARSER)
    except etree.XMLSyntaxError as exc:
        raise ContentError(f"Malformed XML in part {part_name}: {exc}") from exc


@dataclass(frozen=True)
class Relationship:
    id: str
    type: str
    target: str
    external: bool


class Relationships:
    """Editable view of one ``.rels`` part."""

    def __init__(
        self,
        part_name: str,
        root: etree._Element,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        self.part_name = part_name
        self._root = root
        self._on_change = on_change

    @property
    def root(self) -> etree._Element:
        return self._root

    def __iter__(self):
        for element in self._root.iter(qn("pr:Relationship")):
            yield self._to_relationship(element)

    def get(self, relationship_id: str) -> Relationship | None:
        element = self._find(relationship_id)
        return self._to_relationship(element) if element is not None else None

    def by_type(self, rel_type: str) -> list[Relationship]:
        return [rel for rel in self if same_rel_type(rel.type, rel_type)]

    def set_target(self, relationship_id: str, target: str) -> None:
        element = self._find(relationship_id)
        if element is None:
            raise ContentError(
                f"Relationship {relationship_id} not found in {self.part_name}"
            )
        element.set("Target", target)
        self._changed()

    def add_hyperlink(self, target: str) -> str:
        existing = {rel.id for rel in self}
        number = len(existing) + 1
        while f"rId{number}" in existing:
            number += 1
        relationship_id = f"rId{number}"
        etree.SubElement(
            self._root,
            qn("pr:Relationship"),
            Id=relationship_id,
            Type=REL_HYPERLINK,
            Target=target,
            TargetMode="External",
        )
        self._changed()
        return relationship_id

    def remove(self, relationship_id: str) -> bool:
        element = self._find(relationship_id)
        if element is None:
            return False
        self._root.remove(element)
        self._changed()
        return True

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.part_name)

    def _find(self, relationship_id: str) -> etree._Element | None:
        for element in self._root.iter(qn("pr:Relationship")):
            if element.get("Id") == relationship_id:
                return element
        return None

    @staticmethod
    def _to_relationship(element: etree._Element) -> Relationship:
        return Relationship(
            id=element.get("Id", ""),
            type=element.get("Type", ""),
            target=element.get("Target", ""),
            external=element.get("TargetMode", "") == "External",
        )


class DocxPackage:
    """In-memory package. Parts are parsed lazily and re-serialized on save."""

    def __init__(self, path: Path, parts: dict[str, bytes], infos: list[zipfile.ZipInfo]) -> None:
        self.path = Path(path)
        self._parts = parts
        self._infos = infos
        self._trees: dict[str, etree._Element] = {}
        self._rels: dict[str, Relationships] = {}
        self._dirty: set[str] = set()
        self.main_part_name = self._find_main_part()

    @classmethod
    def open(cls, path: Path | str) -> "DocxPackage":
        """Read and validate a package.

        Raises:
            DocumentValidationError: not a zip, no content types, no main part or no body.
        """
        path = Path(path)
        try:
            with zipfile.ZipFile(path) as archive:
                infos = archive.infolist()
                parts = {info.filename: archive.read(info.filename) for info in infos}
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            raise DocumentValidationError(f"Corrupt package {path.name}: {exc}") from exc
        except OSError as exc:
            raise DocumentValidationError(f"Cannot read {path}: {exc}") from exc

        if CONTENT_TYPES_PART not in parts:
            raise DocumentValidationError(f"Corrupt package {path.name}: missing content types")
        try:
            package = cls(path, parts, infos)
            if package.main_part_name not in parts:
                raise DocumentValidationError(f"{path.name} has no main document part")
            body = package.body
        except ContentError as exc:
            raise DocumentValidationError(str(exc)) from exc
        if body is None:
            raise DocumentValidationError(f"{path.name} main document part has no body")
        return package

    @property
    def part_names(self) -> list[str]:
        return list(self._parts)

    @property
    def body(self) -> etree._Element | None:
        return self.xml(self.main_part_name).find(qn("w:body"))

    def has_part(self, part_name: str) -> bool:
        return part_name in self._parts

    def xml(self, part_name: str) -> etree._Element:
        """Parsed root of a part; cached so edits persist until save."""
        if part_name not in self._trees:
            if part_name not in self._parts:
                raise ContentError(f"Part {part_name} not found in {self.path.name}")
            self._trees[part_name] = parse_xml(self._parts[part_name], part_name)
        return self._trees[part_name]

    def mark_dirty(self, part_name: str) -> None:
        self._dirty.add(part_name)

    @property
    def is_dirty(self) -> bool:
        return bool(self._dirty)

    def relationships(self, part_name: str) -> Relationships:
        rels_name = rels_part_name(part_name)
        if rels_name not in self._rels:
            if rels_name in self._parts:
                root = parse_xml(self._parts[rels_name], rels_name)
            else:
                root = etree.Element(
                    qn("pr:Relationships"),
                    nsmap={None: "http://schemas.openxmlformats.org/package/2006/relationships"},
                )
            self._rels[rels_name] = Relationships(rels_name, root, on_change=self.mark_dirty)
        return self._rels[rels_name]

    def content_parts(self) -> list[str]:
        """Main part first, then headers, footers, footnotes and endnotes."""
        names = [self.main_part_name]
        relationships = self.relationships(self.main_part_name)
        for rel_type in CONTENT_PART_TYPES:
            for rel in relationships.by_type(rel_type):
                if rel.external:
                    continue
                name = resolve_target(self.main_part_name, rel.target)
                if name in self._parts and name not in names:
                    names.append(name)
        return names

    def serialize(self) -> dict[str, bytes]:
        """Current bytes of every part, with edited parts re-serialized."""
        parts = dict(self._parts)
        for part_name in self._dirty:
            if part_name in self._trees:
                parts[part_name] = _to_bytes(self._trees[part_name])
            elif part_name in self._rels:
                parts[part_name] = _to_bytes(self._rels[part_name].root)
        return parts

    def save(self, path: Path | str | None = None) -> Path:
        """Write the package atomically: temp file in the target directory, then replace."""
        target = Path(path) if path is not None else self.path
        parts = self.serialize()
        temp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            with zipfile.ZipFile(temp_path, "w", zipfile.ZIP_DEFLATED) as archive:
                written: set[str] = set()
                for info in self._infos:
                    if info.filename in parts and info.filename not in written:
                        entry = zipfile.ZipInfo(info.filename, date_time=info.date_time)
                        entry.external_attr = info.external_attr
                        archive.writestr(entry, parts[info.filename], zipfile.ZIP_DEFLATED)
                        written.add(info.filename)
                for name, data in parts.items():
                    if name not in written:
                        archive.writestr(name, data)
            os.replace(temp_path, target)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
        self._parts = parts
        self._dirty.clear()
        return target

    def _find_main_part(self) -> str:
        if PACKAGE_RELS_PART not in self._parts:
            return DEFAULT_MAIN_PART
        root = parse_xml(self._parts[PACKAGE_RELS_PART], PACKAGE_RELS_PART)
        for element in root.iter(qn("pr:Relationship")):
            if same_rel_type(element.get("Type", ""), REL_OFFICE_DOCUMENT):
                return resolve_target("", element.get("Target", DEFAULT_MAIN_PART))
        return DEFAULT_MAIN_PART


def _to_bytes(root: etree._Element) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)


def verify_package(
    path: Path,
    attempts: int = 3,
    delay_seconds: float = 0.1,
    sleep: Callable[[float], None] | None = None,
) -> DocxPackage:
    """Reopen a saved package and check it still has a main part with a body.

    Retries with a delay of ``delay_seconds * attempt`` to ride out slow
    volumes that have not finished flushing.

    Raises:
        DocumentValidationError: if the package is still unreadable after the last attempt.
    """
    sleeper = sleep or time.sleep
    last_error: DocumentValidationError | None = None
    for attempt in range(1, attempts + 1):
        try:
            return DocxPackage.open(path)
        except DocumentValidationError as exc:
            last_error = exc
            if attempt < attempts:
                sleeper(delay_seconds * attempt)
    if last_error is None:
        raise ValueError("attempts must be at least 1")
    raise last_error
