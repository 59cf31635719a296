"""Whitespace cleanup for plain document text."""

import re

from lxml import etree

from bulk_editor.changelog.models import ChangeEntry, ChangeType
from bulk_editor.config.context import ProcessingContext
from bulk_editor.docx.namespaces import qn
from bulk_editor.docx.package import DocxPackage
from bulk_editor.docx.text import W_T, set_text_node, text_run_segments

_REPEATED_SPACES = re.compile(r" {2,}")


def collapse_spaces(text: str, after_space: bool = False) -> tuple[str, int]:
    """Collapse runs of spaces to one; returns (new text, collapsed runs).

    ``after_space`` means the preceding text already ended with a space, so
    leading spaces of ``text`` are dropped.
    """
    collapsed, count = _REPEATED_SPACES.subn(" ", text)
    if after_space and collapsed.startswith(" "):
        collapsed = collapsed[1:]
        count += 1
    return collapsed, count


def optimize_paragraph(paragraph: etree._Element) -> int:
    """Collapse repeated spaces in each text segment of ``paragraph``.

    Text nodes are edited in place so run formatting is kept; a space at the
    end of one node and the start of the next counts as repeated.
    """
    improvements = 0
    for runs in text_run_segments(paragraph):
        after_space = False
        for run in runs:
            for node in run.iter(W_T):
                text = node.text or ""
                if not text:
                    continue
                updated, count = collapse_spaces(text, after_space)
                if count:
                    set_text_node(node, updated)
                    improvements += count
                if updated:
                    after_space = updated.endswith(" ")
    return improvements


class TextOptimizer:
    """Collapses repeated spaces in plain text runs when ``optimize_text`` is on.

    Hyperlink, field and drawing content is never touched.
    """

    def __init__(self, context: ProcessingContext) -> None:
        self._enabled = context.settings.optimize_text
        self._log = context.log

    @property
    def enabled(self) -> bool:
        return self._enabled

    def optimize(self, package: DocxPackage) -> list[ChangeEntry]:
        improvements = 0
        touched: list[str] = []
        for part_name in package.content_parts():
            part_improvements = sum(
                optimize_paragraph(paragraph) for paragraph in package.xml(part_name).iter(qn("w:p"))
            )
            if part_improvements:
                package.mark_dirty(part_name)
                touched.append(part_name)
                improvements += part_improvements

        if not improvements:
            self._log.debug("No text optimization needed")
            return []
        self._log.info(f"Text optimization: {improvements} improvements in {len(touched)} parts")
        return [
            ChangeEntry(
                change_type=ChangeType.TEXT_OPTIMIZED,
                description=f"Text optimization completed: {improvements} improvements made",
                details=f"Collapsed repeated spaces in {', '.join(touched)}",
            )
        ]
