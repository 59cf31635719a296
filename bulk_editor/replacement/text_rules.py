"""Case-preserving whole-word text replacement."""

import re

from lxml import etree

from bulk_editor.changelog.models import ChangeEntry, ChangeType
from bulk_editor.docx.namespaces import qn
from bulk_editor.docx.package import DocxPackage
from bulk_editor.docx.text import W_T, collapse_runs, text_run_segments
from bulk_editor.replacement.models import TextReplacementRule


def capitalize_first_letter(text: str) -> str:
    for index, char in enumerate(text):
        if char.isalpha():
            return text[:index] + char.upper() + text[index + 1 :]
    return text


def preserve_case(matched: str, replacement: str) -> str:
    """Give ``replacement`` the capitalization pattern of ``matched``.

    ALL CAPS -> upper, all lower -> lower, leading capital -> first letter
    capitalized, anything else -> replacement as given.
    """
    letters = [char for char in matched if char.isalpha()]
    if not letters or not replacement:
        return replacement
    if all(char.isupper() for char in letters):
        return replacement.upper()
    if all(char.islower() for char in letters):
        return replacement.lower()
    if letters[0].isupper():
        return capitalize_first_letter(replacement)
    return replacement


def build_pattern(source: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(source)}(?!\w)", re.IGNORECASE)


def replace_preserving_case(text: str, source: str, replacement: str) -> tuple[str, int]:
    """Replace whole-word occurrences of ``source``; returns (new text, count).

    Surrounding whitespace of the rule values is ignored; whitespace in
    ``text`` is left as it is.
    """
    source = source.strip()
    replacement = replacement.strip()
    if not text or not source or not replacement:
        return text, 0

    def _substitute(match: re.Match[str]) -> str:
        return preserve_case(match.group(0), replacement)

    return build_pattern(source).subn(_substitute, text)


def apply_text_rules_to_paragraph(
    paragraph: etree._Element,
    rules: list[TextReplacementRule],
    element_id: str = "",
) -> list[ChangeEntry]:
    changes: list[ChangeEntry] = []
    for runs in text_run_segments(paragraph):
        original = "".join(node.text or "" for run in runs for node in run.iter(W_T))
        updated = original
        applied: list[str] = []
        for rule in rules:
            updated, count = replace_preserving_case(
                updated, rule.source_text, rule.replacement_text
            )
            if count:
                applied.append(f"'{rule.source_text}' -> '{rule.replacement_text}' x{count}")
        if updated == original:
            continue
        collapse_runs(runs, updated)
        changes.append(
            ChangeEntry(
                change_type=ChangeType.TEXT_REPLACED,
                description=f"Replaced text: {'; '.join(applied)}",
                old_value=original,
                new_value=updated,
                element_id=element_id,
            )
        )
    return changes


def apply_text_rules(package: DocxPackage, rules: list[TextReplacementRule]) -> list[ChangeEntry]:
    """Apply active text rules to every paragraph of every content part."""
    active = [rule for rule in rules if rule.is_active]
    if not active:
        return []
    changes: list[ChangeEntry] = []
    for part_name in package.content_parts():
        part_changes: list[ChangeEntry] = []
        for paragraph in package.xml(part_name).iter(qn("w:p")):
            part_changes.extend(apply_text_rules_to_paragraph(paragraph, active, part_name))
        if part_changes:
            package.mark_dirty(part_name)
            changes.extend(part_changes)
    return changes
