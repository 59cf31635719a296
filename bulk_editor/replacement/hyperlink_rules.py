from bulk_editor.changelog.models import ChangeEntry, ChangeType
from bulk_editor.docx.package import DocxPackage
from bulk_editor.extraction.identifiers import display_content_id, strip_content_id
from bulk_editor.extraction.models import Hyperlink, HyperlinkAction
from bulk_editor.replacement.models import HyperlinkReplacementRule, MatchMode
from bulk_editor.rewriter.edits import set_hyperlink_target, set_hyperlink_text
from bulk_editor.rewriter.urls import build_document_url


def matches_title(display_text: str, pattern: str, mode: MatchMode) -> bool:
    """Case-insensitive match of display text (content id removed) against a title."""
    text = strip_content_id(display_text).strip().lower()
    expected = pattern.strip().lower()
    if not text or not expected:
        return False
    if mode is MatchMode.EXACT:
        return text == expected
    if mode is MatchMode.CONTAINS:
        return expected in text
    if mode is MatchMode.STARTS_WITH:
        return text.startswith(expected)
    if mode is MatchMode.ENDS_WITH:
        return text.endswith(expected)
    raise ValueError(f"Unknown match mode: {mode}")


def find_matching_rule(
    display_text: str,
    rules: list[HyperlinkReplacementRule],
) -> HyperlinkReplacementRule | None:
    """First active rule whose title matches; later rules never apply."""
    for rule in rules:
        if rule.is_active and matches_title(display_text, rule.title_to_match, rule.match_mode):
            return rule
    return None


def replacement_text(rule: HyperlinkReplacementRule) -> str:
    return f"{rule.new_title} ({display_content_id(rule.content_id)})"


def apply_hyperlink_rules(
    package: DocxPackage,
    hyperlinks: list[Hyperlink],
    rules: list[HyperlinkReplacementRule],
    *,
    base_url: str,
    fragment_template: str,
) -> list[ChangeEntry]:
    changes: list[ChangeEntry] = []
    active = [rule for rule in rules if rule.is_active]
    if not active:
        return changes

    for link in hyperlinks:
        if link.element is None or link.is_invisible:
            continue
        rule = find_matching_rule(link.display_text, active)
        if rule is None:
            continue
        old_text = link.display_text
        old_target = link.target
        new_text = replacement_text(rule)
        new_url = build_document_url(base_url, fragment_template, rule.target_document_id)
        if new_text == old_text and new_url == old_target:
            continue
        set_hyperlink_text(package, link, new_text)
        set_hyperlink_target(package, link, new_url)
        link.action = HyperlinkAction.REPLACED
        changes.append(
            ChangeEntry(
                change_type=ChangeType.HYPERLINK_UPDATED,
                description=f"Replaced hyperlink '{old_text}' using rule '{rule.title_to_match}'",
                old_value=f"{old_text} | {old_target}",
                new_value=f"{new_text} | {new_url}",
                element_id=link.element_id,
                details=f"Rule {rule.id}, content id {rule.content_id}, match {rule.match_mode.value}",
            )
        )
    return changes
