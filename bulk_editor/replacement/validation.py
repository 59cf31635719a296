from bulk_editor.extraction.identifiers import contains_six_digits
from bulk_editor.processor.exceptions import RuleValidationError
from bulk_editor.replacement.models import HyperlinkReplacementRule, TextReplacementRule


def validate_hyperlink_rule(rule: HyperlinkReplacementRule) -> None:
    """Raises RuleValidationError for an empty title or a content id without 5-6 digits."""
    if not rule.title_to_match.strip():
        raise RuleValidationError(f"Hyperlink rule {rule.id}: title to match is empty")
    content_id = rule.content_id.strip()
    if not content_id:
        raise RuleValidationError(f"Hyperlink rule {rule.id}: content id is empty")
    digit_count = sum(char.isdigit() for char in content_id)
    if not contains_six_digits(content_id) and digit_count != 5:
        raise RuleValidationError(
            f"Hyperlink rule {rule.id}: content id '{content_id}' must contain 5 or 6 digits"
        )


def validate_text_rule(rule: TextReplacementRule) -> None:
    """Raises RuleValidationError for empty text or a source equal to its replacement."""
    source = rule.source_text.strip()
    replacement = rule.replacement_text.strip()
    if not source:
        raise RuleValidationError(f"Text rule {rule.id}: source text is empty")
    if not replacement:
        raise RuleValidationError(f"Text rule {rule.id}: replacement text is empty")
    if source.lower() == replacement.lower():
        raise RuleValidationError(
            f"Text rule {rule.id}: source and replacement are identical ('{source}'), "
            "which would replace text in a cycle"
        )


def validate_rules(
    hyperlink_rules: list[HyperlinkReplacementRule],
    text_rules: list[TextReplacementRule],
    max_rules: int,
) -> None:
    """Validate every enabled rule and the total rule count."""
    total = len(hyperlink_rules) + len(text_rules)
    if total > max_rules:
        raise RuleValidationError(f"Too many replacement rules: {total} (max {max_rules})")
    for hyperlink_rule in hyperlink_rules:
        if hyperlink_rule.enabled:
            validate_hyperlink_rule(hyperlink_rule)
    for text_rule in text_rules:
        if text_rule.enabled:
            validate_text_rule(text_rule)
