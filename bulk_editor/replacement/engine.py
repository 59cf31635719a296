from bulk_editor.changelog.models import ChangeEntry
from bulk_editor.config.context import ProcessingContext
from bulk_editor.docx.package import DocxPackage
from bulk_editor.extraction.models import Hyperlink
from bulk_editor.replacement.hyperlink_rules import apply_hyperlink_rules
from bulk_editor.replacement.models import HyperlinkReplacementRule, TextReplacementRule
from bulk_editor.replacement.text_rules import apply_text_rules
from bulk_editor.replacement.validation import validate_rules


class ReplacementEngine:
    """Applies user hyperlink and text rules, each category switchable in settings."""

    def __init__(self, context: ProcessingContext) -> None:
        settings = context.settings
        self._log = context.log
        self._base_url = settings.document_base_url
        self._fragment_template = settings.document_view_fragment
        self._hyperlinks_enabled = settings.enable_hyperlink_replacement
        self._text_enabled = settings.enable_text_replacement
        self._hyperlink_rules = list(settings.hyperlink_rules)
        self._text_rules = list(settings.text_rules)
        self._max_rules = settings.max_replacement_rules

    @property
    def enabled(self) -> bool:
        return (self._hyperlinks_enabled and bool(self._hyperlink_rules)) or (
            self._text_enabled and bool(self._text_rules)
        )

    def validate(self) -> None:
        """Raises RuleValidationError when a configured rule is invalid."""
        validate_rules(
            self._hyperlink_rules if self._hyperlinks_enabled else [],
            self._text_rules if self._text_enabled else [],
            self._max_rules,
        )

    def apply(self, package: DocxPackage, hyperlinks: list[Hyperlink]) -> list[ChangeEntry]:
        """Run both categories with the configured rules."""
        changes: list[ChangeEntry] = []
        if self._hyperlinks_enabled:
            changes.extend(self.apply_hyperlink_rules(package, hyperlinks, self._hyperlink_rules))
        if self._text_enabled:
            changes.extend(self.apply_text_rules(package, self._text_rules))
        return changes

    def apply_hyperlink_rules(
        self,
        package: DocxPackage,
        hyperlinks: list[Hyperlink],
        rules: list[HyperlinkReplacementRule],
    ) -> list[ChangeEntry]:
        changes = apply_hyperlink_rules(
            package,
            hyperlinks,
            rules,
            base_url=self._base_url,
            fragment_template=self._fragment_template,
        )
        if changes:
            self._log.info(f"Hyperlink rules replaced {len(changes)} hyperlinks in {package.path.name}")
        return changes

    def apply_text_rules(
        self,
        package: DocxPackage,
        rules: list[TextReplacementRule],
    ) -> list[ChangeEntry]:
        changes = apply_text_rules(package, rules)
        if changes:
            self._log.info(f"Text rules changed {len(changes)} text runs in {package.path.name}")
        return changes
