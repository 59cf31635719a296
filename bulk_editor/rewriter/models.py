from dataclasses import dataclass, field

from bulk_editor.changelog.models import ChangeEntry
from bulk_editor.extraction.models import Hyperlink


@dataclass
class UpdateResult:
    """What the rewriter changed in one document."""

    updated_hyperlinks: list[Hyperlink] = field(default_factory=list)
    changes: list[ChangeEntry] = field(default_factory=list)
    urls_updated: int = 0
    content_ids_added: int = 0
    titles_replaced: int = 0
    title_differences: int = 0
    expired_marked: int = 0
    not_found_marked: int = 0
    removed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.updated_hyperlinks) or self.removed > 0

    def mark_updated(self, link: Hyperlink) -> None:
        if not any(existing is link for existing in self.updated_hyperlinks):
            self.updated_hyperlinks.append(link)
