import uuid
from dataclasses import dataclass, field
from enum import Enum


class MatchMode(str, Enum):
    EXACT = "Exact"
    CONTAINS = "Contains"
    STARTS_WITH = "StartsWith"
    ENDS_WITH = "EndsWith"


@dataclass(frozen=True)
class HyperlinkReplacementRule:
    """Retarget hyperlinks whose display text matches ``title_to_match``.

    ``title`` is the new display title (defaults to ``title_to_match``);
    ``document_id`` feeds the URL template (defaults to ``content_id``).
    """

    title_to_match: str
    content_id: str
    match_mode: MatchMode = MatchMode.EXACT
    enabled: bool = True
    title: str = ""
    document_id: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_active(self) -> bool:
        return self.enabled and bool(self.title_to_match.strip()) and bool(self.content_id.strip())

    @property
    def new_title(self) -> str:
        return (self.title or self.title_to_match).strip()

    @property
    def target_document_id(self) -> str:
        return (self.document_id or self.content_id).strip()


@dataclass(frozen=True)
class TextReplacementRule:
    source_text: str
    replacement_text: str
    enabled: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_active(self) -> bool:
        return (
            self.enabled
            and bool(self.source_text.strip())
            and bool(self.replacement_text.strip())
        )
