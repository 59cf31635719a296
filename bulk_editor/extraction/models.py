from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class HyperlinkStatus(str, Enum):
    PENDING = "Pending"
    VALID = "Valid"
    INVALID = "Invalid"
    EXPIRED = "Expired"
    NOT_FOUND = "NotFound"


class HyperlinkAction(str, Enum):
    NONE = "None"
    UPDATED = "Updated"
    REPLACED = "Replaced"
    REMOVED = "Removed"


@dataclass
class Hyperlink:
    """A hyperlink found in one part of a document.

    ``lookup_id`` is fixed once extracted; display text, target, status and
    action change as the rewriter works on the link.
    """

    relationship_id: str
    display_text: str
    address: str
    sub_address: str = ""
    lookup_id: str = ""
    content_id: str = ""
    part_name: str = ""
    status: HyperlinkStatus = HyperlinkStatus.PENDING
    action: HyperlinkAction = HyperlinkAction.NONE
    element: Any = field(default=None, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "lookup_id" and getattr(self, "lookup_id", "") and value != self.lookup_id:
            raise AttributeError("lookup_id cannot change once extracted")
        super().__setattr__(name, value)

    @property
    def target(self) -> str:
        if self.sub_address:
            return f"{self.address}#{self.sub_address}"
        return self.address

    @property
    def is_invisible(self) -> bool:
        return not self.display_text.strip() and bool(self.target)

    @property
    def element_id(self) -> str:
        return f"{self.part_name}:{self.relationship_id}"


@dataclass(frozen=True)
class ExtractionStats:
    total: int = 0
    visible: int = 0
    invisible: int = 0
    unique_lookup_ids: int = 0
    with_content_id: int = 0
    with_status_marker: int = 0
    parts_scanned: int = 0


@dataclass
class ExtractionResult:
    hyperlinks: list[Hyperlink] = field(default_factory=list)
    invisible_hyperlinks: list[Hyperlink] = field(default_factory=list)
    unique_lookup_ids: set[str] = field(default_factory=set)
    stats: ExtractionStats = field(default_factory=ExtractionStats)

    def with_lookup_id(self, lookup_id: str) -> list[Hyperlink]:
        key = lookup_id.upper()
        return [link for link in self.hyperlinks if link.lookup_id.upper() == key]
