from dataclasses import dataclass, field

from bulk_editor.config.settings import Settings
from bulk_editor.logging.logger import Log


@dataclass(frozen=True)
class ProcessingContext:
    """Settings and logger passed explicitly to every component."""

    settings: Settings
    log: Log = field(default_factory=Log)

    def for_component(self, name: str) -> "ProcessingContext":
        """Same settings, logger scoped to the named component."""
        return ProcessingContext(settings=self.settings, log=self.log.child(name))
