import logging
import sys


class Log:
    """Structured logging wrapper handed to components through their context."""

    ROOT_NAME = "bulk_editor"

    def __init__(self, name: str = ROOT_NAME) -> None:
        self._logger: logging.Logger = logging.getLogger(name)

    @classmethod
    def configure(cls, log_level: str) -> "Log":
        """Configure the root logger with the specified level and stdout handler."""
        logger = logging.getLogger(cls.ROOT_NAME)
        logger.setLevel(log_level.upper())
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
            )
            logger.addHandler(handler)
        return cls()

    @property
    def name(self) -> str:
        return self._logger.name

    def child(self, suffix: str) -> "Log":
        """Return a logger scoped below this one (e.g. bulk_editor.backup)."""
        return Log(f"{self._logger.name}.{suffix}")

    def info(self, message: str, **kwargs: object) -> None:
        self._logger.info(message, extra=kwargs)

    def error(self, message: str, **kwargs: object) -> None:
        self._logger.error(message, extra=kwargs)

    def warning(self, message: str, **kwargs: object) -> None:
        self._logger.warning(message, extra=kwargs)

    def debug(self, message: str, **kwargs: object) -> None:
        self._logger.debug(message, extra=kwargs)
