"""
Helmsman settings and logging setup.

Settings are gathered from three places, later ones winning:
1. built-in defaults;
2. the host program: `__prog__`, `__styles__` and `__codes__` attributes of
   __main__, plus the HELMSMAN_LOG_LEVEL and HELMSMAN_TIMEOUT environment
   variables;
3. keyword overrides passed to Settings.load().

configure_logging() routes the `helmsman` logger through rich's RichHandler
on stderr.
"""
import dataclasses
import logging
import os
import sys
from types import MappingProxyType

from rich.console import Console
from rich.logging import RichHandler

from .utils import freeze

logger = logging.getLogger(__name__)

LOG_LEVEL_VARIABLE = "HELMSMAN_LOG_LEVEL"
TIMEOUT_VARIABLE = "HELMSMAN_TIMEOUT"


def _default_prog():
    name = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else ""
    return name if name and name not in ("-c", "-m", "__main__.py") else "helmsman"


@dataclasses.dataclass(frozen=True, slots=True)
class Settings:
    """
    Runtime options of a Dispatcher.

    - prog: program name shown in usage lines and fault headers.
    - fancy: render faults and help inside a panel.
    - colorful: apply styles (False prints plain text).
    - styles: palette overrides, merged over the built-in ones.
    - codes: FaultCode → label overrides for fault headers.
    - log_level: level of the `helmsman` logger (name or number).
    - timeout: seconds before the dispatch cancels itself, or None.
    """
    prog: str = "helmsman"
    fancy: bool = False
    colorful: bool = True
    styles: MappingProxyType = dataclasses.field(default_factory=lambda: MappingProxyType({}))
    codes: MappingProxyType = dataclasses.field(default_factory=lambda: MappingProxyType({}))
    log_level: str | int = "WARNING"
    timeout: float | None = None

    @classmethod
    def load(cls, /, *, environ=None, **overrides):
        """
        Build settings from __main__, the environment and `overrides`.

        Raises
        - TypeError for unknown override names.
        - ValueError for a malformed HELMSMAN_TIMEOUT.
        """
        unknown = set(overrides) - {field.name for field in dataclasses.fields(cls)}
        if unknown:
            raise TypeError("unknown setting(s): %s" % ", ".join(sorted(unknown)))

        environ = os.environ if environ is None else environ
        main = __import__("__main__")

        values = {
            "prog": getattr(main, "__prog__", None) or _default_prog(),
            "styles": getattr(main, "__styles__", {}),
            "codes": getattr(main, "__codes__", {}),
        }
        if level := environ.get(LOG_LEVEL_VARIABLE):
            values["log_level"] = level.strip().upper()
        if timeout := environ.get(TIMEOUT_VARIABLE):
            try:
                values["timeout"] = float(timeout)
            except ValueError:
                raise ValueError(f"{TIMEOUT_VARIABLE} must be a number of seconds, got {timeout!r}") from None

        values |= overrides
        values["styles"] = freeze(values["styles"] or {})
        values["codes"] = freeze(values["codes"] or {})
        if values.get("timeout") is not None and values["timeout"] <= 0:
            raise ValueError("timeout must be a positive number of seconds")
        return cls(**values)

    def replace(self, **overrides):
        return dataclasses.replace(self, **overrides)


def configure_logging(level="WARNING", /, *, console=None):
    """
    Send `helmsman` log records to stderr through a RichHandler.

    Calling it again only updates the level; a single handler is installed.
    Returns the `helmsman` logger.
    """
    root = logging.getLogger("helmsman")
    root.setLevel(level)
    if not any(isinstance(handler, RichHandler) for handler in root.handlers):
        root.addHandler(RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        ))
    logger.debug("logging configured at %s", logging.getLevelName(root.level))
    return root


__all__ = (
    "LOG_LEVEL_VARIABLE",
    "TIMEOUT_VARIABLE",
    "Settings",
    "configure_logging",
)
