"""Unified output manager for console and log file output.

Every user-facing line printed by the campuscache CLI also goes to the log,
so a maintenance session can be reconstructed from the log file alone.
"""

import logging
from typing import Any, Dict, List, Optional


def format_scope(tenant_abbr: str, user_id: Any, session_id: Optional[Any] = None) -> str:
    """Human-readable cache partition. Without a session only sessionless caches are meant."""
    text = f"{tenant_abbr} / user {user_id}"
    if session_id is not None:
        text += f" / session {session_id}"
    return text


class OutputManager:
    """Dual console/log output.

    Usage:
        from cli.output import get_output
        out = get_output(__name__)
        out.header("Cache Statistics")
        out.stat("Entries", 42)
        out.success("Done")
    """

    def __init__(self, logger: logging.Logger):
        """Initialize OutputManager with a logger.

        Args:
            logger: Logger instance for file output
        """
        self.logger = logger

    def info(self, msg: str) -> None:
        print(msg)
        self.logger.info(msg)

    def success(self, msg: str, emoji: str = "✓") -> None:
        print(f"{emoji} {msg}")
        self.logger.info(f"[SUCCESS] {msg}")

    def warning(self, msg: str, emoji: str = "⚠") -> None:
        print(f"{emoji} {msg}")
        self.logger.warning(msg)

    def error(self, msg: str, emoji: str = "❌") -> None:
        print(f"{emoji} {msg}")
        self.logger.error(msg)

    def header(self, title: str, width: int = 60) -> None:
        """Output section header.

        Args:
            title: Header title
            width: Width of the separator line
        """
        line = "=" * width
        print(f"\n{line}")
        print(f"  {title}")
        print(f"{line}\n")
        self.logger.info(f"=== {title} ===")

    def stat(self, label: str, value: Any, indent: int = 3) -> None:
        """Output a statistic or key-value pair.

        Args:
            label: Statistic label
            value: Statistic value
            indent: Number of spaces to indent
        """
        if value is None:
            value = "-"
        spaces = " " * indent
        print(f"{spaces}{label}: {value}")
        self.logger.info(f"STAT {label}={value}")

    def stats(self, stats_dict: Dict[str, Any], indent: int = 3) -> None:
        for label, value in stats_dict.items():
            self.stat(label, value, indent)

    def bullets(self, items: List[str], indent: int = 3) -> None:
        spaces = " " * indent
        for item in items:
            print(f"{spaces}- {item}")
            self.logger.info(f"  - {item}")

    def blank(self) -> None:
        print()

    def scope_header(
        self,
        title: str,
        tenant_abbr: str,
        user_id: Any,
        session_id: Optional[Any] = None,
    ) -> None:
        """Header naming one cache partition, e.g. "Feed Cache: dps / user 1042 / session 7"."""
        self.header(f"{title}: {format_scope(tenant_abbr, user_id, session_id)}")


# Output manager registry
_output_managers: Dict[str, OutputManager] = {}


def get_output(name: str = "campuscache") -> OutputManager:
    """Get or create an OutputManager for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        OutputManager instance
    """
    if name not in _output_managers:
        _output_managers[name] = OutputManager(logging.getLogger(name))
    return _output_managers[name]


__all__ = ["OutputManager", "format_scope", "get_output"]
