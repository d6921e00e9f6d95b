"""
Monitor.

Leveled event sink handed explicitly to every service. Each event is
forwarded to a standard `logging.Logger` and also kept in a bounded
in-memory buffer, which the `/logs` endpoint exposes and which tests use
to assert on emitted events.
"""

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

from app.models.monitor import LogEntry

MAX_LOG_ENTRIES = 1000

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "SEVERE": logging.ERROR,
}


class Monitor:
    """
    Event sink used by the connector services.

    Example:
        >>> monitor = Monitor()
        >>> monitor.info("Received a health request")
        >>> monitor.entries()[-1].message
        'Received a health request'
    """

    def __init__(self, logger: Optional[logging.Logger] = None, max_entries: int = MAX_LOG_ENTRIES):
        self._logger = logger or logging.getLogger("app.monitor")
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def debug(self, message: str, *errors: BaseException) -> None:
        self._log("DEBUG", message, errors)

    def info(self, message: str, *errors: BaseException) -> None:
        self._log("INFO", message, errors)

    def warning(self, message: str, *errors: BaseException) -> None:
        self._log("WARNING", message, errors)

    def severe(self, message: str, *errors: BaseException) -> None:
        self._log("SEVERE", message, errors)

    def entries(self, level: Optional[str] = None) -> List[LogEntry]:
        """
        Returns a snapshot of the buffered events.

        Args:
            level (Optional[str]): Only return events of this level.

        Returns:
            List[LogEntry]: Oldest first.
        """

        with self._lock:
            snapshot = list(self._entries)
        if level:
            return [e for e in snapshot if e.level == level.upper()]
        return snapshot

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [e.message for e in self.entries(level)]

    def _log(self, level: str, message: str, errors) -> None:
        exc_info = errors[0] if errors else None
        self._logger.log(_LEVELS[level], message, exc_info=exc_info)

        full_message = message
        for error in errors:
            full_message += f"\nException: {error!r}"

        entry = LogEntry(timestamp=datetime.now(), level=level, message=full_message)
        with self._lock:
            self._entries.append(entry)
