"""
Monitor log entry model.
"""

from datetime import datetime

from pydantic import BaseModel


class LogEntry(BaseModel):
    """A single event recorded by the monitor."""

    timestamp: datetime
    level: str
    message: str
