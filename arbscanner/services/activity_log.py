from typing import Deque, List
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime
import logging

DEFAULT_ACTIVITY_LIMIT = 15

@dataclass
class ActivityEntry:
    message: str
    type: str = "info"
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self):
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

class ActivityLog:
    """Append-only log of session lifecycle, execution and error events."""

    def __init__(self, max_entries: int = 100):
        self.logger = logging.getLogger(__name__)
        self._entries: Deque[ActivityEntry] = deque(maxlen=max_entries)

    async def add(self, message: str, type: str = "info") -> ActivityEntry:
        entry = ActivityEntry(message=message, type=type)
        self._entries.append(entry)
        self.logger.debug(f"Activity [{type}]: {message}")
        return entry

    async def list(self, limit: int = DEFAULT_ACTIVITY_LIMIT) -> List[ActivityEntry]:
        """Most recent entries first."""
        entries = list(reversed(self._entries))
        return entries[:limit]
