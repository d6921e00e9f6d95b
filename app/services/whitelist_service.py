"""
Trusted participants whitelist.

Ordered set of participants this connector trusts as data trustees. The
order matters: when both negotiating parties trust several common
participants, the receiver picks the first one in its own order.
"""

import json
import threading
from pathlib import Path
from typing import List

from app.models.participant import Participant


class TrustedParticipantsWhitelist:
    """
    In-memory trusted participant list.

    Example:
        >>> whitelist = TrustedParticipantsWhitelist()
        >>> whitelist.add(Participant(name="trustee", url="http://trustee:9191/api/trusted-participants"))
        True
        >>> whitelist.add(Participant(id="did:web:t", name="trustee", url="http://trustee:9191/api/trusted-participants"))
        False
    """

    def __init__(self, participants: List[Participant] = None):
        self._participants: List[Participant] = []
        self._lock = threading.Lock()
        for participant in participants or []:
            self.add(participant)

    @classmethod
    def from_file(cls, path: Path) -> "TrustedParticipantsWhitelist":
        """
        Loads a whitelist from a JSON list of ``{id, name, url}`` objects.

        A missing file yields an empty whitelist.
        """

        if not path.exists():
            return cls()
        with open(path) as f:
            data = json.load(f)
        return cls([Participant.model_validate(item) for item in data])

    def add(self, participant: Participant) -> bool:
        """Appends a participant; returns False if `(name, url)` is already trusted."""
        with self._lock:
            if participant in self._participants:
                return False
            self._participants.append(participant)
            return True

    def remove(self, participant: Participant) -> bool:
        """Removes a participant; returns False if it was not trusted."""
        with self._lock:
            if participant not in self._participants:
                return False
            self._participants.remove(participant)
            return True

    def list(self) -> List[Participant]:
        with self._lock:
            return list(self._participants)
