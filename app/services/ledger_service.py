"""
Transfer ledger.

Keeps the asynchronous task behind every transfer id and derives the
transfer state from the task's outcome.
"""

import asyncio
import threading
from typing import Dict

import httpx

from app.models.transfer import TransferState


class TransferLedger:
    """
    Maps transfer ids to the `asyncio.Task` performing the transfer.

    A registered task must resolve to an `httpx.Response`; its status code
    decides between `COMPLETED` and `ERROR`. At most `max_finished` finished
    transfers are kept; older ones are forgotten and report `UNKNOWN`.
    """

    def __init__(self, max_finished: int = 1000):
        self.max_finished = max_finished
        self._tasks: Dict[str, asyncio.Task] = {}
        self._lock = threading.Lock()

    def register(self, transfer_id: str, task: asyncio.Task) -> None:
        with self._lock:
            self._tasks[transfer_id] = task
            self._evict()

    def _evict(self) -> None:
        finished = [tid for tid, task in self._tasks.items() if task.done()]
        for tid in finished[:max(0, len(finished) - self.max_finished)]:
            del self._tasks[tid]

    def __contains__(self, transfer_id: str) -> bool:
        with self._lock:
            return transfer_id in self._tasks

    def state_of(self, transfer_id: str) -> TransferState:
        """
        Returns the state of a transfer.

        Args:
            transfer_id (str): Id returned when the transfer was dispatched.

        Returns:
            TransferState: `UNKNOWN` for an unregistered id, `RUNNING` while
            the task is pending, `COMPLETED` for a 2xx response and `ERROR`
            for anything else.
        """

        with self._lock:
            task = self._tasks.get(transfer_id)
        if task is None:
            return TransferState.UNKNOWN
        if not task.done():
            return TransferState.RUNNING
        if task.cancelled() or task.exception() is not None:
            return TransferState.ERROR
        response = task.result()
        if isinstance(response, httpx.Response) and response.is_success:
            return TransferState.COMPLETED
        return TransferState.ERROR
