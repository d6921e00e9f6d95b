"""
Transfer model definitions.

A transfer task is created every time this connector dispatches a push
(including the push that ends a pull). Its state is never set directly: it
is derived from the outcome of the underlying asynchronous HTTP call.
"""

from enum import Enum

from pydantic import BaseModel


class TransferState(str, Enum):
    """
    State of a transfer task.

    - `PENDING`: just dispatched, reported on the handle returned to the caller.
    - `RUNNING`: the HTTP call has not finished yet.
    - `COMPLETED`: the target answered with a 2xx status.
    - `ERROR`: any other status, or a transport failure.
    - `UNKNOWN`: no task is registered under the id.
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"


class TransferTask(BaseModel):
    """
    Handle returned by push and pull operations.

    Example:
        >>> task = TransferTask(id="5b0c...", status=TransferState.PENDING)
        >>> task.status.value
        'PENDING'
    """

    id: str
    """Identifier under which the task is registered in the ledger."""

    status: TransferState = TransferState.PENDING
    """State at the time the handle was produced."""
