"""
Data exchange model definitions.

An exchange entry correlates the notifications a trustee receives from a
provider and a consumer for the same set of assets and tracks the
exchange through its lifecycle.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from app.models.participant import Participant


class ExchangeState(str, Enum):
    """Lifecycle of an exchange entry."""

    NOT_READY = "NOT_READY"
    READY = "READY"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ExchangeState.COMPLETED, ExchangeState.FAILED)


class ExchangeEntry(BaseModel):
    """
    One correlated provider/consumer pair sharing an asset set.

    The asset list keeps the order of the first notification for display;
    matching against later notifications uses set semantics.

    Example:
        >>> entry = ExchangeEntry(assets=["a1", "a2"])
        >>> entry.state
        <ExchangeState.NOT_READY: 'NOT_READY'>
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    provider: Optional[Participant] = None
    consumer: Optional[Participant] = None
    assets: List[str] = Field(default_factory=list)
    state: ExchangeState = ExchangeState.NOT_READY
    created_at: datetime = Field(default_factory=datetime.now, alias="createdAt")
    last_updated_at: datetime = Field(default_factory=datetime.now, alias="lastUpdatedAt")

    @property
    def asset_set(self) -> frozenset:
        return frozenset(self.assets)

    @property
    def is_complete(self) -> bool:
        """True once both the provider and the consumer are known."""
        return self.provider is not None and self.consumer is not None

    def participant(self, role: str) -> Optional[Participant]:
        return self.provider if role == "provider" else self.consumer

    def attach(self, role: str, participant: Participant) -> None:
        if role == "provider":
            self.provider = participant
        else:
            self.consumer = participant
        self.touch()

    def set_state(self, state: ExchangeState) -> None:
        self.state = state
        self.touch()

    def touch(self) -> None:
        self.last_updated_at = datetime.now()
