"""
Trusted participants schemas.

This module defines the Pydantic schemas used by the trusted participants
API: whitelist listing, negotiation initiation, notification
acknowledgements and exchange entry projections.

Schemas:
    - TrustedParticipantsResponse: Whitelist content with its fingerprint.
    - NegotiateRequest: Body accepted by the negotiate endpoint.
    - NotificationAck: Answer to a relay notification.
    - CompletionNotification: Body of a completion callback.
    - ExchangeEntryResponse: Projection of an exchange entry.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.exchange import ExchangeEntry, ExchangeState
from app.models.participant import Participant


class TrustedParticipantsResponse(BaseModel):
    """
    Represents the whitelist of this connector.

    Example:
        >>> TrustedParticipantsResponse(participants=[], fingerprint="e3b0...")
    """

    participants: List[Participant]
    """Trusted participants in stored order."""

    fingerprint: str
    """Fingerprint of `participants` in that order."""


class NegotiateRequest(BaseModel):
    """
    Body of a negotiation initiated by this connector.

    The trusted participant list and its fingerprint are filled in by the
    connector itself.

    Example:
        >>> NegotiateRequest(
        ...     dataSource=Participant(name="provider", url="http://provider:9191/api/trusted-participants"),
        ...     dataSink=Participant(name="consumer", url="http://consumer:9191/api/trusted-participants"),
        ...     assets=["asset-1", "asset-2"]
        ... )
    """

    model_config = ConfigDict(populate_by_name=True)

    data_source: Optional[Participant] = Field(default=None, alias="dataSource")
    """Connector holding the assets; receives the negotiation request."""

    data_sink: Optional[Participant] = Field(default=None, alias="dataSink")
    """Connector that should end up with the assets."""

    assets: List[str] = Field(default_factory=list)
    """Identifiers of the assets to exchange."""


class NotificationAck(BaseModel):
    """Answer of the trustee to a relay notification."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    entry_id: str = Field(alias="entryId")


class CompletionNotification(BaseModel):
    """Body the trustee posts to each participant once an exchange completes."""

    message: str = ""
    role: str = ""


class ExchangeEntryResponse(BaseModel):
    """
    Projection of an exchange entry returned by the listing endpoint.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    provider: Optional[Participant] = None
    consumer: Optional[Participant] = None
    assets: List[str]
    state: ExchangeState
    created_at: datetime = Field(alias="createdAt")
    last_updated_at: datetime = Field(alias="lastUpdatedAt")

    @classmethod
    def from_entry(cls, entry: ExchangeEntry) -> "ExchangeEntryResponse":
        return cls(
            id=entry.id,
            provider=entry.provider,
            consumer=entry.consumer,
            assets=list(entry.assets),
            state=entry.state,
            created_at=entry.created_at,
            last_updated_at=entry.last_updated_at,
        )
