"""
Negotiation model definitions.

These models are exchanged between two connectors while they look for a
commonly trusted data trustee, and between each connector and the chosen
trustee afterwards. Field names on the wire are camelCase.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.participant import Participant


class NegotiationRequest(BaseModel):
    """
    Sent by the initiating connector to the data source's
    `receive-negotiation` endpoint.

    Example:
        >>> request = NegotiationRequest(
        ...     dataSource=Participant(name="provider", url="http://provider:9191/api/trusted-participants"),
        ...     dataSink=Participant(name="consumer", url="http://consumer:9191/api/trusted-participants"),
        ...     trustedParticipants=[],
        ...     assets=["asset-1"],
        ...     fingerprint="..."
        ... )
    """

    model_config = ConfigDict(populate_by_name=True)

    data_source: Participant = Field(alias="dataSource")
    """Connector offering the assets."""

    data_sink: Participant = Field(alias="dataSink")
    """Connector receiving the assets."""

    trusted_participants: List[Participant] = Field(default_factory=list, alias="trustedParticipants")
    """Trusted participant list of the initiator, in its stored order."""

    assets: List[str] = Field(default_factory=list)
    """Identifiers of the assets to exchange."""

    fingerprint: str
    """Fingerprint of `trusted_participants` computed by the initiator."""


class NegotiationResponse(BaseModel):
    """
    Answer of the data source after matching both trusted lists.

    `chosen_trustee` is `None` when both lists have no participant in common.
    """

    model_config = ConfigDict(populate_by_name=True)

    data_source: Participant = Field(alias="dataSource")
    data_sink: Participant = Field(alias="dataSink")
    chosen_trustee: Optional[Participant] = Field(default=None, alias="chosenTrustee")
    assets: List[str] = Field(default_factory=list)
    message: Optional[str] = None


class RelayNotification(BaseModel):
    """
    Notification sent by either negotiating party to the chosen trustee
    (also known as a data trustee request).
    """

    model_config = ConfigDict(populate_by_name=True)

    data_source: Optional[Participant] = Field(default=None, alias="dataSource")
    data_sink: Optional[Participant] = Field(default=None, alias="dataSink")
    assets: List[str] = Field(default_factory=list)
    sender_role: str = Field(alias="senderRole")
    """``provider`` or ``consumer``; other values are rejected by the trustee."""


class NegotiationOutcome(BaseModel):
    """Result of a negotiation as seen by the initiating connector."""

    response: NegotiationResponse
    """Parsed answer of the data source."""

    raw: dict
    """Body of the data source's answer, as received."""

    transfer_ids: List[str] = Field(default_factory=list)
    """Push tasks started towards the chosen trustee."""

    @property
    def trustee(self) -> Optional[Participant]:
        return self.response.chosen_trustee

    @property
    def has_trustee(self) -> bool:
        return self.response.chosen_trustee is not None
