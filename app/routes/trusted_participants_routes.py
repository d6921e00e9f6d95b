"""
Trusted participants routes.

This module defines the API endpoints of the trust layer of a connector:
whitelist management, the two negotiation endpoints, the notification
endpoints used by the data trustee, and read access to the exchange
entries and the monitor log.

All routes delegate to the services held by the node context
(`app.dependencies.NodeContext`).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from app.core.errors import InvalidRequest, NotFound
from app.dependencies import NodeContext, get_node
from app.models.exchange import ExchangeState
from app.models.monitor import LogEntry
from app.models.negotiation import NegotiationRequest, NegotiationResponse, RelayNotification
from app.models.participant import Participant
from app.schemas.trusted_participants import (CompletionNotification, ExchangeEntryResponse, NegotiateRequest,
                                              NotificationAck, TrustedParticipantsResponse)

router = APIRouter()

MANUAL_STATES = (ExchangeState.IN_PROGRESS, ExchangeState.COMPLETED, ExchangeState.FAILED)


# ------------------------------------------------------------------------------
# Whitelist
# ------------------------------------------------------------------------------

@router.get("/health")
async def health(node: NodeContext = Depends(get_node)):
    """
    Check that the connector is up.

    Returns:
        dict: A fixed liveness message.
    """

    node.monitor.info("Received a health request")
    return {"response": "Web server running on Connector and ready for requests"}


@router.post("/add")
async def add_trusted_participant(participant: Participant, node: NodeContext = Depends(get_node)):
    """
    Add a participant to the whitelist.

    Args:
        participant (Participant): Participant to trust.

    Returns:
        dict: Whether the participant was added or already trusted.

    Example:
        >>> POST /api/trusted-participants/add
        {
            "name": "trustee",
            "url": "http://trustee-connector:9191/api/trusted-participants"
        }
    """

    node.monitor.info(f"Adding trusted participant: {participant.name}")
    if node.whitelist.add(participant):
        return {"response": "Participant added successfully"}
    return {"response": "Participant already exists"}


@router.get("/list", response_model=TrustedParticipantsResponse)
async def list_trusted_participants(node: NodeContext = Depends(get_node)):
    """
    Retrieve the whitelist together with its fingerprint.

    Returns:
        TrustedParticipantsResponse: Participants in stored order and the
        fingerprint of that list.
    """

    node.monitor.info("Retrieving trusted participants")
    participants = node.whitelist.list()
    return TrustedParticipantsResponse(participants=participants, fingerprint=node.verifier.fingerprint(participants))


@router.delete("/remove")
async def remove_trusted_participant(participant: Participant, node: NodeContext = Depends(get_node)):
    """
    Remove a participant from the whitelist.

    Args:
        participant (Participant): Participant to stop trusting; matched by name and url.

    Returns:
        dict: Whether the participant was removed.
    """

    node.monitor.info(f"Removing trusted participant: {participant.name}")
    if node.whitelist.remove(participant):
        return {"response": "Participant removed successfully"}
    return {"response": "Participant not found"}


# ------------------------------------------------------------------------------
# Negotiation
# ------------------------------------------------------------------------------

@router.post("/negotiate")
async def negotiate(data: NegotiateRequest, node: NodeContext = Depends(get_node)):
    """
    Start a negotiation with a data source.

    The connector attaches its own trusted participant list and the list's
    fingerprint, sends them to `dataSource.url/receive-negotiation` and,
    when a common trustee is found, notifies it and pushes the requested
    assets it holds.

    Args:
        data (NegotiateRequest): Data source, data sink and assets.

    Returns:
        dict: The data source's answer as received.

    Raises:
        TrusteeError: Rendered as ``{"error": ...}`` (400 for a missing
            party, 502 when the data source or trustee misbehaves).

    Example:
        >>> POST /api/trusted-participants/negotiate
        {
            "dataSource": {"name": "provider", "url": "http://provider:9191/api/trusted-participants"},
            "dataSink": {"name": "consumer", "url": "http://consumer:9191/api/trusted-participants"},
            "assets": ["asset-1"]
        }
    """

    outcome = await node.negotiator.negotiate(data.data_source, data.data_sink, data.assets)
    return outcome.raw


@router.post("/receive-negotiation", response_model=NegotiationResponse, response_model_by_alias=True)
async def receive_negotiation(request: NegotiationRequest, node: NodeContext = Depends(get_node)):
    """
    Answer a negotiation request as the data source.

    Returns:
        NegotiationResponse: The chosen trustee, or a message when the two
        whitelists have nothing in common.

    Raises:
        IntegrityViolation: 400 when the list does not match its fingerprint.
    """

    node.monitor.info(f"Received negotiation request from {request.data_sink.name}")
    return await node.negotiator.receive_negotiation(request)


# ------------------------------------------------------------------------------
# Trustee notifications
# ------------------------------------------------------------------------------

@router.post("/notify", response_model=NotificationAck, response_model_by_alias=True)
async def notify(notification: RelayNotification, node: NodeContext = Depends(get_node)):
    """
    Receive the notification of a provider or consumer.

    Args:
        notification (RelayNotification): Both parties, the assets and the
            role of the sender.

    Returns:
        NotificationAck: Id of the exchange entry the notification joined.

    Raises:
        InvalidRequest: 400 when the sender role is not provider or consumer.
    """

    node.monitor.info(f"Received notification from {notification.sender_role}: {notification.assets}")
    role = notification.sender_role.lower()
    participant = notification.data_source if role == "provider" else notification.data_sink
    entry_id = await node.coordinator.notify(role, participant, notification.assets)
    return NotificationAck(message="Notification received", entry_id=entry_id)


@router.post("/notify-completion")
async def notify_completion(notification: CompletionNotification, node: NodeContext = Depends(get_node)):
    """
    Receive the trustee's notice that an exchange completed.
    """

    node.monitor.info(
        f"Received completion notification for role: {notification.role}. Message: {notification.message}"
    )
    return {"message": "Completion notification received."}


@router.post("/update-entry-state")
async def update_entry_state(entryId: str, newState: str, node: NodeContext = Depends(get_node)):
    """
    Manually move an exchange entry to another state.

    Args:
        entryId (str): Id of the exchange entry.
        newState (str): ``IN_PROGRESS``, ``COMPLETED`` or ``FAILED``.

    Returns:
        dict: Confirmation message.

    Raises:
        InvalidRequest: 400 if the state is unknown, not settable or not
            reachable from the entry's current state.
        NotFound: 404 if the entry does not exist.

    Example:
        >>> POST /api/trusted-participants/update-entry-state?entryId=5b0c...&newState=COMPLETED
    """

    node.monitor.info(f"Received request to update state of entry {entryId} to {newState}")
    try:
        state = ExchangeState(newState)
    except ValueError:
        raise InvalidRequest("Invalid state value.")
    if state not in MANUAL_STATES:
        raise InvalidRequest("Invalid state. Only IN_PROGRESS, COMPLETED or FAILED allowed.")

    if node.coordinator.get(entryId) is None:
        raise NotFound("Entry not found.")
    if not await node.coordinator.set_state(entryId, state):
        raise InvalidRequest("Transition not allowed from the entry's current state.")
    return {"message": "State updated successfully."}


@router.get("/data-exchange-entries", response_model=List[ExchangeEntryResponse], response_model_by_alias=True)
async def data_exchange_entries(node: NodeContext = Depends(get_node)):
    """
    List the active exchange entries of this trustee.
    """

    node.monitor.info("Retrieving current DataExchangeEntries")
    return [ExchangeEntryResponse.from_entry(entry) for entry in node.coordinator.entries()]


@router.get("/logs", response_model=List[LogEntry])
async def logs(level: Optional[str] = None, node: NodeContext = Depends(get_node)):
    """
    Return the events buffered by the monitor, oldest first.

    Args:
        level (Optional[str]): Only return events of this level
            (``DEBUG``, ``INFO``, ``WARNING`` or ``SEVERE``).
    """

    return node.monitor.entries(level)
