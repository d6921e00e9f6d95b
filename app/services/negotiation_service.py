"""
Trust negotiation service.

This module implements the two-party handshake through which a data sink
and a data source agree on a data trustee they both trust.

Flow:
    1. The initiator (usually the data sink) sends its trusted participant
       list and the list's fingerprint to the data source.
    2. The data source verifies the fingerprint, intersects both lists and
       picks the first common participant in its own order. If one is
       found it notifies the trustee as ``provider``.
    3. The initiator reads the answer. If a trustee was chosen it notifies
       the trustee as ``consumer`` and pushes the assets it holds to it.
"""

from typing import List, Optional

import httpx
from pydantic import ValidationError

from app.core.config import Settings
from app.core.errors import InvalidRequest, IntegrityViolation, NotFound, ProtocolError, UpstreamUnavailable
from app.core.monitor import Monitor
from app.models.negotiation import NegotiationOutcome, NegotiationRequest, NegotiationResponse, RelayNotification
from app.models.participant import Participant
from app.services.hashing_service import HashVerifier
from app.services.transfers_service import TransferOrchestrator
from app.services.whitelist_service import TrustedParticipantsWhitelist
from app.util.background import BackgroundRunner
from app.util.edc_helpers import strip_negotiation_suffix

NO_COMMON_TRUSTEE = "No commonly trusted data trustee found"


class TrustNegotiator:
    """
    Both sides of the trust negotiation.

    Args:
        whitelist (TrustedParticipantsWhitelist): Participants this node trusts.
        verifier (HashVerifier): Fingerprint calculator.
        orchestrator (TransferOrchestrator): Used to push assets to the chosen trustee.
        http (httpx.AsyncClient): Client for outbound calls.
        monitor (Monitor): Event sink.
        settings (Settings): Node settings.
    """

    def __init__(self, whitelist: TrustedParticipantsWhitelist, verifier: HashVerifier,
                 orchestrator: TransferOrchestrator, http: httpx.AsyncClient, monitor: Monitor,
                 settings: Settings):
        self.whitelist = whitelist
        self.verifier = verifier
        self.orchestrator = orchestrator
        self.http = http
        self.monitor = monitor
        self.settings = settings
        self._background = BackgroundRunner()

    async def negotiate(self, data_source: Optional[Participant], data_sink: Optional[Participant],
                        assets: List[str]) -> NegotiationOutcome:
        """
        Starts a negotiation with the data source.

        Args:
            data_source (Participant): Connector holding the assets.
            data_sink (Participant): Connector that should receive them.
            assets (List[str]): Assets to exchange.

        Returns:
            NegotiationOutcome: The data source's answer, and the pushes
            started towards the chosen trustee.

        Raises:
            InvalidRequest: If a party or its URL is missing.
            UpstreamUnavailable: If the data source or the trustee cannot be reached.
            ProtocolError: If the data source's answer cannot be interpreted.
        """

        if data_source is None or not data_source.url:
            raise InvalidRequest("dataSource with a url is required")
        if data_sink is None or not data_sink.url:
            raise InvalidRequest("dataSink with a url is required")

        trusted = self.whitelist.list()
        request = NegotiationRequest(
            data_source=data_source,
            data_sink=data_sink,
            trusted_participants=trusted,
            assets=list(assets),
            fingerprint=self.verifier.fingerprint(trusted),
        )

        counterparty_url = f"{data_source.url.rstrip('/')}/receive-negotiation"
        try:
            response = await self.http.post(counterparty_url, json=request.model_dump(by_alias=True, mode="json"))
        except httpx.HTTPError as e:
            self.monitor.warning(f"Failed to initiate negotiation with {counterparty_url}", e)
            raise UpstreamUnavailable(f"Failed to send negotiation request: {e}") from e
        self.monitor.info(f"Negotiation initiated with: {counterparty_url}; Response: {response.text}")

        outcome = self._parse_answer(response)
        if not outcome.has_trustee:
            self.monitor.info(NO_COMMON_TRUSTEE)
            return outcome

        trustee = outcome.trustee
        await self._relay(trustee, RelayNotification(
            data_source=outcome.response.data_source,
            data_sink=outcome.response.data_sink,
            assets=request.assets,
            sender_role="consumer",
        ))

        trustee_base = strip_negotiation_suffix(trustee.url, self.settings)
        for asset_id in request.assets:
            try:
                task = await self.orchestrator.push(asset_id, trustee_base)
            except NotFound:
                self.monitor.info(f"Asset {asset_id} is not stored locally, not pushing it to {trustee.name}")
                continue
            outcome.transfer_ids.append(task.id)
        return outcome

    def _parse_answer(self, response: httpx.Response) -> NegotiationOutcome:
        try:
            raw = response.json()
        except ValueError as e:
            raise ProtocolError(f"Counterparty answered with a non-JSON body ({response.status_code})") from e
        if not isinstance(raw, dict):
            raise ProtocolError("Counterparty answered with an unexpected body")
        if "error" in raw:
            raise ProtocolError(f"Counterparty rejected the negotiation: {raw['error']}")
        try:
            parsed = NegotiationResponse.model_validate(raw)
        except ValidationError as e:
            raise ProtocolError(f"Counterparty answered with an invalid negotiation response: {e}") from e
        return NegotiationOutcome(response=parsed, raw=raw)

    async def receive_negotiation(self, request: NegotiationRequest) -> NegotiationResponse:
        """
        Answers a negotiation request as the data source.

        Args:
            request (NegotiationRequest): Initiator's request.

        Returns:
            NegotiationResponse: The chosen trustee, or none with a message.

        Raises:
            IntegrityViolation: If the trusted list does not match its
                fingerprint. Nothing is relayed in that case.
        """

        if not self.verifier.verify(request.trusted_participants, request.fingerprint):
            self.monitor.warning("Hash mismatch: trusted participants list was altered in transit")
            raise IntegrityViolation("Hash mismatch: possible data tampering detected.")

        offered = set(request.trusted_participants)
        chosen = next((p for p in self.whitelist.list() if p in offered), None)

        if chosen is None:
            self.monitor.info(NO_COMMON_TRUSTEE)
            return NegotiationResponse(
                data_source=request.data_source,
                data_sink=request.data_sink,
                assets=request.assets,
                message=NO_COMMON_TRUSTEE,
            )

        self.monitor.info(f"Chosen data trustee: {chosen.name} ({chosen.url})")
        self._background.spawn(self._relay_best_effort(chosen, RelayNotification(
            data_source=request.data_source,
            data_sink=request.data_sink,
            assets=request.assets,
            sender_role="provider",
        )))
        return NegotiationResponse(
            data_source=request.data_source,
            data_sink=request.data_sink,
            chosen_trustee=chosen,
            assets=request.assets,
        )

    async def _relay(self, trustee: Participant, notification: RelayNotification) -> None:
        url = f"{trustee.url.rstrip('/')}/notify"
        try:
            response = await self.http.post(url, json=notification.model_dump(by_alias=True, mode="json"))
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Failed to send notification to {trustee.name}: {e}") from e
        self.monitor.info(
            f"Notification sent to data trustee: {trustee.name} as {notification.sender_role}; "
            f"Response: {response.text}"
        )

    async def _relay_best_effort(self, trustee: Participant, notification: RelayNotification) -> None:
        try:
            await self._relay(trustee, notification)
        except UpstreamUnavailable as e:
            self.monitor.warning(str(e), e)

    async def drain(self) -> None:
        """Waits for outstanding relays to the chosen trustee."""
        await self._background.drain()
