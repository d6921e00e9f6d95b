"""
Data exchange coordination service.

This module runs on the data trustee. It correlates the notifications
sent by the provider and the consumer of a negotiation into a single
exchange entry and drives that entry through its lifecycle:

    NOT_READY --(other side notifies)--> READY --> IN_PROGRESS --> COMPLETED
    any non-terminal state --> FAILED (timeout from NOT_READY, or explicit)

Main responsibilities:
    - Matching notifications by asset set and role.
    - Writing routing entries once both sides are known.
    - Synchronising the provider's transform catalog.
    - Failing entries whose counterpart never shows up.
    - Notifying both participants once an exchange completes.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from app.core.config import Settings
from app.core.errors import InvalidRequest
from app.core.monitor import Monitor
from app.models.exchange import ExchangeEntry, ExchangeState
from app.models.participant import Participant
from app.models.transform import TransformDescriptor
from app.services.routing_service import RoutingTable, scoped_key
from app.services.transforms_service import TransformRegistry
from app.util.background import BackgroundRunner
from app.util.edc_helpers import resolve_internal_address

ROLES = ("provider", "consumer")

_descriptor_list = TypeAdapter(List[TransformDescriptor])


class ExchangeCoordinator:
    """
    Owns the active exchange entries of a trustee.

    Every mutation of the entry list happens while holding an
    `asyncio.Lock`; network calls are made outside of it.

    Args:
        routing (RoutingTable): Table receiving the routes of ready entries.
        transforms (TransformRegistry): Registry the provider catalog is merged into.
        http (httpx.AsyncClient): Client for outbound calls.
        monitor (Monitor): Event sink.
        settings (Settings): Node settings.
    """

    def __init__(self, routing: RoutingTable, transforms: TransformRegistry,
                 http: httpx.AsyncClient, monitor: Monitor, settings: Settings):
        self.routing = routing
        self.transforms = transforms
        self.http = http
        self.monitor = monitor
        self.settings = settings
        self.timeout = timedelta(seconds=settings.entry_timeout_seconds)

        self._entries: List[ExchangeEntry] = []
        self._lock = asyncio.Lock()
        self._background = BackgroundRunner()

    # ------------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------------

    def entries(self) -> List[ExchangeEntry]:
        """Returns a snapshot of the active entries, oldest first."""
        return list(self._entries)

    def get(self, entry_id: str) -> Optional[ExchangeEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    # ------------------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------------------

    async def notify(self, role: str, participant: Participant, assets: Iterable[str]) -> str:
        """
        Records the notification of a provider or consumer.

        The notification is attached to an active entry with the same asset
        set whose slot for `role` is free (or already holds the same
        participant); otherwise a new entry is created. Once both slots are
        filled the entry becomes READY and its routes are written. A sweep
        follows every notification.

        Args:
            role (str): ``provider`` or ``consumer``.
            participant (Participant): The notifying connector.
            assets (Iterable[str]): Assets of the exchange; order is ignored.

        Returns:
            str: Id of the entry the notification was attached to.

        Raises:
            InvalidRequest: If the role is unknown, the participant is missing
                or no asset is given.
        """

        role = (role or "").lower()
        if role not in ROLES:
            raise InvalidRequest("Invalid sender type")
        if participant is None:
            raise InvalidRequest(f"Notification from {role} does not describe the {role}")
        assets = list(dict.fromkeys(assets))
        if not assets:
            raise InvalidRequest("Notification does not list any asset")

        async with self._lock:
            entry = self._find_or_create(role, participant, assets)
            was_ready = entry.state is not ExchangeState.NOT_READY
            entry.attach(role, participant)
            self._update_readiness(entry)
            became_ready = not was_ready and entry.state is ExchangeState.READY

        if became_ready:
            self._background.spawn(self._sync_catalog(entry))

        await self.sweep()
        return entry.id

    def _find_or_create(self, role: str, participant: Participant, assets: List[str]) -> ExchangeEntry:
        wanted = frozenset(assets)
        candidates = [
            e for e in self._entries
            if not e.state.is_terminal and e.asset_set == wanted
        ]

        # A participant notifying again stays on its own entry.
        for entry in candidates:
            if entry.participant(role) == participant:
                return entry
        for entry in candidates:
            if entry.participant(role) is None:
                return entry

        entry = ExchangeEntry(assets=assets)
        self.monitor.info(f"[ExchangeCoordinator] Creating new exchange entry ID: {entry.id}")
        self._entries.append(entry)
        return entry

    def _update_readiness(self, entry: ExchangeEntry) -> None:
        if not entry.is_complete:
            present = entry.provider or entry.consumer
            self.monitor.info(
                f"[ExchangeCoordinator] Entry ID: {entry.id} - First notification received from "
                f"{present.name}, waiting for second notification"
            )
            return
        if entry.state is not ExchangeState.NOT_READY:
            return

        provider_base = resolve_internal_address(entry.provider.url, "provider", self.settings)
        consumer_base = resolve_internal_address(entry.consumer.url, "consumer", self.settings)
        if not provider_base or not consumer_base:
            self.monitor.severe(
                f"[ExchangeCoordinator] Entry ID: {entry.id} has no usable provider or consumer address; "
                f"provider={entry.provider.url!r} consumer={entry.consumer.url!r}"
            )
            entry.set_state(ExchangeState.FAILED)
            return

        for asset in entry.assets:
            key = scoped_key(entry.id, asset)
            self.routing.put(key, provider_base, consumer_base)
            self.monitor.info(
                f"[ExchangeCoordinator] Routing {key}: provider={provider_base}, consumer={consumer_base}"
            )

        entry.set_state(ExchangeState.READY)
        self.monitor.info(
            f"[ExchangeCoordinator] Entry ID: {entry.id} is READY. "
            f"Provider: {entry.provider.name}, Consumer: {entry.consumer.name}"
        )

    async def _sync_catalog(self, entry: ExchangeEntry) -> None:
        provider_base = resolve_internal_address(entry.provider.url, "provider", self.settings)
        url = f"{provider_base}{self.settings.api_prefix}/services"
        try:
            response = await self.http.get(url)
            response.raise_for_status()
            remote = _descriptor_list.validate_json(response.content)
        except (httpx.HTTPError, ValidationError) as e:
            self.monitor.warning(f"[ServiceSync] could not fetch services from {provider_base}", e)
            return

        for descriptor in remote:
            self.transforms.add(descriptor)
        self.monitor.info(f"[ServiceSync] fetched {len(remote)} services from {provider_base}")

    # ------------------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------------------

    async def sweep(self) -> None:
        """
        Advances the entries that can move without outside input.

        NOT_READY entries older than the timeout fail; COMPLETED entries
        trigger completion notifications and are removed; FAILED entries are
        removed. Removed entries take their routes with them. READY and
        IN_PROGRESS entries are left alone.
        """

        now = datetime.now()
        async with self._lock:
            remaining = []
            for entry in self._entries:
                if entry.state is ExchangeState.NOT_READY and now - entry.last_updated_at > self.timeout:
                    entry.set_state(ExchangeState.FAILED)
                    self.monitor.warning(f"Entry {entry.id} has FAILED due to timeout (stuck in NOT_READY).")

                if entry.state is ExchangeState.COMPLETED:
                    self.monitor.info(f"Data exchange COMPLETED for entry: {entry.id}")
                    self._send_completion_notifications(entry)
                elif entry.state is ExchangeState.FAILED:
                    self.monitor.warning(f"Entry FAILED: {entry.id}")
                else:
                    remaining.append(entry)
                    continue
                self.routing.remove_entry(entry.id)
            self._entries = remaining

    async def set_state(self, entry_id: str, new_state: ExchangeState) -> bool:
        """
        Moves an entry to a new state on request.

        Allowed: READY/IN_PROGRESS to IN_PROGRESS/COMPLETED, and any
        non-terminal state to FAILED. A terminal target state is processed
        by a sweep right away.

        Returns:
            bool: False if the entry is unknown or the transition is not allowed.
        """

        async with self._lock:
            entry = self.get(entry_id)
            if entry is None:
                self.monitor.warning(f"Entry {entry_id} not found for manual state update.")
                return False
            if not self._can_transition(entry.state, new_state):
                self.monitor.warning(
                    f"Cannot manually update entry {entry_id} from state {entry.state.value} to {new_state.value}"
                )
                return False
            entry.set_state(new_state)
            self.monitor.info(f"State manually updated to {new_state.value} for entry: {entry_id}")

        if new_state.is_terminal:
            await self.sweep()
        return True

    @staticmethod
    def _can_transition(current: ExchangeState, new_state: ExchangeState) -> bool:
        if current.is_terminal:
            return False
        if new_state is ExchangeState.FAILED:
            return True
        return (
            current in (ExchangeState.READY, ExchangeState.IN_PROGRESS)
            and new_state in (ExchangeState.IN_PROGRESS, ExchangeState.COMPLETED)
        )

    # ------------------------------------------------------------------------------
    # Completion callbacks
    # ------------------------------------------------------------------------------

    def _send_completion_notifications(self, entry: ExchangeEntry) -> None:
        if not entry.is_complete:
            self.monitor.warning(
                f"Cannot send completion notification for entry {entry.id} due to missing provider/consumer details."
            )
            return
        message = (
            f"Data exchange has been completed for assets: {', '.join(entry.assets)} (Entry ID: {entry.id})"
        )
        for role in ROLES:
            self._background.spawn(self._notify_completion(entry.id, role, entry.participant(role), message))

    async def _notify_completion(self, entry_id: str, role: str, participant: Participant, message: str) -> None:
        base = resolve_internal_address(participant.url, role, self.settings)
        url = f"{base}{self.settings.negotiation_suffix}/notify-completion"
        attempts = max(1, self.settings.completion_retries)

        for attempt in range(1, attempts + 1):
            try:
                response = await self.http.post(url, json={"message": message, "role": role})
                response.raise_for_status()
                self.monitor.info(
                    f"Completion notification sent to {role}: {participant.name}; Response: {response.status_code}"
                )
                return
            except httpx.HTTPError as e:
                self.monitor.warning(
                    f"Failed to send completion notification to {role} {participant.name} "
                    f"(attempt {attempt}/{attempts})", e
                )
            if attempt < attempts:
                await asyncio.sleep(self.settings.completion_retry_delay_seconds * attempt)

        self.monitor.severe(f"Giving up on completion notification to {role} {participant.name} for entry {entry_id}")

    async def drain(self) -> None:
        """Waits for outstanding catalog syncs and completion notifications."""
        await self._background.drain()
