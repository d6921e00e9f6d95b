"""
Node context and FastAPI dependencies.

Every service of a connector node is built once in `build_node` and kept
in a `NodeContext` stored on `app.state.node`. Routes reach the services
through the `Depends` helpers below instead of module-level singletons.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from app.core.config import Settings
from app.core.monitor import Monitor
from app.db.asset_store import FileSystemAssetStore
from app.services.exchange_service import ExchangeCoordinator
from app.services.hashing_service import HashVerifier
from app.services.ledger_service import TransferLedger
from app.services.negotiation_service import TrustNegotiator
from app.services.routing_service import RoutingTable
from app.services.transfers_service import TransferOrchestrator
from app.services.transforms_service import TransformRegistry
from app.services.whitelist_service import TrustedParticipantsWhitelist


@dataclass
class NodeContext:
    """All collaborators of one connector node."""

    settings: Settings
    monitor: Monitor
    whitelist: TrustedParticipantsWhitelist
    verifier: HashVerifier
    routing: RoutingTable
    ledger: TransferLedger
    transforms: TransformRegistry
    store: FileSystemAssetStore
    http: httpx.AsyncClient
    coordinator: ExchangeCoordinator
    orchestrator: TransferOrchestrator
    negotiator: TrustNegotiator
    owns_http: bool = True

    async def close(self) -> None:
        """Waits for background work and releases the HTTP client."""
        await self.coordinator.drain()
        await self.negotiator.drain()
        if self.owns_http:
            await self.http.aclose()


def build_node(settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> NodeContext:
    """
    Wires the services of a node.

    Args:
        settings (Settings): Node settings.
        http_client (Optional[httpx.AsyncClient]): Client to use for every
            outbound call. A client with the configured timeout is created
            (and later closed by the node) when omitted.

    Returns:
        NodeContext: The wired node.
    """

    monitor = Monitor()
    http = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    if settings.trusted_participants_file:
        whitelist = TrustedParticipantsWhitelist.from_file(settings.trusted_participants_file)
    else:
        whitelist = TrustedParticipantsWhitelist()

    verifier = HashVerifier(settings.fingerprint_algorithm)
    routing = RoutingTable()
    ledger = TransferLedger()
    transforms = TransformRegistry()
    store = FileSystemAssetStore(settings.asset_store_dir)

    coordinator = ExchangeCoordinator(routing, transforms, http, monitor, settings)
    orchestrator = TransferOrchestrator(store, routing, ledger, transforms, http, monitor, settings)
    negotiator = TrustNegotiator(whitelist, verifier, orchestrator, http, monitor, settings)

    return NodeContext(
        settings=settings,
        monitor=monitor,
        whitelist=whitelist,
        verifier=verifier,
        routing=routing,
        ledger=ledger,
        transforms=transforms,
        store=store,
        http=http,
        coordinator=coordinator,
        orchestrator=orchestrator,
        negotiator=negotiator,
        owns_http=http_client is None,
    )


def get_node(request: Request) -> NodeContext:
    return request.app.state.node
