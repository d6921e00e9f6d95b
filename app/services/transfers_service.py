"""
Transfers Service.

This module moves asset bytes between connectors. It is used on every
node: providers push assets to a trustee, and the trustee pulls assets
from the provider, optionally transforms them, and forwards them to the
consumer.

Main responsibilities:
    - Pushing stored assets to another connector's binary endpoint.
    - Pulling assets from a provider through its Management API.
    - Caching pulled assets and registering them with this node's own
      Management API.
    - Applying transforms and merging several JSON assets into one.
    - Tracking every dispatched transfer in the transfer ledger.

Every push is dispatched as an `asyncio` task and returns a transfer id
immediately; the outcome is read back through `status`.
"""

import asyncio
import json
from typing import Optional, Tuple, Union
from uuid import uuid4

import httpx

from app.core.config import Settings
from app.core.errors import (InvalidRequest, NotFound, ProtocolError, TransformFailed,
                             UnknownTransform, UpstreamUnavailable)
from app.core.monitor import Monitor
from app.db.asset_store import AssetStore
from app.models.transfer import TransferState, TransferTask
from app.models.transform import Transform
from app.services.ledger_service import TransferLedger
from app.services.routing_service import RoutingTable, unscoped_id
from app.services.transforms_service import TransformRegistry
from app.util.edc_helpers import (build_asset_payload, get_binary_url, get_management_url,
                                  strip_negotiation_suffix)

MERGE_MODES = ("array", "object")


class TransferOrchestrator:
    """
    Performs push, pull and merge transfers.

    Args:
        store (AssetStore): Local blob store.
        routing (RoutingTable): Provider/consumer addresses per asset.
        ledger (TransferLedger): Registry of dispatched transfers.
        transforms (TransformRegistry): Executable transforms.
        http (httpx.AsyncClient): Client for outbound calls.
        monitor (Monitor): Event sink.
        settings (Settings): Node settings.
    """

    def __init__(self, store: AssetStore, routing: RoutingTable, ledger: TransferLedger,
                 transforms: TransformRegistry, http: httpx.AsyncClient, monitor: Monitor,
                 settings: Settings):
        self.store = store
        self.routing = routing
        self.ledger = ledger
        self.transforms = transforms
        self.http = http
        self.monitor = monitor
        self.settings = settings

    # ------------------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------------------

    async def push(self, asset_id: str, target_base_url: str) -> TransferTask:
        """
        Sends a stored asset to another connector.

        Args:
            asset_id (str): Id of the asset in the local store.
            target_base_url (str): Base address of the receiving connector.

        Returns:
            TransferTask: Handle of the dispatched transfer.

        Raises:
            InvalidRequest: If the asset id or target is missing.
            NotFound: If the asset is not stored locally. No call is made.
        """

        if not asset_id or not target_base_url:
            raise InvalidRequest("assetId and targetUrl are required")
        if not self.store.exists(asset_id):
            raise NotFound("asset not found")

        data = self.store.load(asset_id)
        return self._dispatch(asset_id, target_base_url, data)

    # ------------------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------------------

    async def pull(self, asset_id: str, transform_id: Optional[str] = None) -> TransferTask:
        """
        Pulls an asset from its provider and forwards it to its consumer.

        The asset id may be unscoped; it is resolved against the routing
        table. Bytes are cached under the unscoped id, so pulling the same
        asset twice reaches the provider only once.

        Args:
            asset_id (str): Asset to pull, scoped (`entryId::assetId`) or not.
            transform_id (Optional[str]): Transform to apply before forwarding.

        Returns:
            TransferTask: Handle of the push towards the consumer.

        Raises:
            InvalidRequest: If no asset id is given.
            UnknownTransform: If the transform is not registered.
            NotFound: If no routing entry matches the asset.
            UpstreamUnavailable: If the provider cannot deliver the asset.
            TransformFailed: If the transform raises.
        """

        if not asset_id:
            raise InvalidRequest("assetId is required")
        transform = self._transform(transform_id)

        key = self.routing.resolve(asset_id)
        provider_base = self.routing.provider(key)
        consumer_base = self.routing.consumer(key)
        original_id = unscoped_id(key)
        self.monitor.info(
            f"Pull transfer for originalAssetId={original_id}, prefixedAssetId={key}, "
            f"providerUrl={provider_base}, consumerUrl={consumer_base}"
        )

        data = await self._load(original_id, provider_base)
        data = self._apply(transform, original_id, data)

        task = self._dispatch(original_id, consumer_base, data)
        self.monitor.info(
            f"Transfer process {task.id} initiated for asset {original_id} to consumer {consumer_base}"
        )
        return task

    async def merge(self, entry_id: Optional[str] = None, mode: str = "array",
                    transform_id: Optional[str] = None) -> Tuple[Union[list, dict], TransferTask]:
        """
        Pulls several JSON assets and combines them into one document.

        Args:
            entry_id (Optional[str]): Exchange entry whose assets are merged;
                every routed asset when omitted.
            mode (str): ``array`` for a list in routing order, ``object`` for
                a map keyed by unscoped asset id.
            transform_id (Optional[str]): Transform applied to every asset.

        Returns:
            Tuple: The merged document and the handle of its push to the
            consumer of the first asset, as ``merged-<entryId|all>``.

        Raises:
            InvalidRequest: If the mode is unknown.
            NotFound: If there is nothing to merge.
            ProtocolError: If an asset is not valid JSON.
        """

        mode = (mode or "array").lower()
        if mode not in MERGE_MODES:
            raise InvalidRequest(f"Unknown merge mode: {mode}")
        transform = self._transform(transform_id)

        if entry_id:
            keys = self.routing.keys_of_entry(entry_id)
            if not keys:
                raise NotFound("no assets for entry")
        else:
            keys = self.routing.keys()
            if not keys:
                raise NotFound("no assets available")

        documents = []
        for key in keys:
            original_id = unscoped_id(key)
            data = await self._load(original_id, self.routing.provider(key))
            data = self._apply(transform, original_id, data)
            try:
                documents.append(json.loads(data))
            except ValueError as e:
                raise ProtocolError(f"failed on asset {original_id}: not valid JSON") from e

        if mode == "object":
            merged = {unscoped_id(key): doc for key, doc in zip(keys, documents)}
        else:
            merged = documents

        merged_id = f"merged-{entry_id or 'all'}"
        task = self._dispatch(merged_id, self.routing.consumer(keys[0]), json.dumps(merged).encode("utf-8"))
        self.monitor.info(f"New Asset Id:{merged_id}")
        return merged, task

    def status(self, transfer_id: str) -> TransferState:
        return self.ledger.state_of(transfer_id)

    # ------------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------------

    def _dispatch(self, asset_id: str, target_base_url: str, data: bytes) -> TransferTask:
        transfer_id = str(uuid4())
        task = asyncio.create_task(self._send(asset_id, target_base_url, data))
        task.add_done_callback(lambda t: self._log_outcome(transfer_id, asset_id, t))
        self.ledger.register(transfer_id, task)
        return TransferTask(id=transfer_id, status=TransferState.PENDING)

    def _log_outcome(self, transfer_id: str, asset_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            self.monitor.warning(f"Transfer {transfer_id} of asset {asset_id} was cancelled")
            return
        error = task.exception()
        if error is not None:
            self.monitor.severe(f"Transfer {transfer_id} of asset {asset_id} failed", error)
        elif not task.result().is_success:
            self.monitor.warning(
                f"Transfer {transfer_id} of asset {asset_id} was rejected ({task.result().status_code})"
            )

    async def _send(self, asset_id: str, target_base_url: str, data: bytes) -> httpx.Response:
        base = strip_negotiation_suffix(target_base_url, self.settings)
        binary_url = get_binary_url(base, asset_id, self.settings)

        response = await self.http.post(
            binary_url, content=data, headers={"Content-Type": "application/octet-stream"}
        )
        self.monitor.info(f"New asset pushed to url:{binary_url}")

        metadata_url = get_management_url(base, self.settings, "/assets")
        try:
            await self.http.post(metadata_url, json=build_asset_payload(asset_id, binary_url))
        except httpx.HTTPError as e:
            self.monitor.warning(f"Could not register metadata of asset {asset_id} at {metadata_url}", e)
        return response

    async def _load(self, asset_id: str, provider_base_url: str) -> bytes:
        if self.store.exists(asset_id):
            self.monitor.debug(f"Asset {asset_id} already cached, skipping fetch")
            return self.store.load(asset_id)

        data = await self._fetch(asset_id, provider_base_url)
        self.store.save(asset_id, data)
        await self._ensure_registered_locally(asset_id)
        return data

    async def _fetch(self, asset_id: str, provider_base_url: str) -> bytes:
        metadata_url = get_management_url(provider_base_url, self.settings, f"/assets/{asset_id}")
        self.monitor.info(f"[PullService] fetching metadata of {asset_id} from {metadata_url}")
        try:
            metadata = await self.http.get(metadata_url)
            metadata.raise_for_status()
        except httpx.HTTPError as e:
            self.monitor.severe(f"[PullService] ERROR: metadata of asset {asset_id} unavailable", e)
            raise UpstreamUnavailable(f"Failed to fetch asset {asset_id} from original provider: {e}") from e

        try:
            source_url = (metadata.json().get("dataAddress") or {}).get("baseUrl")
        except (ValueError, AttributeError) as e:
            raise ProtocolError(f"Management API returned an unreadable asset {asset_id}") from e
        if not source_url:
            raise ProtocolError(f"Asset {asset_id} has no dataAddress.baseUrl")

        try:
            response = await self.http.get(source_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.monitor.severe(f"[PullService] ERROR: source fetch of asset {asset_id} failed", e)
            raise UpstreamUnavailable(f"Failed to fetch asset {asset_id} from original provider: {e}") from e
        return response.content

    async def _ensure_registered_locally(self, asset_id: str) -> None:
        management = self.settings.self_management_url
        try:
            head = await self.http.head(f"{management}/assets/{asset_id}")
            if head.status_code == 200:
                return
            binary_url = get_binary_url(self.settings.self_public_url, asset_id, self.settings)
            await self.http.post(f"{management}/assets", json=build_asset_payload(asset_id, binary_url))
        except httpx.HTTPError as e:
            self.monitor.warning(f"Could not register asset {asset_id} on trustee", e)

    def _transform(self, transform_id: Optional[str]) -> Optional[Transform]:
        if not transform_id:
            return None
        transform = self.transforms.lookup(transform_id)
        if transform is None:
            raise UnknownTransform(f"unknown serviceId: {transform_id}")
        return transform

    def _apply(self, transform: Optional[Transform], asset_id: str, data: bytes) -> bytes:
        if transform is None:
            return data
        try:
            return transform.apply(data)
        except Exception as e:
            self.monitor.severe(f"service processing failed for asset {asset_id}", e)
            raise TransformFailed(f"service processing failed: {e}") from e
