"""
Transfer routes.

This module defines the API endpoints that move asset bytes between
connectors: pushing a stored asset, pulling an asset through the trustee
(optionally through a service), merging several JSON assets, and
reading the state of a dispatched transfer.

All routes delegate to `app.services.transfers_service.TransferOrchestrator`.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from app.dependencies import NodeContext, get_node
from app.schemas.transfer import PushRequest, TransferAccepted, TransferStatusResponse

router = APIRouter()


@router.post("/push", status_code=202, response_model=TransferAccepted, response_model_by_alias=True,
             response_model_exclude_none=True)
async def push(data: PushRequest, node: NodeContext = Depends(get_node)):
    """
    Push a stored asset to another connector.

    Args:
        data (PushRequest): Asset id and base address of the target.

    Returns:
        TransferAccepted: Id of the dispatched transfer.

    Raises:
        NotFound: 404 if the asset is not stored on this connector.

    Example:
        >>> POST /api/transfers/push
        {
            "assetId": "asset-1",
            "targetUrl": "http://trustee-connector:9191"
        }
    """

    task = await node.orchestrator.push(data.asset_id, data.target_url)
    return TransferAccepted(transfer_id=task.id)


@router.post("/pull-transfer", status_code=202, response_model=TransferAccepted, response_model_by_alias=True)
async def pull_transfer(
    assetId: str,
    transform: Optional[str] = None,
    serviceId: Optional[str] = None,
    node: NodeContext = Depends(get_node),
):
    """
    Pull an asset from its provider and forward it to its consumer.

    Args:
        assetId (str): Asset to pull; unscoped ids are matched against the
            exchange context.
        transform (Optional[str]): Older name of `serviceId`, used when
            `serviceId` is not given.
        serviceId (Optional[str]): Service applied to the bytes before forwarding.

    Returns:
        TransferAccepted: Id of the push towards the consumer.

    Raises:
        TrusteeError:
            - 404: No exchange context for the asset, or unknown service.
            - 502: The provider could not deliver the asset.
            - 500: The service failed.

    Example:
        >>> POST /api/transfers/pull-transfer?assetId=asset-1&serviceId=mask-title
    """

    task = await node.orchestrator.pull(assetId, serviceId or transform)
    return TransferAccepted(transfer_id=task.id, message="Transfer started")


@router.post("/merge")
async def merge(
    entryId: Optional[str] = None,
    mode: str = "array",
    serviceId: Optional[str] = None,
    node: NodeContext = Depends(get_node),
):
    """
    Merge the JSON assets of an exchange entry into a single document.

    The merged document is pushed to the consumer as
    ``merged-<entryId>`` (``merged-all`` without an entry) and returned.

    Args:
        entryId (Optional[str]): Exchange entry; every routed asset when omitted.
        mode (str): ``array`` (default) or ``object`` (keyed by asset id).
        serviceId (Optional[str]): Service applied to every asset.

    Returns:
        list | dict: The merged document.
    """

    merged, _ = await node.orchestrator.merge(entryId, mode, serviceId)
    return merged


@router.get("/status/{id}", response_model=TransferStatusResponse)
async def transfer_status(id: str, node: NodeContext = Depends(get_node)):
    """
    Get the state of a transfer.

    Returns:
        TransferStatusResponse: ``UNKNOWN`` for ids this connector never issued.
    """

    return TransferStatusResponse(state=node.orchestrator.status(id))
