"""
Asset binary routes.

This module exposes the raw bytes of the assets held by this connector.
Other connectors upload assets here when they push, and the Management
API data address of a cached asset points at the download endpoint.
"""

from fastapi import APIRouter, Depends, Request, Response

from app.dependencies import NodeContext, get_node

router = APIRouter()


@router.post("/{asset_id}/binary", status_code=201)
async def upload_binary(asset_id: str, request: Request, node: NodeContext = Depends(get_node)):
    """
    Store the request body as the bytes of an asset.

    Args:
        asset_id (str): Id of the asset; an existing asset is replaced.

    Returns:
        dict: The stored asset id and its size.

    Example:
        >>> POST /api/assets/asset-1/binary
        Content-Type: application/octet-stream
    """

    contents = await request.body()
    node.store.save(asset_id, contents)
    node.monitor.info(f"Stored asset {asset_id} ({len(contents)} bytes)")
    return {"assetId": asset_id, "size": len(contents)}


@router.get("/{asset_id}/binary")
async def download_binary(asset_id: str, node: NodeContext = Depends(get_node)):
    """
    Return the bytes of an asset.

    Raises:
        NotFound: 404 if the asset is not stored on this connector.
    """

    return Response(
        content=node.store.load(asset_id),
        media_type="application/octet-stream",
    )
