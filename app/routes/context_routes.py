"""
Exchange context routes.

Read and write access to the routing table of a trustee. Routes are
normally written when an exchange entry becomes ready; these endpoints
allow inspecting them and registering an asset by hand.
"""

from fastapi import APIRouter, Depends, Response

from app.core.errors import InvalidRequest, NotFound
from app.dependencies import NodeContext, get_node
from app.schemas.transfer import ContextRequest

router = APIRouter()


@router.get("/{asset_id}")
async def get_context(asset_id: str, node: NodeContext = Depends(get_node)):
    """
    Return the provider and consumer addresses of an asset.

    Args:
        asset_id (str): Routing key, scoped (`entryId::assetId`) or not.

    Raises:
        NotFound: 404 if no route is known for the key.
    """

    route = node.routing.get(asset_id)
    if route is None:
        raise NotFound(f"Unknown asset {asset_id}")
    return {"provider": route.provider_base_url, "consumer": route.consumer_base_url}


@router.post("/{asset_id}", status_code=204)
async def put_context(asset_id: str, data: ContextRequest, node: NodeContext = Depends(get_node)):
    """
    Register the provider and consumer addresses of an asset.

    Raises:
        InvalidRequest: 400 if either address is missing.

    Example:
        >>> POST /api/context/asset-1
        {
            "provider": "http://provider:9191",
            "consumer": "http://consumer:9191"
        }
    """

    if not data.provider or not data.consumer:
        raise InvalidRequest("provider and consumer required")
    node.routing.put(asset_id, data.provider, data.consumer)
    node.monitor.info(f"Registered exchange context for {asset_id}")
    return Response(status_code=204)
