"""
Service catalog routes.

A service is a transform the trustee can apply to asset bytes during a
pull. Providers publish their catalog here; a trustee fetches it when an
exchange becomes ready.
"""

from typing import List

from fastapi import APIRouter, Depends, Response

from app.core.errors import InvalidRequest, NotFound
from app.dependencies import NodeContext, get_node
from app.models.transform import TransformDescriptor

router = APIRouter()


@router.get("", response_model=List[TransformDescriptor])
async def list_services(node: NodeContext = Depends(get_node)):
    return node.transforms.list()


@router.get("/{service_id}", response_model=TransformDescriptor)
async def get_service(service_id: str, node: NodeContext = Depends(get_node)):
    descriptor = node.transforms.get(service_id)
    if descriptor is None:
        raise NotFound(f"Service {service_id} not found")
    return descriptor


@router.post("", status_code=201, response_model=TransformDescriptor)
async def add_service(descriptor: TransformDescriptor, node: NodeContext = Depends(get_node)):
    """
    Add or replace a catalog entry.

    The entry is only listed; it becomes usable in a pull once an
    executable transform with the same id is registered on this node.

    Raises:
        InvalidRequest: 400 if the id is empty.
    """

    if not descriptor.id.strip():
        raise InvalidRequest("id required")
    node.transforms.add(descriptor)
    node.monitor.info(f"Registered service {descriptor.id}")
    return descriptor


@router.delete("/{service_id}", status_code=204)
async def delete_service(service_id: str, node: NodeContext = Depends(get_node)):
    if not node.transforms.remove(service_id):
        raise NotFound(f"Service {service_id} not found")
    return Response(status_code=204)
