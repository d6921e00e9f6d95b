"""
Transfer schemas.

This module defines the Pydantic schemas used to represent and validate
data transfer operations handled by this connector: pushing a stored
asset to another connector, pulling an asset through the trustee, and
inspecting the state of a running transfer.

Schemas:
    - PushRequest: Structure for pushing a stored asset to a target.
    - TransferAccepted: Answer returned when a transfer has been dispatched.
    - TransferStatusResponse: Current state of a transfer.
    - ContextRequest: Manual routing entry for an asset.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.transfer import TransferState


class PushRequest(BaseModel):
    """
    Represents a request to push a stored asset to another connector.

    Example:
        >>> request = PushRequest(assetId="asset-1", targetUrl="http://trustee-connector:9191")
    """

    model_config = ConfigDict(populate_by_name=True)

    asset_id: str = Field(alias="assetId")
    """Identifier of the asset in the local asset store."""

    target_url: str = Field(alias="targetUrl")
    """Base address of the receiving connector's default API."""


class TransferAccepted(BaseModel):
    """
    Represents a transfer that has been dispatched asynchronously.

    Example:
        >>> TransferAccepted(transferId="1d8e...", message="Transfer started")
    """

    model_config = ConfigDict(populate_by_name=True)

    transfer_id: str = Field(alias="transferId")
    """Identifier to poll with the status endpoint."""

    message: Optional[str] = None
    """Optional human-readable note."""


class TransferStatusResponse(BaseModel):
    """Represents the state of a transfer."""

    state: TransferState


class ContextRequest(BaseModel):
    """
    Represents a manually registered routing entry.

    Both addresses are optional in the schema so that a missing one can be
    reported as a 400 by the route.
    """

    provider: Optional[str] = None
    """Base address of the connector the asset is pulled from."""

    consumer: Optional[str] = None
    """Base address of the connector the asset is pushed to."""
