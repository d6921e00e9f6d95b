"""
Transform model definitions.

A transform (called a *service* on the wire) is a named processing step
that the trustee can apply to asset bytes between pulling them from the
provider and pushing them to the consumer.
"""

from typing import Optional, Protocol

from pydantic import BaseModel


class TransformDescriptor(BaseModel):
    """
    Catalog entry describing a transform.

    Descriptors are what providers publish and what the UI lists; they can
    exist without an executable transform on this node.

    Example:
        >>> TransformDescriptor(id="mask-title", name="Replace every JSON field 'title' with 'xxx'")
    """

    id: str
    """Unique identifier, e.g. `mask-title`."""

    name: str = ""
    """Human-readable label."""

    endpoint: Optional[str] = None
    """Optional address where data can be posted for remote processing."""


class Transform(Protocol):
    """Executable side of a transform."""

    def apply(self, data: bytes) -> bytes:
        """Returns the transformed bytes; may raise on unexpected input."""
        ...
