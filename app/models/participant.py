"""
Participant model definition.

A participant is any connector taking part in a data exchange: a data
source (provider), a data sink (consumer) or a data trustee. Participants
are compared by their `(name, url)` pair; the optional `id` (usually a DID)
is carried along for information only.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Participant(BaseModel):
    """
    Represents a connector known to this node.

    Instances are immutable. Two participants are equal when their `name`
    and `url` are equal, regardless of `id`.

    Example:
        >>> a = Participant(id="did:web:trustee", name="trustee", url="http://trustee:9191/api/trusted-participants")
        >>> b = Participant(name="trustee", url="http://trustee:9191/api/trusted-participants")
        >>> a == b
        True
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    """Informational identifier of the participant (e.g. a DID)."""

    name: str
    """Human-readable name of the participant."""

    url: str
    """Address of the participant's trusted-participants API."""

    @property
    def identity(self) -> tuple:
        return (self.name, self.url)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Participant):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)
