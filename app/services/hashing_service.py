"""
Hashing service.

Fingerprints of trusted participant lists. A negotiation request carries
the initiator's list together with its fingerprint so that the receiver
can detect a list that was altered in transit.

The fingerprint is computed over the canonical JSON of the list in the
order it is given: reordering the list changes the fingerprint, so both
sides must hash the list exactly as it was sent.
"""

import hashlib
import json
from typing import Iterable

from app.core.errors import HashingUnavailable
from app.models.participant import Participant


def json_dumps_canonical(obj) -> str:
    """Serializes an object to JSON with sorted keys and compact separators."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class HashVerifier:
    """
    Computes and verifies trusted participant list fingerprints.

    Args:
        algorithm (str): Name of a `hashlib` algorithm (default ``sha256``).

    Example:
        >>> verifier = HashVerifier()
        >>> fp = verifier.fingerprint([Participant(name="trustee", url="http://trustee")])
        >>> verifier.verify([Participant(name="trustee", url="http://trustee")], fp)
        True
    """

    def __init__(self, algorithm: str = "sha256"):
        self.algorithm = algorithm

    def fingerprint(self, participants: Iterable[Participant]) -> str:
        """
        Computes the fingerprint of an ordered participant list.

        Raises:
            HashingUnavailable: If the configured algorithm cannot be used.
        """

        canonical = json_dumps_canonical(
            [{"id": p.id, "name": p.name, "url": p.url} for p in participants]
        )
        try:
            digest = hashlib.new(self.algorithm)
        except (ValueError, TypeError) as e:
            raise HashingUnavailable(f"Failed to compute hash: {e}") from e
        digest.update(canonical.encode("utf-8"))
        return digest.hexdigest()

    def verify(self, participants: Iterable[Participant], expected: str) -> bool:
        return bool(expected) and self.fingerprint(participants) == expected
