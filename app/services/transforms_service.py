"""
Transforms service.

Registry of the transforms (services) this connector knows about.
Descriptors are the catalog shown to users and shared with other
connectors; executable transforms are the ones this node can actually run
during a pull. Built-in transforms are registered when the registry is
created.
"""

import json
import threading
from typing import Dict, List, Optional

from app.models.transform import Transform, TransformDescriptor


class MaskTitleTransform:
    """
    Replaces the value of every JSON string field named ``title`` with
    ``"xxx"``, at any depth and inside arrays.
    """

    descriptor = TransformDescriptor(
        id="mask-title",
        name='Replace every JSON field "title" with "xxx"',
    )

    def apply(self, data: bytes) -> bytes:
        root = json.loads(data)
        return json.dumps(self._mask(root)).encode("utf-8")

    def _mask(self, node):
        if isinstance(node, dict):
            return {
                key: "xxx" if key == "title" and isinstance(value, str) else self._mask(value)
                for key, value in node.items()
            }
        if isinstance(node, list):
            return [self._mask(item) for item in node]
        return node


class TransformRegistry:
    """
    Thread-safe registry of transform descriptors and executable transforms.
    """

    def __init__(self, builtins: bool = True):
        self._descriptors: Dict[str, TransformDescriptor] = {}
        self._transforms: Dict[str, Transform] = {}
        self._lock = threading.Lock()
        if builtins:
            mask = MaskTitleTransform()
            self.register(mask.descriptor, mask)

    def register(self, descriptor: TransformDescriptor, transform: Transform) -> None:
        with self._lock:
            self._descriptors[descriptor.id] = descriptor
            self._transforms[descriptor.id] = transform

    def add(self, descriptor: TransformDescriptor) -> None:
        """Adds or replaces a catalog entry without changing executable transforms."""
        with self._lock:
            self._descriptors[descriptor.id] = descriptor

    def remove(self, transform_id: str) -> bool:
        with self._lock:
            return self._descriptors.pop(transform_id, None) is not None

    def get(self, transform_id: str) -> Optional[TransformDescriptor]:
        with self._lock:
            return self._descriptors.get(transform_id)

    def list(self) -> List[TransformDescriptor]:
        with self._lock:
            return list(self._descriptors.values())

    def lookup(self, transform_id: str) -> Optional[Transform]:
        """Returns the executable transform registered under the id, if any."""
        with self._lock:
            return self._transforms.get(transform_id)
