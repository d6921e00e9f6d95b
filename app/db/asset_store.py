"""
Asset store.

Raw asset bytes are kept on the local filesystem, one file per asset id,
under the directory configured with `ASSET_STORE_DIR`. The store is the
only component that touches those files.

Usage example:
    >>> store = FileSystemAssetStore(Path("opt/asset-store"))
    >>> store.save("asset-1", b'{"title": "report"}')
    >>> store.exists("asset-1")
    True
"""

from pathlib import Path
from typing import Protocol

from app.core.errors import InvalidRequest, NotFound


class AssetStore(Protocol):
    """Interface of the blob store used by the transfer services."""

    def save(self, asset_id: str, data: bytes) -> None: ...

    def load(self, asset_id: str) -> bytes: ...

    def exists(self, asset_id: str) -> bool: ...


class FileSystemAssetStore:
    """
    Asset store backed by a directory.

    Args:
        root (Path): Directory holding the asset files. Created on first save.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, asset_id: str) -> Path:
        if not asset_id or "/" in asset_id or "\\" in asset_id or asset_id in (".", ".."):
            raise InvalidRequest(f"Invalid asset id: {asset_id!r}")
        return self.root / asset_id

    def save(self, asset_id: str, data: bytes) -> None:
        """
        Stores (or replaces) the bytes of an asset.

        Raises:
            InvalidRequest: If the id cannot be used as a file name.
        """

        path = self._path(asset_id)
        self.root.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def load(self, asset_id: str) -> bytes:
        """
        Returns the bytes of an asset.

        Raises:
            NotFound: If no asset is stored under the id.
        """

        path = self._path(asset_id)
        if not path.is_file():
            raise NotFound(f"Asset {asset_id} not found")
        return path.read_bytes()

    def exists(self, asset_id: str) -> bool:
        try:
            return self._path(asset_id).is_file()
        except InvalidRequest:
            return False
