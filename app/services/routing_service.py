"""
Routing service.

The routing table remembers, for each asset of a ready exchange, where the
asset comes from (provider base address) and where it goes to (consumer
base address). Keys are scoped by exchange entry (`entryId::assetId`);
unscoped keys are accepted for manually registered routes.
"""

import threading
from typing import Dict, List, NamedTuple, Optional

from app.core.errors import InvalidRequest, NotFound

SCOPE_SEPARATOR = "::"


class RoutingEntry(NamedTuple):
    provider_base_url: str
    consumer_base_url: str


def scoped_key(entry_id: str, asset_id: str) -> str:
    return f"{entry_id}{SCOPE_SEPARATOR}{asset_id}"


def unscoped_id(key: str) -> str:
    """Returns the asset id of a routing key without its `entryId::` scope."""
    if SCOPE_SEPARATOR in key:
        return key.split(SCOPE_SEPARATOR, 1)[1]
    return key


class RoutingTable:
    """
    Thread-safe map from routing key to `RoutingEntry`.

    Example:
        >>> table = RoutingTable()
        >>> table.put("e1::a1", "http://provider:9191", "http://consumer:9191")
        >>> table.resolve("a1")
        'e1::a1'
    """

    def __init__(self):
        self._routes: Dict[str, RoutingEntry] = {}
        self._lock = threading.Lock()

    def put(self, key: str, provider_base_url: str, consumer_base_url: str) -> None:
        """
        Stores the addresses of an asset.

        Raises:
            InvalidRequest: If either address is empty.
        """

        if not provider_base_url or not consumer_base_url:
            raise InvalidRequest(f"Refusing to route {key} without provider and consumer addresses")
        with self._lock:
            self._routes[key] = RoutingEntry(provider_base_url, consumer_base_url)

    def get(self, key: str) -> Optional[RoutingEntry]:
        with self._lock:
            return self._routes.get(key)

    def provider(self, key: str) -> str:
        return self._require(key).provider_base_url

    def consumer(self, key: str) -> str:
        return self._require(key).consumer_base_url

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._routes)

    def keys_of_entry(self, entry_id: str) -> List[str]:
        prefix = entry_id + SCOPE_SEPARATOR
        return [k for k in self.keys() if k.startswith(prefix)]

    def remove_entry(self, entry_id: str) -> int:
        """Drops every route scoped to an exchange entry; returns how many were removed."""
        prefix = entry_id + SCOPE_SEPARATOR
        with self._lock:
            stale = [k for k in self._routes if k.startswith(prefix)]
            for key in stale:
                del self._routes[key]
        return len(stale)

    def resolve(self, asset_id: str) -> str:
        """
        Finds the routing key for an asset id.

        An exact key wins; otherwise the first scoped key ending in
        ``::<asset_id>`` is used.

        Raises:
            NotFound: If no key matches.
        """

        keys = self.keys()
        if asset_id in keys:
            return asset_id
        for key in keys:
            if key.endswith(SCOPE_SEPARATOR + asset_id):
                return key
        raise NotFound(
            f"No exchange context found for asset {asset_id}. Available context keys: {', '.join(keys)}"
        )

    def _require(self, key: str) -> RoutingEntry:
        route = self.get(key)
        if route is None:
            raise NotFound(f"No route known for asset {key}")
        return route
