"""
EDC helpers.

Utility functions to derive the addresses a connector is reached at and
to build the payloads exchanged with an EDC Management API.

Responsibilities:
    - Strip the trusted-participants path from a participant URL.
    - Resolve the internal address of a participant (`resolve_internal_address`),
      the single place where deployment topology is taken into account.
    - Compose Management API and binary endpoint URLs.
    - Build the JSON-LD asset definition registered on a Management API.
"""

import httpx

from app.core.config import Settings


def strip_negotiation_suffix(url: str, settings: Settings) -> str:
    """
    Returns the base address of a participant URL.

    Participants advertise the address of their trusted-participants API
    (e.g. ``http://provider:9191/api/trusted-participants``); transfers
    need the connector's base address (``http://provider:9191``).

    Args:
        url (str): Reported participant URL.
        settings (Settings): Node settings providing the API prefix.

    Returns:
        str: URL without the trusted-participants path and trailing slash.
    """

    suffix = settings.negotiation_suffix
    index = url.find(suffix)
    if index != -1:
        url = url[:index]
    return url.rstrip("/")


def resolve_internal_address(reported_url: str, role: str, settings: Settings) -> str:
    """
    Resolves the base address the trustee must use to reach a participant.

    A participant may report an address that is only valid from its own
    network (for instance ``localhost`` behind a port mapping). Such
    addresses are rewritten with the prefix overrides configured for the
    participant's role (`CONSUMER_ADDRESS_OVERRIDES`,
    `PROVIDER_ADDRESS_OVERRIDES`); the first matching prefix wins. Any other
    address is used as reported, without the trusted-participants path.

    Args:
        reported_url (str): URL the participant reported.
        role (str): ``provider`` or ``consumer``.
        settings (Settings): Node settings holding the overrides.

    Returns:
        str: Base address of the participant's default API.

    Example:
        >>> settings.address_overrides = {"consumer": [("http://localhost:39191", "http://consumer-connector:9191")]}
        >>> resolve_internal_address("http://localhost:39191/api/trusted-participants", "consumer", settings)
        'http://consumer-connector:9191'
    """

    for prefix, base in settings.address_overrides.get(role, []):
        if reported_url.startswith(prefix):
            return base
    return strip_negotiation_suffix(reported_url, settings)


def get_management_url(base_url: str, settings: Settings, path: str = "") -> str:
    """
    Builds the Management API URL of a connector from its base address.

    The Management API listens on the same host as the default API, on the
    configured management port.

    Args:
        base_url (str): Base address of the connector's default API.
        settings (Settings): Node settings (management port and path).
        path (str): Path to append (e.g. ``/assets``).

    Returns:
        str: Fully qualified Management API URL.
    """

    url = httpx.URL(base_url)
    return f"{url.scheme}://{url.host}:{settings.management_port}{settings.management_path}{path}"


def get_binary_url(base_url: str, asset_id: str, settings: Settings) -> str:
    """Returns the binary upload/download endpoint of an asset on a connector."""
    return f"{base_url.rstrip('/')}{settings.api_prefix}/assets/{asset_id}/binary"


def build_asset_payload(asset_id: str, binary_url: str, name: str = "", content_type: str = "application/json") -> dict:
    """
    Builds the EDC asset definition pointing at a binary endpoint.

    Args:
        asset_id (str): Identifier (`@id`) of the asset.
        binary_url (str): Address the asset bytes are served from.
        name (str): Optional asset name (defaults to ``Raw-<asset_id>``).
        content_type (str): Content type advertised for the asset.

    Returns:
        dict: JSON-LD payload for ``POST /v3/assets``.
    """

    return {
        "@context": {"@vocab": "https://w3id.org/edc/v0.0.1/ns/"},
        "@id": asset_id,
        "@type": "Asset",
        "properties": {
            "name": name or f"Raw-{asset_id}",
            "contenttype": content_type
        },
        "dataAddress": {
            "type": "HttpData",
            "baseUrl": binary_url
        }
    }
