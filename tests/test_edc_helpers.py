from app.core.config import Settings
from app.util.edc_helpers import (build_asset_payload, get_binary_url, get_management_url, resolve_internal_address,
                                  strip_negotiation_suffix)


def test_strip_negotiation_suffix():
    settings = Settings()
    assert strip_negotiation_suffix("http://provider:9191/api/trusted-participants", settings) == "http://provider:9191"
    assert strip_negotiation_suffix("http://provider:9191/", settings) == "http://provider:9191"


def test_resolve_internal_address_uses_first_matching_override():
    settings = Settings(address_overrides={
        "consumer": [
            ("http://localhost:39191", "http://consumer-connector:9191"),
            ("http://localhost", "http://fallback:9191"),
        ],
    })

    reported = "http://localhost:39191/api/trusted-participants"
    assert resolve_internal_address(reported, "consumer", settings) == "http://consumer-connector:9191"
    assert resolve_internal_address("http://localhost:1/x", "consumer", settings) == "http://fallback:9191"
    assert resolve_internal_address(reported, "provider", settings) == "http://localhost:39191"


def test_management_and_binary_urls():
    settings = Settings()
    assert get_management_url("http://provider:9191", settings, "/assets/a1") == \
        "http://provider:9193/management/v3/assets/a1"
    assert get_binary_url("http://trustee:9191/", "a1", settings) == "http://trustee:9191/api/assets/a1/binary"


def test_build_asset_payload():
    payload = build_asset_payload("a1", "http://trustee:9191/api/assets/a1/binary")
    assert payload["@id"] == "a1"
    assert payload["@type"] == "Asset"
    assert payload["properties"] == {"name": "Raw-a1", "contenttype": "application/json"}
    assert payload["dataAddress"] == {"type": "HttpData", "baseUrl": "http://trustee:9191/api/assets/a1/binary"}
