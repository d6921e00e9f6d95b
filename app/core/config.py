"""
Node configuration.

This module loads the runtime configuration of a trustee connector node
from environment variables (optionally read from a `.env` file).

Environment variables:
    - NODE_NAME: Human-readable name of this connector (default: connector)
    - API_PREFIX: Prefix under which every router is mounted (default: /api)
    - ASSET_STORE_DIR: Directory backing the asset store (default: opt/asset-store)
    - ENTRY_TIMEOUT_SECONDS: Time an exchange entry may wait for its
      counterpart before failing (default: 5)
    - HTTP_TIMEOUT_SECONDS: Timeout for every outbound HTTP call (default: 10)
    - COMPLETION_RETRIES: Attempts per side for completion callbacks (default: 3)
    - COMPLETION_RETRY_DELAY_SECONDS: Pause before each retry, multiplied by
      the attempt number (default: 0.5)
    - API_PORT / MANAGEMENT_PORT / MANAGEMENT_PATH: Used to derive a
      connector's management API from its default API address
    - SELF_MANAGEMENT_URL: Management API of this node
    - SELF_PUBLIC_URL: Default API base address of this node
    - FINGERPRINT_ALGORITHM: hashlib algorithm for trusted list fingerprints
    - TRUSTED_PARTICIPANTS_FILE: Optional JSON list used to seed the whitelist
    - CONSUMER_ADDRESS_OVERRIDES / PROVIDER_ADDRESS_OVERRIDES:
      ``prefix=>base`` pairs separated by ``;``
    - LOG_LEVEL: Logging level name (default: INFO)
    - CORS_ORIGINS: Comma separated list of allowed origins (default: *)

Usage example:
    >>> from app.core.config import Settings
    >>> settings = Settings.from_env()
    >>> settings.entry_timeout_seconds
    5.0
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import find_dotenv, load_dotenv


def parse_overrides(raw: str) -> List[Tuple[str, str]]:
    """
    Parses an address override list.

    Args:
        raw (str): Value such as
            ``http://localhost:39191=>http://consumer-connector:9191;...``

    Returns:
        List[Tuple[str, str]]: Ordered ``(prefix, replacement_base)`` pairs.
        Malformed items are ignored.
    """

    pairs = []
    for item in raw.split(";"):
        if "=>" not in item:
            continue
        prefix, base = item.split("=>", 1)
        prefix, base = prefix.strip(), base.strip()
        if prefix and base:
            pairs.append((prefix, base.rstrip("/")))
    return pairs


@dataclass
class Settings:
    """
    Trustee connector configuration.

    Configuration priority (highest to lowest):
    1. Environment variables
    2. `.env` file in the working directory
    3. Default values
    """

    node_name: str = "connector"
    api_prefix: str = "/api"
    asset_store_dir: Path = field(default_factory=lambda: Path("opt/asset-store"))

    # Exchange lifecycle
    entry_timeout_seconds: float = 5.0
    completion_retries: int = 3
    completion_retry_delay_seconds: float = 0.5

    # Outbound HTTP
    http_timeout_seconds: float = 10.0

    # Connector topology
    api_port: int = 9191
    management_port: int = 9193
    management_path: str = "/management/v3"
    self_management_url: str = "http://localhost:9193/management/v3"
    self_public_url: str = "http://localhost:9191"
    address_overrides: Dict[str, List[Tuple[str, str]]] = field(default_factory=dict)

    # Trust
    fingerprint_algorithm: str = "sha256"
    trusted_participants_file: Optional[Path] = None

    # Logging / HTTP shell
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def negotiation_suffix(self) -> str:
        """Path that participants append to their base URL for the trust API."""
        return f"{self.api_prefix}/trusted-participants"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load configuration from environment variables."""
        load_dotenv(find_dotenv(usecwd=True))

        settings = cls()

        settings.node_name = os.getenv("NODE_NAME", settings.node_name)
        settings.api_prefix = os.getenv("API_PREFIX", settings.api_prefix).rstrip("/")
        settings.asset_store_dir = Path(os.getenv("ASSET_STORE_DIR", str(settings.asset_store_dir)))

        settings.entry_timeout_seconds = float(
            os.getenv("ENTRY_TIMEOUT_SECONDS", settings.entry_timeout_seconds)
        )
        settings.completion_retries = int(os.getenv("COMPLETION_RETRIES", settings.completion_retries))
        settings.completion_retry_delay_seconds = float(
            os.getenv("COMPLETION_RETRY_DELAY_SECONDS", settings.completion_retry_delay_seconds)
        )
        settings.http_timeout_seconds = float(
            os.getenv("HTTP_TIMEOUT_SECONDS", settings.http_timeout_seconds)
        )

        settings.api_port = int(os.getenv("API_PORT", settings.api_port))
        settings.management_port = int(os.getenv("MANAGEMENT_PORT", settings.management_port))
        settings.management_path = os.getenv("MANAGEMENT_PATH", settings.management_path)
        settings.self_management_url = os.getenv("SELF_MANAGEMENT_URL", settings.self_management_url).rstrip("/")
        settings.self_public_url = os.getenv("SELF_PUBLIC_URL", settings.self_public_url).rstrip("/")

        settings.address_overrides = {
            "consumer": parse_overrides(os.getenv("CONSUMER_ADDRESS_OVERRIDES", "")),
            "provider": parse_overrides(os.getenv("PROVIDER_ADDRESS_OVERRIDES", "")),
        }

        settings.fingerprint_algorithm = os.getenv("FINGERPRINT_ALGORITHM", settings.fingerprint_algorithm)
        trusted_file = os.getenv("TRUSTED_PARTICIPANTS_FILE")
        if trusted_file:
            settings.trusted_participants_file = Path(trusted_file)

        settings.log_level = os.getenv("LOG_LEVEL", settings.log_level).upper()
        origins = os.getenv("CORS_ORIGINS")
        if origins:
            settings.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]

        return settings
