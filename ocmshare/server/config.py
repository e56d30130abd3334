"""
Server configuration for ocmshare.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from ..config import FederationConfig


def split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_users(value: str) -> Dict[str, str]:
    """``alice:Alice Liddell,bob`` -> ``{"alice": "Alice Liddell", "bob": "bob"}``"""
    users = {}
    for item in split_list(value):
        uid, _, display_name = item.partition(":")
        users[uid] = display_name or uid
    return users


@dataclass
class ServerConfig:
    """Configuration for the ocmshare server."""

    host: str = "0.0.0.0"
    port: int = 8000

    database_url: Optional[str] = None

    api_keys: Set[str] = field(default_factory=lambda: {"dev-admin-key"})

    cors_origins: list = field(default_factory=lambda: ["*"])

    debug: bool = False

    log_level: str = "info"

    base_url: str = "http://localhost:8000"

    api_version: str = "1.1.0"

    webdav_path: str = "/public.php/webdav/"

    trust_policy: str = "allowlist"

    trusted_servers: List[str] = field(default_factory=list)

    local_users: Dict[str, str] = field(default_factory=dict)

    local_groups: List[str] = field(default_factory=list)

    federation: FederationConfig = field(default_factory=FederationConfig)

    def __post_init__(self):
        if self.database_url is None:
            self.database_url = os.environ.get("DATABASE_URL", "sqlite:///./ocmshare.db")

        env_keys = os.environ.get("OCMSHARE_API_KEYS")
        if env_keys:
            self.api_keys = set(env_keys.split(","))

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Create configuration from environment variables."""
        return cls(
            host=os.environ.get("OCMSHARE_HOST", "0.0.0.0"),
            port=int(os.environ.get("OCMSHARE_PORT", "8000")),
            database_url=os.environ.get("DATABASE_URL"),
            debug=os.environ.get("OCMSHARE_DEBUG", "").lower() == "true",
            log_level=os.environ.get("OCMSHARE_LOG_LEVEL", "info"),
            base_url=os.environ.get("OCMSHARE_BASE_URL", "http://localhost:8000"),
            trust_policy=os.environ.get("OCMSHARE_TRUST_POLICY", "allowlist"),
            trusted_servers=split_list(os.environ.get("OCMSHARE_TRUSTED_SERVERS", "")),
            local_users=parse_users(os.environ.get("OCMSHARE_LOCAL_USERS", "")),
            local_groups=split_list(os.environ.get("OCMSHARE_LOCAL_GROUPS", "")),
            federation=FederationConfig.from_env(),
        )
