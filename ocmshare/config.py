"""
ocmshare - Federation configuration.
"""

import os
from dataclasses import dataclass
from typing import Iterable, Optional, TYPE_CHECKING

from .exceptions import ProviderNotFoundError

if TYPE_CHECKING:
    from .providers import ProviderRegistry


@dataclass
class FederationConfig:
    """Retry and claim settings for outbound share delivery.

    Attributes:
        max_try: Failed deliveries after which a job is abandoned.
        interval: Seconds that must pass between two attempts of a job.
        claim_timeout: Seconds a claimed job stays locked before another
            worker may take it over (covers a worker dying mid-attempt).
    """

    max_try: int = 20
    interval: int = 600
    claim_timeout: int = 300

    @classmethod
    def from_env(cls) -> "FederationConfig":
        return cls(
            max_try=int(os.environ.get("OCMSHARE_MAX_TRY", "20")),
            interval=int(os.environ.get("OCMSHARE_RETRY_INTERVAL", "600")),
            claim_timeout=int(os.environ.get("OCMSHARE_CLAIM_TIMEOUT", "300")),
        )


class ShareTypeConfig:
    """Answers which share types a resource type accepts.

    Explicit entries win; otherwise the registered provider is asked.
    A resource type nobody knows supports nothing.
    """

    def __init__(
        self,
        share_types: Optional[dict[str, Iterable[str]]] = None,
        registry: Optional["ProviderRegistry"] = None,
    ):
        self._share_types = {k: frozenset(v) for k, v in (share_types or {}).items()}
        self._registry = registry

    def supported_share_types(self, resource_type: str) -> frozenset[str]:
        if resource_type in self._share_types:
            return self._share_types[resource_type]
        if self._registry is None:
            return frozenset()
        try:
            provider = self._registry.resolve(resource_type)
        except ProviderNotFoundError:
            return frozenset()
        return frozenset(provider.supported_share_types)
