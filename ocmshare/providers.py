"""
ocmshare - Resource-type providers and their registry.

A provider knows how to materialize an incoming share of one resource type
(files, calendars, ...) and how to react to lifecycle notifications about it.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

from .exceptions import ProviderNotFoundError
from .models import FederatedShareRequest, ShareType

logger = logging.getLogger("ocmshare.providers")


class CloudFederationProvider(ABC):
    """Handler for one resource type.

    Implementations signal failures by raising the ocmshare exceptions:
    ``ProviderCouldNotAddShareError`` from ``share_received`` and
    ``ShareNotFoundError``, ``ActionNotSupportedError``, ``BadRequestError``
    or ``AuthenticationFailedError`` from ``notification_received``.
    """

    #: resource type key, e.g. "file" or "calendar"
    share_type: str = ""

    supported_share_types: frozenset[str] = frozenset({ShareType.USER.value})

    @abstractmethod
    def share_received(self, share: FederatedShareRequest) -> str:
        """Materialize ``share`` locally and return the local share id."""

    @abstractmethod
    def notification_received(
        self, notification_type: str, provider_id: str, notification: dict[str, Any]
    ) -> dict[str, Any]:
        """Handle a notification and return the body sent back to the remote."""


class ProviderRegistry:
    def __init__(self):
        self._providers: dict[str, CloudFederationProvider] = {}
        self._lock = threading.Lock()

    def register(self, provider: CloudFederationProvider) -> None:
        if not provider.share_type:
            raise ValueError("Provider must declare a resource type")
        with self._lock:
            self._providers[provider.share_type] = provider
        logger.info(f"Registered provider for resource type {provider.share_type}")

    def unregister(self, resource_type: str) -> None:
        with self._lock:
            self._providers.pop(resource_type, None)

    def resolve(self, resource_type: str) -> CloudFederationProvider:
        with self._lock:
            provider = self._providers.get(resource_type)
        if provider is None:
            raise ProviderNotFoundError(resource_type)
        return provider

    def resource_types(self) -> list[str]:
        with self._lock:
            return sorted(self._providers)

    def __contains__(self, resource_type: str) -> bool:
        with self._lock:
            return resource_type in self._providers
