"""
ocmshare - Routing of inbound shares and lifecycle notifications to providers.

Providers report failures with the ocmshare exceptions; those pass through
unchanged. Anything else a provider raises is logged and surfaced as
``InternalError``.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from .delivery import Transport
from .exceptions import DeliveryFailedError, InternalError, MissingArgumentsError, OCMError
from .models import FederatedShareRequest
from .providers import ProviderRegistry

logger = logging.getLogger("ocmshare.dispatcher")


class NotificationDispatcher:
    def __init__(self, registry: ProviderRegistry, transport: Optional[Transport] = None):
        self.registry = registry
        self.transport = transport

    def dispatch(
        self,
        notification_type: Optional[str],
        resource_type: Optional[str],
        provider_id: Optional[str],
        payload: Any,
    ) -> dict[str, Any]:
        """Hand an inbound notification to the provider of ``resource_type``."""
        if (
            notification_type is None
            or resource_type is None
            or provider_id is None
            or not isinstance(payload, Mapping)
        ):
            raise MissingArgumentsError()

        provider = self.registry.resolve(resource_type)
        try:
            result = provider.notification_received(notification_type, provider_id, dict(payload))
        except OCMError:
            raise
        except Exception as e:
            logger.error(
                f"Provider {resource_type} failed on {notification_type} for {provider_id}: {e}",
                exc_info=True,
            )
            raise InternalError("Internal error") from e

        logger.info(f"Notification {notification_type} for {resource_type}/{provider_id} handled")
        return result if result is not None else {}

    def receive_share(self, share: FederatedShareRequest) -> str:
        """Hand an inbound share to its provider and return the local share id."""
        provider = self.registry.resolve(share.resource_type)
        try:
            local_id = provider.share_received(share)
        except OCMError:
            raise
        except Exception as e:
            logger.error(f"Provider {share.resource_type} failed to add share: {e}", exc_info=True)
            raise InternalError("Internal error") from e

        logger.info(
            f"Received {share.resource_type} share {share.provider_id} from {share.sender} "
            f"for {share.share_with}"
        )
        return local_id

    def send_notification(
        self,
        remote: str,
        notification_type: str,
        resource_type: str,
        provider_id: str,
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Forward a lifecycle notification to the server that owns the share."""
        if self.transport is None:
            raise InternalError("No transport configured for outbound notifications")
        if not remote or not notification_type or not resource_type or provider_id is None:
            raise MissingArgumentsError()

        try:
            return self.transport.notify(
                remote, notification_type, resource_type, provider_id, dict(payload)
            )
        except OCMError:
            raise
        except Exception as e:
            logger.warning(f"Notification {notification_type} to {remote} failed: {e}")
            raise DeliveryFailedError(f"Could not notify {remote}") from e
