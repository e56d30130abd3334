"""
ocmshare - HTTP transport to remote OCM endpoints.
"""

import logging
from typing import Any, Optional

import httpx

from .delivery import Transport
from .exceptions import DeliveryFailedError
from .models import DeliveryReply, FederatedShareRequest

logger = logging.getLogger("ocmshare.transport")


def resolve_remote(cloud_id: str, scheme: str = "https") -> str:
    """Base URL of the server hosting ``cloud_id`` (``user@host[/path]``)."""
    if "@" not in cloud_id:
        raise ValueError(f"Invalid cloud id: {cloud_id}")
    remote = cloud_id.rsplit("@", 1)[1].rstrip("/")
    if not remote:
        raise ValueError(f"Invalid cloud id: {cloud_id}")
    if remote.startswith("http://") or remote.startswith("https://"):
        return remote
    return f"{scheme}://{remote}"


def split_cloud_id(cloud_id: str) -> tuple[str, str]:
    """Split ``user@host`` into its user and remote parts."""
    if "@" not in cloud_id:
        return cloud_id, ""
    user, remote = cloud_id.rsplit("@", 1)
    return user, remote


def _json_body(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}


class HttpTransport(Transport):
    """
    Sends shares and notifications over HTTP.

    Example:
        ```python
        transport = HttpTransport(timeout=10.0)
        reply = transport.send(share)
        if reply.acknowledged:
            ...
        ```
    """

    def __init__(
        self,
        timeout: float = 30.0,
        endpoint_path: str = "/ocm",
        scheme: str = "https",
        client: Optional[httpx.Client] = None,
    ):
        self.endpoint_path = "/" + endpoint_path.strip("/")
        self.scheme = scheme
        self._client = client or httpx.Client(
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    def send(self, share: FederatedShareRequest) -> DeliveryReply:
        try:
            url = f"{resolve_remote(share.share_with, self.scheme)}{self.endpoint_path}/shares"
        except ValueError as e:
            raise DeliveryFailedError(str(e)) from e

        try:
            response = self._client.post(url, json=share.to_dict())
        except httpx.HTTPError as e:
            raise DeliveryFailedError(f"Could not reach {url}: {e}") from e

        logger.debug(f"POST {url} -> {response.status_code}")
        return DeliveryReply(
            status_code=response.status_code,
            acknowledged=response.status_code == 201,
            body=_json_body(response),
        )

    def notify(
        self,
        remote: str,
        notification_type: str,
        resource_type: str,
        provider_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        if not remote.startswith("http://") and not remote.startswith("https://"):
            remote = f"{self.scheme}://{remote}"
        url = f"{remote.rstrip('/')}{self.endpoint_path}/notifications"
        body = {
            "notificationType": notification_type,
            "resourceType": resource_type,
            "providerId": provider_id,
            "notification": payload,
        }

        try:
            response = self._client.post(url, json=body)
        except httpx.HTTPError as e:
            raise DeliveryFailedError(f"Could not reach {url}: {e}") from e

        data = _json_body(response)
        if response.status_code >= 400:
            raise DeliveryFailedError(
                f"Notification rejected with status {response.status_code}",
                status_code=response.status_code,
                response=data,
            )
        return data

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
