#!/usr/bin/env python3
"""
ocmshare - File Provider Server Example

Runs an ocmshare server with a small provider that keeps received file
shares in memory and answers SHARE_ACCEPTED / SHARE_UNSHARED
notifications.

Usage:
    python file_provider_server.py

    curl -X POST http://localhost:8000/ocm/shares \\
        -H 'Content-Type: application/json' \\
        -d '{"shareWith": "bob@localhost:8000", "name": "doc.odt", "providerId": 1,
             "owner": "alice@remote.example", "shareType": "user",
             "resourceType": "file",
             "protocol": {"name": "webdav", "options": {"sharedSecret": "s3cr3t"}}}'
"""

from ocmshare import (
    ActionNotSupportedError,
    AuthenticationFailedError,
    BadRequestError,
    CloudFederationProvider,
    ProviderCouldNotAddShareError,
    ProviderRegistry,
    ShareNotFoundError,
)
from ocmshare.server import OCMShareServer


class InMemoryFileProvider(CloudFederationProvider):
    share_type = "file"
    supported_share_types = frozenset({"user", "group"})

    def __init__(self):
        self.shares = {}

    def share_received(self, share):
        key = (share.owner, share.provider_id)
        if key in self.shares:
            raise ProviderCouldNotAddShareError("Share already exists")
        self.shares[key] = share
        print(f"Received {share.resource_name} from {share.owner} for {share.share_with}")
        return str(len(self.shares))

    def notification_received(self, notification_type, provider_id, notification):
        share = next(
            (s for s in self.shares.values() if s.provider_id == provider_id), None
        )
        if share is None:
            raise ShareNotFoundError("Share not found")
        if "sharedSecret" not in notification:
            raise BadRequestError(["sharedSecret"])
        if notification["sharedSecret"] != share.shared_secret:
            raise AuthenticationFailedError()

        if notification_type == "SHARE_ACCEPTED":
            return {}
        if notification_type == "SHARE_UNSHARED":
            self.shares.pop((share.owner, share.provider_id), None)
            return {}
        raise ActionNotSupportedError(notification_type)


def main():
    registry = ProviderRegistry()
    registry.register(InMemoryFileProvider())

    server = OCMShareServer(
        port=8000,
        registry=registry,
        base_url="http://localhost:8000",
        local_users={"bob": "Bob Builder"},
        trusted_servers=["remote.example"],
    )
    server.run()


if __name__ == "__main__":
    main()
