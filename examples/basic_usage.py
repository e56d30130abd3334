#!/usr/bin/env python3
"""
ocmshare - Basic Usage Example

Builds a share, queues it for delivery and drives the retry job by hand,
then walks through the invitation handshake. Everything runs in-process
with in-memory stores; set OCMSHARE_REMOTE to deliver to a real server.

Prerequisites:
    pip install ocmshare

Usage:
    export OCMSHARE_REMOTE=cloud.example.com   # optional
    python basic_usage.py
"""

import logging
import os

from ocmshare import (
    DeliveryReply,
    FederationConfig,
    HttpTransport,
    InMemoryJobQueue,
    InMemoryTokenStore,
    InvitationAcceptanceWorkflow,
    OCMError,
    SharePayloadBuilder,
    ShareDispatchRetryJob,
    ShareProtocol,
    ShareTypeConfig,
    Transport,
    TrustedServers,
)


class PrintingTransport(Transport):
    """Pretends every remote accepts the share."""

    def send(self, share):
        print(f"   -> POST /ocm/shares for {share.share_with}")
        return DeliveryReply(status_code=201, acknowledged=True)

    def notify(self, remote, notification_type, resource_type, provider_id, payload):
        print(f"   -> POST /ocm/notifications {notification_type} to {remote}")
        return {}


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    remote = os.getenv("OCMSHARE_REMOTE")

    # 1. Build a share record
    print("1. Building share...")
    builder = SharePayloadBuilder(ShareTypeConfig({"file": ["user", "group"]}))
    share = builder.build(
        {
            "shareWith": f"bob@{remote or 'remote.example'}",
            "name": "quarterly-report.odt",
            "providerId": 42,
            "owner": "alice",
            "sender": "alice",
            "shareType": "user",
            "resourceType": "file",
            "protocol": ShareProtocol.legacy("s3cr3t").to_dict(),
        }
    )
    print(f"   Protocol: {share.protocol.variant.value}")
    print(f"   Shared secret: {share.shared_secret}")

    # 2. Queue and deliver it
    print("\n2. Delivering share...")
    transport = HttpTransport(timeout=10.0) if remote else PrintingTransport()
    queue = InMemoryJobQueue()
    job_runner = ShareDispatchRetryJob(transport, queue, FederationConfig(max_try=3))
    job = job_runner.schedule(share)
    try:
        outcome = job_runner.execute(job)
        print(f"   Outcome: {outcome.value} ({outcome.state.value})")
    except OCMError as e:
        print(f"   Delivery error: {e.message}")

    # 3. Invitation handshake
    print("\n3. Invitation handshake...")
    invitations = InvitationAcceptanceWorkflow(
        InMemoryTokenStore(), TrustedServers(servers=["remote.example"])
    )
    invitation = invitations.issue("alice", "remote.example", "bob", email="bob@remote.example")
    print(f"   Token: {invitation.token}")

    accepted = invitations.accept("remote.example", invitation.token, "bob", "", "")
    print(f"   Accepted: {accepted.to_dict()}")

    try:
        invitations.accept("remote.example", invitation.token, "bob", "", "")
    except OCMError as e:
        print(f"   Replay rejected: {e.message}")

    print("\nDone!")


if __name__ == "__main__":
    main()
