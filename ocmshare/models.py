"""
ocmshare - Data models for federated shares, delivery jobs and invitations.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .protocol import ShareProtocol, parse_protocol


class ShareType(str, Enum):
    """Who the share is granted to on the receiving server."""

    USER = "user"
    GROUP = "group"
    FEDERATION = "federation"


class NotificationType(str, Enum):
    """Lifecycle notifications exchanged about an existing share."""

    SHARE_ACCEPTED = "SHARE_ACCEPTED"
    SHARE_DECLINED = "SHARE_DECLINED"
    SHARE_UNSHARED = "SHARE_UNSHARED"
    REQUEST_RESHARE = "REQUEST_RESHARE"
    RESHARE_UNDO = "RESHARE_UNDO"
    RESHARE_CHANGE_PERMISSION = "RESHARE_CHANGE_PERMISSION"


class JobState(str, Enum):
    ACTIVE = "active"
    RETIRED = "retired"


class JobOutcome(str, Enum):
    """Result of one execution of a delivery job."""

    SKIPPED = "skipped"
    IN_FLIGHT = "in_flight"
    DELIVERED = "delivered"
    RETRY_SCHEDULED = "retry_scheduled"
    ABANDONED = "abandoned"

    @property
    def state(self) -> JobState:
        if self in (JobOutcome.DELIVERED, JobOutcome.ABANDONED):
            return JobState.RETIRED
        return JobState.ACTIVE


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PROCESSED = "processed"


@dataclass(frozen=True)
class FederatedShareRequest:
    """An immutable share record, built once by ``SharePayloadBuilder``.

    Display names default to the owner/sender uid when not supplied. Compares
    by value; not hashable, like its protocol.
    """

    share_with: str
    resource_name: str
    provider_id: str
    owner: str
    sender: str
    share_type: ShareType
    resource_type: str
    protocol: ShareProtocol
    description: str = ""
    owner_display_name: Optional[str] = None
    sender_display_name: Optional[str] = None
    expiration: Optional[int] = None

    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self):
        if self.owner_display_name is None:
            object.__setattr__(self, "owner_display_name", self.owner)
        if self.sender_display_name is None:
            object.__setattr__(self, "sender_display_name", self.sender)

    @property
    def shared_secret(self) -> str:
        return self.protocol.shared_secret

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "shareWith": self.share_with,
            "name": self.resource_name,
            "description": self.description,
            "providerId": self.provider_id,
            "owner": self.owner,
            "ownerDisplayName": self.owner_display_name,
            "sender": self.sender,
            "senderDisplayName": self.sender_display_name,
            "shareType": self.share_type.value,
            "resourceType": self.resource_type,
            "protocol": self.protocol.to_dict(),
        }
        if self.expiration is not None:
            result["expiration"] = self.expiration
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FederatedShareRequest":
        return cls(
            share_with=data["shareWith"],
            resource_name=data["name"],
            provider_id=data["providerId"],
            owner=data["owner"],
            sender=data["sender"],
            share_type=ShareType(data["shareType"]),
            resource_type=data["resourceType"],
            protocol=parse_protocol(data["protocol"]),
            description=data.get("description") or "",
            owner_display_name=data.get("ownerDisplayName"),
            sender_display_name=data.get("senderDisplayName"),
            expiration=data.get("expiration"),
        )


@dataclass
class DeliveryReply:
    """What the remote side answered to a share delivery."""

    status_code: int
    acknowledged: bool
    body: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryJob:
    """A queued outbound share delivery."""

    id: str
    share: FederatedShareRequest
    last_run: float = 0
    tries: int = 0

    def to_dict(self) -> dict[str, Any]:
        result = self.share.to_dict()
        result.update({"id": self.id, "lastRun": self.last_run, "try": self.tries})
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeliveryJob":
        return cls(
            id=data["id"],
            share=FederatedShareRequest.from_dict(data),
            last_run=data.get("lastRun", 0),
            tries=int(data.get("try", 0)),
        )


@dataclass
class InvitationToken:
    id: str
    token: str
    sender: str
    recipient_provider: str
    user_id: str
    email: str = ""
    name: str = ""
    status: InvitationStatus = InvitationStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "token": self.token,
            "sender": self.sender,
            "recipientProvider": self.recipient_provider,
            "userID": self.user_id,
            "email": self.email,
            "name": self.name,
            "status": self.status.value,
        }


@dataclass
class InvitationAccepted:
    """Answer to an accepted invitation; values come from the stored token."""

    sender: str
    email: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"userID": self.sender, "email": self.email, "name": self.name}
