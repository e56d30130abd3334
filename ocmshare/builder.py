"""
ocmshare - Assembles canonical share records from caller-supplied fields.
"""

from collections.abc import Mapping
from typing import Any, Optional

from .config import ShareTypeConfig
from .exceptions import MissingArgumentsError, UnsupportedShareTypeError
from .models import FederatedShareRequest, ShareType
from .protocol import normalize, parse_protocol, validate

REQUIRED_FIELDS = (
    "shareWith",
    "name",
    "providerId",
    "owner",
    "sender",
    "resourceType",
    "shareType",
)

_NOT_GIVEN = object()


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


class SharePayloadBuilder:
    """Validates share fields and produces an immutable FederatedShareRequest.

    ``fields`` uses the wire names (``shareWith``, ``name``, ``providerId``,
    ...). The protocol may be passed separately or as ``fields["protocol"]``.
    """

    def __init__(self, share_types: ShareTypeConfig):
        self.share_types = share_types

    def build(self, fields: Mapping[str, Any], raw_protocol: Any = _NOT_GIVEN) -> FederatedShareRequest:
        if raw_protocol is _NOT_GIVEN:
            raw_protocol = fields.get("protocol")

        errors = [
            {"name": name, "message": "NOT_FOUND"}
            for name in REQUIRED_FIELDS
            if _is_missing(fields.get(name))
        ]
        if not validate(normalize(raw_protocol)):
            errors.append({"name": "protocol", "message": "INVALID"})
        expiration = self._expiration(fields.get("expiration"), errors)
        if errors:
            raise MissingArgumentsError(errors=errors)

        share_type = fields["shareType"]
        resource_type = fields["resourceType"]
        if share_type not in self.share_types.supported_share_types(resource_type):
            raise UnsupportedShareTypeError(share_type, resource_type)
        try:
            share_type = ShareType(share_type)
        except ValueError:
            raise UnsupportedShareTypeError(share_type, resource_type)

        return FederatedShareRequest(
            share_with=fields["shareWith"],
            resource_name=fields["name"],
            provider_id=str(fields["providerId"]),
            owner=fields["owner"],
            sender=fields["sender"],
            share_type=share_type,
            resource_type=resource_type,
            protocol=parse_protocol(raw_protocol),
            description=fields.get("description") or "",
            owner_display_name=fields.get("ownerDisplayName"),
            sender_display_name=fields.get("senderDisplayName"),
            expiration=expiration,
        )

    @staticmethod
    def _expiration(value: Any, errors: list[dict[str, str]]) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            errors.append({"name": "expiration", "message": "INVALID"})
            return None
