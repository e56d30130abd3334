"""
ocmshare - Protocol negotiation for share requests.

A share request carries a ``protocol`` object describing how the receiver
reaches the shared resource. Three wire shapes exist:

* ``singleProtocolLegacy``: ``{"name": "webdav", "options": {"sharedSecret": ...}}``
* ``singleProtocolNew``: the legacy shape plus a ``webdav`` block carrying
  ``sharedSecret``, ``permissions`` and ``uri``
* ``multipleProtocols``: ``{"name": "multi", "webdav": ..., "webapp": ...,
  "datatx": ..., "options": ...}``

Protocol v1.0 senders post the legacy body without a tag; ``normalize``
wraps it so that every envelope has exactly one tag before validation.
"""

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from .exceptions import MissingArgumentsError


class ProtocolVariant(str, Enum):
    LEGACY_SINGLE = "singleProtocolLegacy"
    EXTENDED_SINGLE = "singleProtocolNew"
    MULTI = "multipleProtocols"


WEBDAV = "webdav"
MULTI = "multi"

_EXTENDED_WEBDAV_FIELDS = ("sharedSecret", "permissions", "uri")

_MULTI_SUBPROTOCOL_FIELDS = {
    "webdav": ("uri", "permissions"),
    "webapp": ("uriTemplate", "viewMode"),
    "datatx": ("srcUri", "size"),
}


@dataclass(frozen=True)
class ShareProtocol:
    """A validated protocol envelope: one variant tag and its body.

    The body is copied on construction and accessors hand out copies, so an
    envelope never changes once built. Compares by value; not hashable.
    """

    variant: ProtocolVariant
    body: dict[str, Any]

    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self):
        object.__setattr__(self, "body", copy.deepcopy(dict(self.body)))

    @property
    def name(self) -> str:
        return self.body.get("name", MULTI if self.variant == ProtocolVariant.MULTI else "")

    @property
    def options(self) -> dict[str, Any]:
        return copy.deepcopy(dict(self.body.get("options") or {}))

    @property
    def webdav(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self.body.get("webdav"))

    @property
    def webapp(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self.body.get("webapp"))

    @property
    def datatx(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self.body.get("datatx"))

    @property
    def shared_secret(self) -> str:
        return extract_shared_secret(self)

    def to_envelope(self) -> dict[str, Any]:
        """Tagged form, as accepted by ``validate``."""
        return {self.variant.value: copy.deepcopy(self.body)}

    def to_dict(self) -> dict[str, Any]:
        """Wire form. Legacy envelopes go out untagged so v1.0 receivers read them."""
        if self.variant == ProtocolVariant.LEGACY_SINGLE:
            return copy.deepcopy(self.body)
        return self.to_envelope()

    @classmethod
    def from_dict(cls, raw: Any) -> "ShareProtocol":
        return parse_protocol(raw)

    @classmethod
    def legacy(cls, shared_secret: str, **options: Any) -> "ShareProtocol":
        return cls(
            variant=ProtocolVariant.LEGACY_SINGLE,
            body={"name": WEBDAV, "options": {"sharedSecret": shared_secret, **options}},
        )

    @classmethod
    def extended(
        cls,
        shared_secret: str,
        permissions: Any,
        uri: str,
        options: Optional[dict[str, Any]] = None,
    ) -> "ShareProtocol":
        return cls(
            variant=ProtocolVariant.EXTENDED_SINGLE,
            body={
                "name": WEBDAV,
                "options": {"sharedSecret": shared_secret, **(options or {})},
                "webdav": {
                    "sharedSecret": shared_secret,
                    "permissions": permissions,
                    "uri": uri,
                },
            },
        )

    @classmethod
    def multi(
        cls,
        webdav: Optional[dict[str, Any]] = None,
        webapp: Optional[dict[str, Any]] = None,
        datatx: Optional[dict[str, Any]] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> "ShareProtocol":
        body: dict[str, Any] = {
            "name": MULTI,
            "webdav": webdav,
            "webapp": webapp,
            "datatx": datatx,
        }
        if options is not None:
            body["options"] = options
        return cls(variant=ProtocolVariant.MULTI, body=body)


def normalize(raw: Any) -> Any:
    """Wrap an untagged v1.0 body (top-level ``name``) as a legacy envelope.

    Anything else is returned unchanged for variant detection.
    """
    if isinstance(raw, Mapping) and "name" in raw:
        return {ProtocolVariant.LEGACY_SINGLE.value: dict(raw)}
    return raw


def detect_variant(envelope: Any) -> Optional[ProtocolVariant]:
    """Return the variant tag of a normalized envelope, or None when the
    envelope does not carry exactly one known tag and nothing else."""
    if not isinstance(envelope, Mapping) or len(envelope) != 1:
        return None
    (key,) = envelope.keys()
    try:
        return ProtocolVariant(key)
    except ValueError:
        return None


def _has_fields(block: Any, fields: tuple[str, ...]) -> bool:
    return isinstance(block, Mapping) and all(block.get(f) is not None for f in fields)


def _validate_legacy(body: Mapping) -> bool:
    options = body.get("options")
    return (
        body.get("name") == WEBDAV
        and isinstance(options, Mapping)
        and options.get("sharedSecret") is not None
    )


def _validate_extended(body: Mapping) -> bool:
    return (
        body.get("name") == WEBDAV
        and isinstance(body.get("options"), Mapping)
        and _has_fields(body.get("webdav"), _EXTENDED_WEBDAV_FIELDS)
    )


def _validate_multi(body: Mapping) -> bool:
    if "name" in body and body["name"] != MULTI:
        return False
    for key, fields in _MULTI_SUBPROTOCOL_FIELDS.items():
        # the key must be present even when its value is null
        if key not in body:
            return False
        block = body[key]
        if block is not None and not _has_fields(block, fields):
            return False
    options = body.get("options")
    return options is None or isinstance(options, Mapping)


_VALIDATORS = {
    ProtocolVariant.LEGACY_SINGLE: _validate_legacy,
    ProtocolVariant.EXTENDED_SINGLE: _validate_extended,
    ProtocolVariant.MULTI: _validate_multi,
}


def validate(envelope: Any) -> bool:
    """Check a normalized envelope against its variant's required fields."""
    variant = detect_variant(envelope)
    if variant is None:
        return False
    body = envelope[variant.value]
    if not isinstance(body, Mapping):
        return False
    return _VALIDATORS[variant](body)


def extract_shared_secret(envelope: Union[ShareProtocol, Mapping, Any]) -> str:
    """Return the shared secret of an envelope, or "" when it carries none."""
    if isinstance(envelope, ShareProtocol):
        variant, body = envelope.variant, envelope.body
    else:
        variant = detect_variant(envelope)
        if variant is None or not isinstance(envelope[variant.value], Mapping):
            return ""
        body = envelope[variant.value]

    block = body.get("webdav" if variant == ProtocolVariant.EXTENDED_SINGLE else "options")
    secret = block.get("sharedSecret") if isinstance(block, Mapping) else None
    return "" if secret is None else str(secret)


def parse_protocol(raw: Any) -> ShareProtocol:
    """Normalize and validate ``raw``; raise MissingArgumentsError if it fails."""
    envelope = normalize(raw)
    if not validate(envelope):
        raise MissingArgumentsError(
            "Missing arguments",
            errors=[{"name": "protocol", "message": "INVALID"}],
        )
    variant = detect_variant(envelope)
    return ShareProtocol(variant=variant, body=envelope[variant.value])
