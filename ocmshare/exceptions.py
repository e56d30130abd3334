"""
ocmshare - Exceptions for the share exchange, notification and invitation flows.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Stable error taxonomy shared by every flow."""

    MISSING_ARGUMENTS = "missing_arguments"
    UNSUPPORTED_SHARE_TYPE = "unsupported_share_type"
    PROVIDER_NOT_FOUND = "provider_not_found"
    PROVIDER_REJECTED = "provider_rejected"
    SHARE_NOT_FOUND = "share_not_found"
    ACTION_NOT_SUPPORTED = "action_not_supported"
    BAD_REQUEST = "bad_request"
    AUTHENTICATION_FAILED = "authentication_failed"
    INVALID_TOKEN = "invalid_token"
    UNTRUSTED_SERVER = "untrusted_server"
    ALREADY_ACCEPTED = "already_accepted"
    DELIVERY_FAILED = "delivery_failed"
    INTERNAL_ERROR = "internal_error"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.DELIVERY_FAILED, ErrorKind.INTERNAL_ERROR)


class OCMError(Exception):
    """Base exception for all ocmshare errors."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class ValidationError(OCMError):
    """Raised when an inbound or outbound share request is malformed."""

    def __init__(self, message: str, errors: Optional[list[Any]] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.errors = errors or []


class MissingArgumentsError(ValidationError):
    """A required field is absent or the protocol envelope is invalid."""

    kind = ErrorKind.MISSING_ARGUMENTS

    def __init__(self, message: str = "Missing arguments", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class UnsupportedShareTypeError(ValidationError):
    """The share type is not offered for the resource type."""

    kind = ErrorKind.UNSUPPORTED_SHARE_TYPE

    def __init__(self, share_type: str, resource_type: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(f'Share type "{share_type}" not implemented', **kwargs)
        self.share_type = share_type
        self.resource_type = resource_type


class ProviderNotFoundError(OCMError):
    """No provider is registered for the resource type."""

    kind = ErrorKind.PROVIDER_NOT_FOUND

    def __init__(self, resource_type: str, **kwargs: Any) -> None:
        super().__init__(
            f'Cloud Federation Provider for resource type "{resource_type}" does not exist',
            **kwargs,
        )
        self.resource_type = resource_type


class ProviderCouldNotAddShareError(OCMError):
    """The provider declined the share for its own reasons."""

    kind = ErrorKind.PROVIDER_REJECTED


ProviderRejectedError = ProviderCouldNotAddShareError


class ShareNotFoundError(OCMError):
    """A notification refers to a share the provider does not know."""

    kind = ErrorKind.SHARE_NOT_FOUND


class ActionNotSupportedError(OCMError):
    """The provider does not handle this notification type."""

    kind = ErrorKind.ACTION_NOT_SUPPORTED

    def __init__(self, action: str, **kwargs: Any) -> None:
        super().__init__(f'Action "{action}" not supported or implemented.', **kwargs)
        self.action = action


class BadRequestError(OCMError):
    """The provider found the notification payload incomplete.

    ``missing_parameters`` lists the offending fields; ``return_message``
    is the body a provider wants relayed to the remote side.
    """

    kind = ErrorKind.BAD_REQUEST

    def __init__(self, missing_parameters: Optional[list[str]] = None, **kwargs: Any) -> None:
        self.missing_parameters = missing_parameters or []
        super().__init__(
            "Bad request, missing parameters: " + ", ".join(self.missing_parameters),
            **kwargs,
        )

    @property
    def return_message(self) -> dict[str, Any]:
        return {
            "message": "RESOURCE_NOT_FOUND",
            "validationErrors": [
                {"name": name, "message": "NOT_FOUND"} for name in self.missing_parameters
            ],
        }


class AuthenticationFailedError(OCMError):
    """The provider could not authenticate the remote party for this share."""

    kind = ErrorKind.AUTHENTICATION_FAILED

    def __init__(self, message: str = "Authentication failed", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class InvitationError(OCMError):
    """Base class for invitation acceptance failures."""


class InvalidTokenError(InvitationError):
    kind = ErrorKind.INVALID_TOKEN

    def __init__(self, message: str = "Invalid or non existing token", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class UntrustedServerError(InvitationError):
    kind = ErrorKind.UNTRUSTED_SERVER

    def __init__(self, server: str, **kwargs: Any) -> None:
        super().__init__("Remote server not trusted", **kwargs)
        self.server = server


class AlreadyAcceptedError(InvitationError):
    kind = ErrorKind.ALREADY_ACCEPTED

    def __init__(self, message: str = "Invite already accepted", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class DeliveryFailedError(OCMError):
    """Transport-level failure while talking to a remote server."""

    kind = ErrorKind.DELIVERY_FAILED


class InternalError(OCMError):
    """Unexpected collaborator fault, surfaced as a generic failure."""

    kind = ErrorKind.INTERNAL_ERROR
