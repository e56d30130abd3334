"""
ocmshare - Server-to-server share exchange for Open Cloud Mesh federation.

Negotiates share protocol envelopes, delivers outbound shares with retries,
routes inbound notifications to resource-type providers and handles the
invitation acceptance handshake.
"""

from .builder import SharePayloadBuilder
from .config import FederationConfig, ShareTypeConfig
from .delivery import ShareDispatchRetryJob, Transport
from .dispatcher import NotificationDispatcher
from .exceptions import (
    ActionNotSupportedError,
    AlreadyAcceptedError,
    AuthenticationFailedError,
    BadRequestError,
    DeliveryFailedError,
    ErrorKind,
    InternalError,
    InvalidTokenError,
    MissingArgumentsError,
    OCMError,
    ProviderCouldNotAddShareError,
    ProviderNotFoundError,
    ProviderRejectedError,
    ShareNotFoundError,
    UnsupportedShareTypeError,
    UntrustedServerError,
    ValidationError,
)
from .invitations import InvitationAcceptanceWorkflow
from .models import (
    DeliveryJob,
    DeliveryReply,
    FederatedShareRequest,
    InvitationAccepted,
    InvitationStatus,
    InvitationToken,
    JobOutcome,
    JobState,
    NotificationType,
    ShareType,
)
from .protocol import (
    ProtocolVariant,
    ShareProtocol,
    extract_shared_secret,
    normalize,
    parse_protocol,
    validate,
)
from .providers import CloudFederationProvider, ProviderRegistry
from .stores import (
    InMemoryJobQueue,
    InMemoryTokenStore,
    JobQueue,
    SqlJobQueue,
    SqlTokenStore,
    TokenStore,
)
from .transport import HttpTransport
from .trust import StaticUserDirectory, TrustedServers, TrustPolicy, UserDirectory

__version__ = "0.1.0"

__all__ = [
    "ActionNotSupportedError",
    "AlreadyAcceptedError",
    "AuthenticationFailedError",
    "BadRequestError",
    "CloudFederationProvider",
    "DeliveryFailedError",
    "DeliveryJob",
    "DeliveryReply",
    "ErrorKind",
    "FederatedShareRequest",
    "FederationConfig",
    "HttpTransport",
    "InMemoryJobQueue",
    "InMemoryTokenStore",
    "InternalError",
    "InvalidTokenError",
    "InvitationAccepted",
    "InvitationAcceptanceWorkflow",
    "InvitationStatus",
    "InvitationToken",
    "JobOutcome",
    "JobQueue",
    "JobState",
    "MissingArgumentsError",
    "NotificationDispatcher",
    "NotificationType",
    "OCMError",
    "ProtocolVariant",
    "ProviderCouldNotAddShareError",
    "ProviderNotFoundError",
    "ProviderRegistry",
    "ProviderRejectedError",
    "ShareDispatchRetryJob",
    "ShareNotFoundError",
    "SharePayloadBuilder",
    "ShareProtocol",
    "ShareType",
    "ShareTypeConfig",
    "SqlJobQueue",
    "SqlTokenStore",
    "StaticUserDirectory",
    "TokenStore",
    "Transport",
    "TrustPolicy",
    "TrustedServers",
    "UnsupportedShareTypeError",
    "UntrustedServerError",
    "UserDirectory",
    "ValidationError",
    "extract_shared_secret",
    "normalize",
    "parse_protocol",
    "validate",
]
