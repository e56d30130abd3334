"""
ocmshare - Invitation acceptance handshake.

Before any share exists, a local user invites a remote user by handing out
a token. The remote server later posts the token back ("invite accepted").
A token is accepted at most once; records are never deleted so replays
keep failing.
"""

import logging
import secrets
import uuid

from .exceptions import AlreadyAcceptedError, InvalidTokenError, UntrustedServerError
from .models import InvitationAccepted, InvitationStatus, InvitationToken
from .stores import TokenStore
from .trust import TrustedServers

logger = logging.getLogger("ocmshare.invitations")

_SPENT = (InvitationStatus.ACCEPTED, InvitationStatus.PROCESSED)


class InvitationAcceptanceWorkflow:
    def __init__(self, store: TokenStore, trust: TrustedServers):
        self.store = store
        self.trust = trust

    def issue(
        self,
        sender: str,
        recipient_provider: str,
        user_id: str,
        email: str = "",
        name: str = "",
    ) -> InvitationToken:
        record = InvitationToken(
            id=str(uuid.uuid4()),
            token=secrets.token_urlsafe(32),
            sender=sender,
            recipient_provider=recipient_provider,
            user_id=user_id,
            email=email,
            name=name,
        )
        self.store.add(record)
        logger.info(f"Invitation {record.id} issued by {sender} for {user_id}@{recipient_provider}")
        return record

    def accept(
        self,
        recipient_provider: str,
        token: str,
        user_id: str,
        email: str,
        name: str,
    ) -> InvitationAccepted:
        """Accept an invitation.

        The caller's ``email`` and ``name`` are informational only; the
        answer always carries the values stored with the token.
        """
        logger.debug(
            f"Invite accepted for {user_id} from {recipient_provider} "
            f"with email {email} and name {name}"
        )

        matches = self.store.find(token, user_id, recipient_provider)
        if len(matches) != 1:
            raise InvalidTokenError()
        record = matches[0]

        if not self.trust.is_trusted(recipient_provider):
            raise UntrustedServerError(recipient_provider)

        if record.status in _SPENT:
            raise AlreadyAcceptedError()

        # lost the race to a concurrent acceptance of the same token
        if not self.store.update_status(
            record.id, InvitationStatus.ACCEPTED, expected=InvitationStatus.PENDING
        ):
            raise AlreadyAcceptedError()

        logger.info(f"Invitation {record.id} accepted by {user_id}@{recipient_provider}")
        return InvitationAccepted(sender=record.sender, email=record.email, name=record.name)
