"""
ocmshare - Job queue and invitation token stores.

The delivery job and the invitation record are the only shared mutable
state. Both stores give the workflows an atomic read-then-write primitive
(``JobQueue.claim`` and ``TokenStore.update_status(expected=...)``) so that
at most one caller wins for a given id.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Optional

from .database import Database
from .models import DeliveryJob, InvitationStatus, InvitationToken


class JobQueue(ABC):
    @abstractmethod
    def enqueue(self, job: DeliveryJob) -> None: ...

    @abstractmethod
    def remove_job(self, job_id: str) -> None: ...

    @abstractmethod
    def get(self, job_id: str) -> Optional[DeliveryJob]: ...

    @abstractmethod
    def list_jobs(self) -> list[DeliveryJob]: ...

    @abstractmethod
    def claim(self, job_id: str, now: float, timeout: float) -> Optional[DeliveryJob]:
        """Lock ``job_id`` until ``now + timeout`` and return its current record.

        Returns None when the job is gone or another caller holds a live claim.
        """

    @abstractmethod
    def release(self, job_id: str) -> None:
        """Drop the claim without changing the job."""

    @abstractmethod
    def reschedule(self, job_id: str, tries: int, last_run: float) -> None:
        """Store the next attempt and drop the claim in one update."""


class TokenStore(ABC):
    @abstractmethod
    def add(self, record: InvitationToken) -> None: ...

    @abstractmethod
    def get(self, record_id: str) -> Optional[InvitationToken]: ...

    @abstractmethod
    def find(self, token: str, user_id: str, recipient_provider: str) -> list[InvitationToken]:
        """All records matching the triple; callers treat anything but one match as invalid."""

    @abstractmethod
    def update_status(
        self,
        record_id: str,
        new_status: InvitationStatus,
        expected: Optional[InvitationStatus] = None,
    ) -> bool:
        """Set the status, only if it currently equals ``expected`` when given."""


class InMemoryJobQueue(JobQueue):
    def __init__(self):
        self._jobs: dict[str, DeliveryJob] = {}
        self._claims: dict[str, float] = {}
        self._lock = threading.Lock()

    def enqueue(self, job: DeliveryJob) -> None:
        with self._lock:
            self._jobs[job.id] = copy.copy(job)

    def remove_job(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)
            self._claims.pop(job_id, None)

    def get(self, job_id: str) -> Optional[DeliveryJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.copy(job) if job else None

    def list_jobs(self) -> list[DeliveryJob]:
        with self._lock:
            return [copy.copy(job) for job in self._jobs.values()]

    def claim(self, job_id: str, now: float, timeout: float) -> Optional[DeliveryJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            claimed_until = self._claims.get(job_id)
            if claimed_until is not None and claimed_until >= now:
                return None
            self._claims[job_id] = now + timeout
            return copy.copy(job)

    def release(self, job_id: str) -> None:
        with self._lock:
            self._claims.pop(job_id, None)

    def reschedule(self, job_id: str, tries: int, last_run: float) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None:
                job.tries = tries
                job.last_run = last_run
            self._claims.pop(job_id, None)


class InMemoryTokenStore(TokenStore):
    def __init__(self):
        self._records: dict[str, InvitationToken] = {}
        self._lock = threading.Lock()

    def add(self, record: InvitationToken) -> None:
        with self._lock:
            self._records[record.id] = copy.copy(record)

    def get(self, record_id: str) -> Optional[InvitationToken]:
        with self._lock:
            record = self._records.get(record_id)
            return copy.copy(record) if record else None

    def find(self, token: str, user_id: str, recipient_provider: str) -> list[InvitationToken]:
        with self._lock:
            return [
                copy.copy(r)
                for r in self._records.values()
                if r.token == token
                and r.user_id == user_id
                and r.recipient_provider == recipient_provider
            ]

    def update_status(
        self,
        record_id: str,
        new_status: InvitationStatus,
        expected: Optional[InvitationStatus] = None,
    ) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return False
            if expected is not None and record.status != expected:
                return False
            record.status = new_status
            return True


class SqlJobQueue(JobQueue):
    """Durable job queue on top of ``Database``."""

    def __init__(self, db: Database):
        self.db = db

    def enqueue(self, job: DeliveryJob) -> None:
        session = self.db.get_session()
        try:
            self.db.create_job(session, job)
        finally:
            session.close()

    def remove_job(self, job_id: str) -> None:
        session = self.db.get_session()
        try:
            self.db.delete_job(session, job_id)
        finally:
            session.close()

    def get(self, job_id: str) -> Optional[DeliveryJob]:
        session = self.db.get_session()
        try:
            model = self.db.get_job(session, job_id)
            return model.to_job() if model else None
        finally:
            session.close()

    def list_jobs(self) -> list[DeliveryJob]:
        session = self.db.get_session()
        try:
            return [model.to_job() for model in self.db.list_jobs(session)]
        finally:
            session.close()

    def claim(self, job_id: str, now: float, timeout: float) -> Optional[DeliveryJob]:
        session = self.db.get_session()
        try:
            model = self.db.claim_job(session, job_id, now, timeout)
            return model.to_job() if model else None
        finally:
            session.close()

    def release(self, job_id: str) -> None:
        session = self.db.get_session()
        try:
            self.db.release_job(session, job_id)
        finally:
            session.close()

    def reschedule(self, job_id: str, tries: int, last_run: float) -> None:
        session = self.db.get_session()
        try:
            self.db.reschedule_job(session, job_id, tries, last_run)
        finally:
            session.close()


class SqlTokenStore(TokenStore):
    def __init__(self, db: Database):
        self.db = db

    def add(self, record: InvitationToken) -> None:
        session = self.db.get_session()
        try:
            self.db.create_invitation(
                session,
                id=record.id,
                token=record.token,
                sender=record.sender,
                recipient_provider=record.recipient_provider,
                user_id=record.user_id,
                email=record.email,
                name=record.name,
                status=record.status.value,
            )
        finally:
            session.close()

    def get(self, record_id: str) -> Optional[InvitationToken]:
        session = self.db.get_session()
        try:
            model = self.db.get_invitation(session, record_id)
            return model.to_token() if model else None
        finally:
            session.close()

    def find(self, token: str, user_id: str, recipient_provider: str) -> list[InvitationToken]:
        session = self.db.get_session()
        try:
            models = self.db.find_invitations(session, token, user_id, recipient_provider)
            return [m.to_token() for m in models]
        finally:
            session.close()

    def update_status(
        self,
        record_id: str,
        new_status: InvitationStatus,
        expected: Optional[InvitationStatus] = None,
    ) -> bool:
        session = self.db.get_session()
        try:
            return self.db.update_invitation_status(
                session,
                record_id,
                new_status.value,
                expected=expected.value if expected is not None else None,
            )
        finally:
            session.close()
