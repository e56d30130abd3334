"""
Database layer for ocmshare using SQLAlchemy.
Supports SQLite (default) and PostgreSQL.

Holds the durable delivery queue and the invitation token records. Every
state change that must not race is a single conditional UPDATE.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    create_engine,
    or_,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import DeliveryJob, InvitationStatus, InvitationToken

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryJobModel(Base):
    __tablename__ = "delivery_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    payload = Column(JSON, nullable=False)
    last_run = Column(Float, nullable=False, default=0)
    tries = Column(Integer, nullable=False, default=0)
    claimed_until = Column(Float, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    def to_job(self) -> DeliveryJob:
        data = dict(self.payload)
        data.update({"id": self.id, "lastRun": self.last_run, "try": self.tries})
        return DeliveryJob.from_dict(data)


class InvitationTokenModel(Base):
    __tablename__ = "invitation_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    token = Column(String(255), nullable=False)
    sender = Column(String(255), nullable=False)
    recipient_provider = Column(String(255), nullable=False)
    user_id = Column(String(255), nullable=False)
    email = Column(String(255), default="")
    name = Column(String(255), default="")
    status = Column(String(20), nullable=False, default=InvitationStatus.PENDING.value)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_invitation_tokens_lookup", "token", "user_id", "recipient_provider"),
    )

    def to_token(self) -> InvitationToken:
        return InvitationToken(
            id=self.id,
            token=self.token,
            sender=self.sender,
            recipient_provider=self.recipient_provider,
            user_id=self.user_id,
            email=self.email or "",
            name=self.name or "",
            status=InvitationStatus(self.status),
        )


class Database:
    """Database interface for ocmshare."""

    def __init__(self, database_url: str):
        self.database_url = database_url

        url = make_url(database_url)
        is_sqlite = url.get_backend_name() == "sqlite"
        # a file database gets one connection per session; :memory: lives on a single one
        in_memory = is_sqlite and url.database in (None, "", ":memory:")

        connect_args = {}
        if is_sqlite:
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = 30

        self.engine = create_engine(
            database_url,
            connect_args=connect_args,
            poolclass=StaticPool if in_memory else None,
        )
        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_tables(self):
        """Create all tables."""
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    # ==================== Delivery jobs ====================

    def create_job(self, session: Session, job: DeliveryJob) -> DeliveryJobModel:
        payload = job.share.to_dict()
        model = DeliveryJobModel(
            id=job.id,
            payload=payload,
            last_run=job.last_run,
            tries=job.tries,
        )
        session.add(model)
        session.commit()
        session.refresh(model)
        return model

    def get_job(self, session: Session, job_id: str) -> Optional[DeliveryJobModel]:
        return session.query(DeliveryJobModel).filter(DeliveryJobModel.id == job_id).first()

    def list_jobs(self, session: Session) -> List[DeliveryJobModel]:
        return session.query(DeliveryJobModel).order_by(DeliveryJobModel.created_at).all()

    def delete_job(self, session: Session, job_id: str) -> bool:
        deleted = (
            session.query(DeliveryJobModel)
            .filter(DeliveryJobModel.id == job_id)
            .delete(synchronize_session=False)
        )
        session.commit()
        return deleted > 0

    def claim_job(
        self, session: Session, job_id: str, now: float, timeout: float
    ) -> Optional[DeliveryJobModel]:
        """Lock a job for one execution. Returns None if another worker holds it."""
        claimed = (
            session.query(DeliveryJobModel)
            .filter(
                DeliveryJobModel.id == job_id,
                or_(
                    DeliveryJobModel.claimed_until.is_(None),
                    DeliveryJobModel.claimed_until < now,
                ),
            )
            .update({"claimed_until": now + timeout}, synchronize_session=False)
        )
        session.commit()
        if not claimed:
            return None
        return self.get_job(session, job_id)

    def release_job(self, session: Session, job_id: str) -> None:
        session.query(DeliveryJobModel).filter(DeliveryJobModel.id == job_id).update(
            {"claimed_until": None}, synchronize_session=False
        )
        session.commit()

    def reschedule_job(self, session: Session, job_id: str, tries: int, last_run: float) -> bool:
        updated = (
            session.query(DeliveryJobModel)
            .filter(DeliveryJobModel.id == job_id)
            .update(
                {"tries": tries, "last_run": last_run, "claimed_until": None},
                synchronize_session=False,
            )
        )
        session.commit()
        return updated > 0

    # ==================== Invitation tokens ====================

    def create_invitation(self, session: Session, **kwargs) -> InvitationTokenModel:
        invitation = InvitationTokenModel(**kwargs)
        session.add(invitation)
        session.commit()
        session.refresh(invitation)
        return invitation

    def get_invitation(self, session: Session, invitation_id: str) -> Optional[InvitationTokenModel]:
        return (
            session.query(InvitationTokenModel)
            .filter(InvitationTokenModel.id == invitation_id)
            .first()
        )

    def find_invitations(
        self, session: Session, token: str, user_id: str, recipient_provider: str
    ) -> List[InvitationTokenModel]:
        return (
            session.query(InvitationTokenModel)
            .filter(
                InvitationTokenModel.token == token,
                InvitationTokenModel.user_id == user_id,
                InvitationTokenModel.recipient_provider == recipient_provider,
            )
            .all()
        )

    def update_invitation_status(
        self,
        session: Session,
        invitation_id: str,
        status: str,
        expected: Optional[str] = None,
    ) -> bool:
        query = session.query(InvitationTokenModel).filter(
            InvitationTokenModel.id == invitation_id
        )
        if expected is not None:
            query = query.filter(InvitationTokenModel.status == expected)
        updated = query.update(
            {"status": status, "updated_at": _utcnow()}, synchronize_session=False
        )
        session.commit()
        return updated > 0


_database: Optional[Database] = None


def get_database(database_url: str = "sqlite:///./ocmshare.db") -> Database:
    """Get or create the database instance."""
    global _database
    if _database is None:
        _database = Database(database_url)
        _database.create_tables()
    return _database
