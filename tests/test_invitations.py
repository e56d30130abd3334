"""
Tests for the invitation acceptance handshake and trusted servers.
"""

import os
import tempfile
import threading

import pytest

from ocmshare.database import Database
from ocmshare.exceptions import AlreadyAcceptedError, InvalidTokenError, UntrustedServerError
from ocmshare.invitations import InvitationAcceptanceWorkflow
from ocmshare.models import InvitationStatus, InvitationToken
from ocmshare.stores import InMemoryTokenStore, SqlTokenStore
from ocmshare.trust import StaticUserDirectory, TrustedServers, TrustPolicy, normalize_server_url

REMOTE = "remote.example"


def seed(store, token="tok-1", status=InvitationStatus.PENDING, record_id="inv-1"):
    record = InvitationToken(
        id=record_id,
        token=token,
        sender="alice",
        recipient_provider=REMOTE,
        user_id="bob",
        email="bob@remote.example",
        name="Bob",
        status=status,
    )
    store.add(record)
    return record


class TestTrustedServers:
    def test_allowlist(self):
        trust = TrustedServers(servers=["https://Remote.Example/"])
        assert trust.is_trusted("remote.example")
        assert trust.is_trusted("http://remote.example")
        assert not trust.is_trusted("evil.example")
        assert not trust.is_trusted("")

    def test_add_and_remove(self):
        trust = TrustedServers()
        trust.add_server("https://remote.example")
        assert trust.servers == ["remote.example"]
        trust.remove_server("remote.example")
        assert not trust.is_trusted("remote.example")

    def test_open_and_trustless(self):
        assert TrustedServers(TrustPolicy.OPEN).is_trusted("anyone.example")
        trustless = TrustedServers(TrustPolicy.TRUSTLESS, servers=[REMOTE])
        assert not trustless.is_trusted(REMOTE)

    def test_normalize_server_url(self):
        assert normalize_server_url(" HTTPS://cloud.example/nextcloud/ ") == "cloud.example/nextcloud"


class TestStaticUserDirectory:
    def test_lookup(self):
        directory = StaticUserDirectory({"bob": "Bob Builder"}, groups=["staff"])
        assert directory.user_exists("bob")
        assert not directory.user_exists("carol")
        assert directory.group_exists("staff")
        assert directory.display_name("bob") == "Bob Builder"
        assert directory.display_name("carol") == ""


class TestInvitationAcceptanceWorkflow:
    """Tests for accepting invitations."""

    @pytest.fixture
    def store(self):
        return InMemoryTokenStore()

    @pytest.fixture
    def workflow(self, store):
        return InvitationAcceptanceWorkflow(store, TrustedServers(servers=[REMOTE]))

    def test_issue_creates_pending_token(self, workflow, store):
        record = workflow.issue("alice", REMOTE, "bob", email="bob@remote.example", name="Bob")

        assert record.status == InvitationStatus.PENDING
        assert len(record.token) >= 32
        assert store.get(record.id) == record

    def test_issued_tokens_differ(self, workflow):
        first = workflow.issue("alice", REMOTE, "bob")
        second = workflow.issue("alice", REMOTE, "bob")
        assert first.token != second.token

    def test_accept(self, workflow, store):
        seed(store)

        accepted = workflow.accept(REMOTE, "tok-1", "bob", "bob@remote.example", "Bob")

        assert accepted.to_dict() == {"userID": "alice", "email": "bob@remote.example", "name": "Bob"}
        assert store.get("inv-1").status == InvitationStatus.ACCEPTED

    def test_answer_uses_stored_values(self, workflow, store):
        seed(store)
        accepted = workflow.accept(REMOTE, "tok-1", "bob", "other@mail.example", "Robert")
        assert accepted.email == "bob@remote.example"
        assert accepted.name == "Bob"

    def test_replay_is_rejected(self, workflow, store):
        seed(store)
        workflow.accept(REMOTE, "tok-1", "bob", "", "")

        with pytest.raises(AlreadyAcceptedError) as exc_info:
            workflow.accept(REMOTE, "tok-1", "bob", "", "")
        assert exc_info.value.message == "Invite already accepted"
        assert store.get("inv-1").status == InvitationStatus.ACCEPTED

    def test_processed_token_is_spent(self, workflow, store):
        seed(store, status=InvitationStatus.PROCESSED)
        with pytest.raises(AlreadyAcceptedError):
            workflow.accept(REMOTE, "tok-1", "bob", "", "")
        assert store.get("inv-1").status == InvitationStatus.PROCESSED

    def test_unknown_token(self, workflow, store):
        seed(store)
        with pytest.raises(InvalidTokenError) as exc_info:
            workflow.accept(REMOTE, "tok-2", "bob", "", "")
        assert exc_info.value.message == "Invalid or non existing token"

    @pytest.mark.parametrize(
        "provider, user_id",
        [("other.example", "bob"), (REMOTE, "carol")],
    )
    def test_token_must_match_user_and_provider(self, workflow, store, provider, user_id):
        seed(store)
        with pytest.raises(InvalidTokenError):
            workflow.accept(provider, "tok-1", user_id, "", "")

    def test_ambiguous_token_is_invalid(self, workflow, store):
        seed(store, record_id="inv-1")
        seed(store, record_id="inv-2")
        with pytest.raises(InvalidTokenError):
            workflow.accept(REMOTE, "tok-1", "bob", "", "")
        assert store.get("inv-1").status == InvitationStatus.PENDING

    def test_untrusted_server(self, store):
        workflow = InvitationAcceptanceWorkflow(store, TrustedServers(servers=[]))
        seed(store)

        with pytest.raises(UntrustedServerError) as exc_info:
            workflow.accept(REMOTE, "tok-1", "bob", "", "")
        assert exc_info.value.message == "Remote server not trusted"
        assert store.get("inv-1").status == InvitationStatus.PENDING

    def test_unknown_token_reported_before_trust(self, store):
        workflow = InvitationAcceptanceWorkflow(store, TrustedServers(servers=[]))
        with pytest.raises(InvalidTokenError):
            workflow.accept(REMOTE, "tok-1", "bob", "", "")

    def test_concurrent_accept_succeeds_once(self, workflow, store):
        seed(store)
        barrier = threading.Barrier(4)
        results = []
        lock = threading.Lock()

        def accept():
            barrier.wait(timeout=5)
            try:
                workflow.accept(REMOTE, "tok-1", "bob", "", "")
                outcome = "accepted"
            except AlreadyAcceptedError:
                outcome = "already"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=accept) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert sorted(results) == ["accepted", "already", "already", "already"]


class TestSqlTokenStore:
    """Tests for the durable invitation store."""

    @pytest.fixture
    def store(self):
        with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
            db_path = f.name

        db = Database(f"sqlite:///{db_path}")
        db.create_tables()
        yield SqlTokenStore(db)

        db.engine.dispose()
        os.unlink(db_path)

    def test_add_and_find(self, store):
        record = seed(store)
        assert store.get("inv-1") == record
        assert store.find("tok-1", "bob", REMOTE) == [record]
        assert store.find("tok-1", "bob", "other.example") == []

    def test_conditional_update(self, store):
        seed(store)
        assert store.update_status(
            "inv-1", InvitationStatus.ACCEPTED, expected=InvitationStatus.PENDING
        )
        assert not store.update_status(
            "inv-1", InvitationStatus.ACCEPTED, expected=InvitationStatus.PENDING
        )
        assert store.update_status("inv-1", InvitationStatus.PROCESSED)
        assert store.get("inv-1").status == InvitationStatus.PROCESSED

    def test_update_missing_record(self, store):
        assert not store.update_status("missing", InvitationStatus.ACCEPTED)

    def test_workflow_on_sql_store(self, store):
        workflow = InvitationAcceptanceWorkflow(store, TrustedServers(servers=[REMOTE]))
        record = workflow.issue("alice", REMOTE, "bob", email="bob@remote.example")

        accepted = workflow.accept(REMOTE, record.token, "bob", "", "")
        assert accepted.sender == "alice"
        with pytest.raises(AlreadyAcceptedError):
            workflow.accept(REMOTE, record.token, "bob", "", "")
