"""
tests/test_session_service.py -- SessionService login/logout and token round-trip.
"""

from __future__ import annotations

import pytest

from audit.models import AuditAction
from auth.models import Origin
from auth.tokens import decode_access_token
from core.errors import InvalidCredentials

PASSWORD = "password123"  # seeded by conftest.world


class TestIssueSession:
    def test_valid_login_issues_token_and_audits(self, world) -> None:
        session = world.services.sessions.issue_session("alice", PASSWORD, Origin("192.0.2.5", "curl/8"))

        payload = decode_access_token(session.token)
        assert payload["user_id"] == world.alice.id
        assert payload["role"] == "DepartmentManager"
        assert session.token_type == "bearer"
        assert session.expires_in > 0

        entries, total = world.stores.audit.list_entries()
        assert total == 1
        assert entries[0].action is AuditAction.LOGIN
        assert entries[0].actor_id == world.alice.id
        assert entries[0].target_id == world.alice.id
        assert entries[0].origin_address == "192.0.2.5"
        assert entries[0].origin_agent == "curl/8"

    def test_login_updates_last_login(self, world) -> None:
        assert world.stores.users.get_by_id(world.bob.id).last_login is None
        world.services.sessions.issue_session("bob", PASSWORD, Origin())
        assert world.stores.users.get_by_id(world.bob.id).last_login is not None

    @pytest.mark.parametrize("username,password", [("alice", "wrong-password"), ("nobody", PASSWORD)])
    def test_bad_credentials_fail_identically(self, world, username: str, password: str) -> None:
        with pytest.raises(InvalidCredentials) as exc_info:
            world.services.sessions.issue_session(username, password, Origin())
        assert exc_info.value.message == "Invalid username or password."
        assert world.stores.audit.count() == 0


class TestRevokeSession:
    def test_logout_records_entry(self, world) -> None:
        world.services.sessions.revoke_session(world.ctx(world.root))
        entries, _ = world.stores.audit.list_entries()
        assert entries[0].action is AuditAction.LOGOUT
        assert entries[0].actor_name == "root"


class TestTokens:
    def test_tampered_token_is_rejected(self, world) -> None:
        session = world.services.sessions.issue_session("root", PASSWORD, Origin())
        assert decode_access_token(session.token + "x") is None

    def test_garbage_token_is_rejected(self) -> None:
        assert decode_access_token("not.a.jwt") is None
