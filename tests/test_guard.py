"""
tests/test_guard.py -- Unit tests for auth/guard.py.

The guard is pure: no stores, no app. Every combination of role and
department is checked directly against the Decision values.
"""

from __future__ import annotations

import logging

import pytest

from auth.guard import (
    ALLOW,
    ANY_ROLE,
    DENY_FORBIDDEN,
    DENY_UNAUTHENTICATED,
    SUPER_ADMIN_ONLY,
    DenyReason,
    authorize_department_scope,
    authorize_role,
    department_for_create,
    require_department_scope,
    require_role,
    scoped_department_filter,
)
from auth.models import Role, User
from core.errors import ForbiddenError, UnauthenticatedError

ADMIN = User(id=1, username="root", role=Role.SUPER_ADMIN)
SALES_MANAGER = User(id=2, username="alice", role=Role.DEPARTMENT_MANAGER, department_id=10)
ORPHAN_MANAGER = User(id=3, username="ghost", role=Role.DEPARTMENT_MANAGER, department_id=None)


class TestAuthorizeRole:
    def test_absent_identity_is_unauthenticated(self) -> None:
        assert authorize_role(None, ANY_ROLE) == DENY_UNAUTHENTICATED

    def test_role_outside_allowed_set_is_forbidden(self) -> None:
        decision = authorize_role(SALES_MANAGER, SUPER_ADMIN_ONLY)
        assert decision == DENY_FORBIDDEN
        assert decision.reason is DenyReason.FORBIDDEN
        assert not decision

    @pytest.mark.parametrize("user", [ADMIN, SALES_MANAGER])
    def test_any_role_allows_every_role(self, user: User) -> None:
        assert authorize_role(user, ANY_ROLE) == ALLOW

    def test_super_admin_allowed_for_super_admin_only(self) -> None:
        assert authorize_role(ADMIN, SUPER_ADMIN_ONLY)

    def test_empty_allowed_set_denies_everyone(self) -> None:
        assert authorize_role(ADMIN, []) == DENY_FORBIDDEN


class TestAuthorizeDepartmentScope:
    def test_absent_identity_is_unauthenticated(self) -> None:
        assert authorize_department_scope(None, 10) == DENY_UNAUTHENTICATED

    @pytest.mark.parametrize("department_id", [10, 11, None])
    def test_super_admin_always_allowed(self, department_id) -> None:
        assert authorize_department_scope(ADMIN, department_id) == ALLOW

    def test_manager_allowed_in_own_department(self) -> None:
        assert authorize_department_scope(SALES_MANAGER, 10) == ALLOW

    def test_manager_denied_in_other_department(self) -> None:
        assert authorize_department_scope(SALES_MANAGER, 11) == DENY_FORBIDDEN

    def test_manager_without_department_is_denied_even_for_unassigned_resource(self) -> None:
        assert authorize_department_scope(ORPHAN_MANAGER, None) == DENY_FORBIDDEN


class TestScopedDepartmentFilter:
    def test_super_admin_gets_requested_filter(self) -> None:
        assert scoped_department_filter(ADMIN, 11) == 11
        assert scoped_department_filter(ADMIN, None) is None

    def test_manager_is_pinned_to_own_department(self) -> None:
        assert scoped_department_filter(SALES_MANAGER, 11) == 10
        assert scoped_department_filter(SALES_MANAGER, None) == 10


class TestDepartmentForCreate:
    def test_super_admin_keeps_requested_department(self) -> None:
        assert department_for_create(ADMIN, 11) == 11

    def test_manager_request_is_replaced_with_own_department(self, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="proxypanel.auth"):
            assert department_for_create(SALES_MANAGER, 11) == 10
        assert "Overriding requested department_id=11" in caplog.text

    def test_manager_without_request_gets_own_department(self) -> None:
        assert department_for_create(SALES_MANAGER, None) == 10

    def test_manager_override_ignores_malformed_value(self) -> None:
        assert department_for_create(SALES_MANAGER, "not-a-number") == 10


class TestRaisingWrappers:
    def test_require_role_returns_identity(self) -> None:
        assert require_role(ADMIN, SUPER_ADMIN_ONLY) is ADMIN

    def test_require_role_raises_unauthenticated(self) -> None:
        with pytest.raises(UnauthenticatedError):
            require_role(None, ANY_ROLE)

    def test_require_role_raises_forbidden(self) -> None:
        with pytest.raises(ForbiddenError):
            require_role(SALES_MANAGER, SUPER_ADMIN_ONLY)

    def test_role_and_scope_denials_share_one_message(self) -> None:
        with pytest.raises(ForbiddenError) as role_denial:
            require_role(SALES_MANAGER, SUPER_ADMIN_ONLY)
        with pytest.raises(ForbiddenError) as scope_denial:
            require_department_scope(SALES_MANAGER, 11)
        assert role_denial.value.message == scope_denial.value.message
        assert role_denial.value.code == scope_denial.value.code == "forbidden"

    def test_require_scope_passes_silently(self) -> None:
        assert require_department_scope(SALES_MANAGER, 10) is None
