"""
tests/test_user_service.py -- UserService: SuperAdmin-only identity management.
"""

from __future__ import annotations

import logging

import pytest

from audit.models import AuditAction
from auth.models import Role
from auth.tokens import verify_password
from core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError


def _latest_entry(world):
    entries, _total = world.stores.audit.list_entries(limit=1)
    return entries[0]


class TestUserAccess:
    def test_managers_cannot_list_or_create(self, world) -> None:
        with pytest.raises(ForbiddenError):
            world.services.users.list_users(world.ctx(world.alice))
        with pytest.raises(ForbiddenError):
            world.services.users.create_user(world.ctx(world.alice), {"username": "x"})
        assert world.stores.audit.count() == 0

    def test_list_filters(self, world) -> None:
        users = world.services.users
        root = world.ctx(world.root)
        assert users.list_users(root).total == 3
        assert users.list_users(root, role="DepartmentManager").total == 2
        assert [u.username for u in users.list_users(root, department_id=world.sales_id).items] == ["alice"]

    def test_get_missing_user(self, world) -> None:
        with pytest.raises(NotFoundError):
            world.services.users.get_user(world.ctx(world.root), 999)


class TestCreateUser:
    def test_create_manager(self, world) -> None:
        user = world.services.users.create_user(
            world.ctx(world.root),
            {"username": "carol", "password": "longenough", "role": "DepartmentManager", "departmentId": world.sales_id},
        )
        assert user.role is Role.DEPARTMENT_MANAGER
        assert user.department_id == world.sales_id
        assert verify_password("longenough", user.hashed_password)

        entry = _latest_entry(world)
        assert entry.action is AuditAction.CREATE_USER
        assert entry.target_id == user.id
        assert entry.after["username"] == "carol"
        assert "hashed_password" not in entry.after

    def test_password_whitespace_is_kept(self, world) -> None:
        user = world.services.users.create_user(
            world.ctx(world.root), {"username": "  carol ", "password": "  spaced out  ", "role": "SuperAdmin"}
        )
        assert user.username == "carol"
        assert verify_password("  spaced out  ", user.hashed_password)
        assert not verify_password("spaced out", user.hashed_password)

    def test_duplicate_username_is_logged(self, world, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="proxypanel.services"):
            with pytest.raises(ConflictError):
                world.services.users.create_user(
                    world.ctx(world.root), {"username": "alice", "password": "longenough", "role": "SuperAdmin"}
                )
        assert "Rejected duplicate username 'alice'" in caplog.text

    def test_manager_requires_department(self, world) -> None:
        with pytest.raises(ValidationError, match="Department is required"):
            world.services.users.create_user(
                world.ctx(world.root), {"username": "carol", "password": "longenough", "role": "DepartmentManager"}
            )

    def test_manager_department_must_exist(self, world) -> None:
        with pytest.raises(ValidationError, match="Department does not exist"):
            world.services.users.create_user(
                world.ctx(world.root),
                {"username": "carol", "password": "longenough", "role": "DepartmentManager", "department_id": 999},
            )

    def test_super_admin_department_is_dropped(self, world) -> None:
        user = world.services.users.create_user(
            world.ctx(world.root),
            {"username": "root2", "password": "longenough", "role": "SuperAdmin", "department_id": world.sales_id},
        )
        assert user.department_id is None

    def test_duplicate_username(self, world) -> None:
        with pytest.raises(ConflictError):
            world.services.users.create_user(
                world.ctx(world.root), {"username": "alice", "password": "longenough", "role": "SuperAdmin"}
            )
        assert world.stores.audit.count() == 0

    def test_short_password(self, world) -> None:
        with pytest.raises(ValidationError):
            world.services.users.create_user(
                world.ctx(world.root), {"username": "dave", "password": "short", "role": "SuperAdmin"}
            )


class TestUpdateUser:
    def test_move_manager_between_departments(self, world) -> None:
        updated = world.services.users.update_user(
            world.ctx(world.root), world.alice.id, {"department_id": world.marketing_id}
        )
        assert updated.department_id == world.marketing_id

        entry = _latest_entry(world)
        assert entry.action is AuditAction.UPDATE_USER
        assert entry.before["department_id"] == world.sales_id
        assert entry.after["department_id"] == world.marketing_id

    def test_promote_manager_clears_department(self, world) -> None:
        updated = world.services.users.update_user(world.ctx(world.root), world.alice.id, {"role": "SuperAdmin"})
        assert updated.role is Role.SUPER_ADMIN
        assert updated.department_id is None

    def test_demote_requires_department(self, world) -> None:
        world.services.users.create_user(
            world.ctx(world.root), {"username": "root2", "password": "longenough", "role": "SuperAdmin"}
        )
        with pytest.raises(ValidationError, match="Department is required"):
            world.services.users.update_user(world.ctx(world.root), world.root.id, {"role": "DepartmentManager"})

    def test_last_super_admin_cannot_be_demoted(self, world) -> None:
        with pytest.raises(ValidationError, match="last SuperAdmin"):
            world.services.users.update_user(
                world.ctx(world.root),
                world.root.id,
                {"role": "DepartmentManager", "department_id": world.sales_id},
            )
        assert world.stores.users.get_by_id(world.root.id).role is Role.SUPER_ADMIN

    def test_password_change_is_hashed_and_not_audited_in_clear(self, world) -> None:
        world.services.users.update_user(world.ctx(world.root), world.bob.id, {"password": "brand-new-pass"})
        stored = world.stores.users.get_by_id(world.bob.id)
        assert verify_password("brand-new-pass", stored.hashed_password)
        entry = _latest_entry(world)
        assert "hashed_password" not in entry.after
        assert "brand-new-pass" not in str(entry.after)

    def test_rename_to_taken_username(self, world) -> None:
        with pytest.raises(ConflictError):
            world.services.users.update_user(world.ctx(world.root), world.bob.id, {"username": "alice"})

    def test_null_role_rejected(self, world) -> None:
        with pytest.raises(ValidationError):
            world.services.users.update_user(world.ctx(world.root), world.bob.id, {"role": None})


class TestDeleteUser:
    def test_delete_records_before_snapshot(self, world) -> None:
        world.services.users.delete_user(world.ctx(world.root), world.bob.id)
        assert world.stores.users.get_by_id(world.bob.id) is None

        entry = _latest_entry(world)
        assert entry.action is AuditAction.DELETE_USER
        assert entry.before["username"] == "bob"
        assert entry.after is None

    def test_self_delete_is_rejected_before_anything_is_written(self, world) -> None:
        with pytest.raises(ValidationError, match="Cannot delete your own account"):
            world.services.users.delete_user(world.ctx(world.root), world.root.id)
        assert world.stores.users.get_by_id(world.root.id) is not None
        assert world.stores.audit.count() == 0

    def test_delete_missing_user(self, world) -> None:
        with pytest.raises(NotFoundError):
            world.services.users.delete_user(world.ctx(world.root), 999)
