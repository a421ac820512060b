"""
tests/test_proxy_service.py -- ProxyService against real in-memory stores.

Coverage:
  - create: manager department override, SuperAdmin placement, duplicate
    endpoint, unknown department, validation after authorization
  - read/list: department scoping, filters, newest-first, pagination
  - update/delete: scope denial, before/after snapshots, idempotent update
  - assign: SuperAdmin only
  - audit: exactly one entry per successful mutation, none on failure
"""

from __future__ import annotations

import logging

import pytest

from audit.models import AuditAction
from core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from inventory.models import Protocol, ProxyStatus



def _proxy_body(**overrides) -> dict:
    body = {"address": "10.0.0.1", "port": 8080, "protocol": "HTTP"}
    body.update(overrides)
    return body


def _audit_entries(world):
    entries, _total = world.stores.audit.list_entries(limit=100)
    return entries


class TestCreateProxy:
    def test_manager_foreign_department_is_overridden(self, world) -> None:
        """alice (Sales) asks for Marketing; the proxy lands in Sales with no error."""
        proxy = world.services.proxies.create_proxy(
            world.ctx(world.alice), _proxy_body(departmentId=world.marketing_id)
        )
        assert proxy.department_id == world.sales_id
        assert world.stores.inventory.get_proxy(proxy.id).department_id == world.sales_id

    def test_manager_without_department_field_gets_own(self, world) -> None:
        proxy = world.services.proxies.create_proxy(world.ctx(world.bob), _proxy_body())
        assert proxy.department_id == world.marketing_id

    def test_super_admin_places_proxy_anywhere(self, world) -> None:
        proxy = world.services.proxies.create_proxy(
            world.ctx(world.root), _proxy_body(department_id=world.marketing_id)
        )
        assert proxy.department_id == world.marketing_id
        assert proxy.status is ProxyStatus.ACTIVE
        assert proxy.protocol is Protocol.HTTP

    def test_super_admin_must_name_a_department(self, world) -> None:
        with pytest.raises(ValidationError):
            world.services.proxies.create_proxy(world.ctx(world.root), _proxy_body())

    def test_unknown_department_is_rejected(self, world) -> None:
        with pytest.raises(ValidationError, match="Department does not exist"):
            world.services.proxies.create_proxy(world.ctx(world.root), _proxy_body(department_id=999))

    def test_duplicate_endpoint_conflicts_and_writes_nothing(self, world) -> None:
        proxies = world.services.proxies
        proxies.create_proxy(world.ctx(world.root), _proxy_body(department_id=world.sales_id))

        with pytest.raises(ConflictError):
            proxies.create_proxy(world.ctx(world.alice), _proxy_body())

        _items, total = world.stores.inventory.list_proxies()
        assert total == 1
        actions = [e.action for e in _audit_entries(world)]
        assert actions == [AuditAction.CREATE_PROXY]

    def test_duplicate_endpoint_is_logged(self, world, caplog) -> None:
        world.services.proxies.create_proxy(world.ctx(world.alice), _proxy_body())
        with caplog.at_level(logging.INFO, logger="proxypanel.services"):
            with pytest.raises(ConflictError):
                world.services.proxies.create_proxy(world.ctx(world.bob), _proxy_body())
        assert "Rejected duplicate proxy endpoint 10.0.0.1:8080" in caplog.text

    def test_same_address_on_other_port_is_allowed(self, world) -> None:
        proxies = world.services.proxies
        proxies.create_proxy(world.ctx(world.alice), _proxy_body())
        proxies.create_proxy(world.ctx(world.alice), _proxy_body(port=8081))
        assert world.stores.inventory.count_by_department(world.sales_id) == 2

    def test_invalid_body_reports_fields(self, world) -> None:
        with pytest.raises(ValidationError) as exc_info:
            world.services.proxies.create_proxy(world.ctx(world.alice), _proxy_body(port=70000, protocol="FTP"))
        fields = {p["field"] for p in exc_info.value.detail}
        assert {"port", "protocol"} <= fields

    def test_camel_case_keys_are_accepted(self, world) -> None:
        proxy = world.services.proxies.create_proxy(
            world.ctx(world.alice),
            {"ipAddress": "10.1.1.1", "port": 3128, "protocol": "SOCKS5", "expirationDate": "2030-01-01T00:00:00Z"},
        )
        assert proxy.address == "10.1.1.1"
        assert proxy.expires_at == "2030-01-01T00:00:00+00:00"

    def test_create_records_after_snapshot_without_password(self, world) -> None:
        proxy = world.services.proxies.create_proxy(
            world.ctx(world.alice), _proxy_body(username="u", password="s3cret")
        )
        entries = _audit_entries(world)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.action is AuditAction.CREATE_PROXY
        assert entry.actor_id == world.alice.id
        assert entry.target_id == proxy.id
        assert entry.before is None
        assert entry.after["address"] == "10.0.0.1"
        assert "password" not in entry.after
        assert entry.origin_address == "10.9.8.7"


class TestReadProxies:
    @pytest.fixture
    def seeded(self, world):
        proxies = world.services.proxies
        root = world.ctx(world.root)
        proxies.create_proxy(root, _proxy_body(address="10.0.0.1", department_id=world.sales_id, location="New York"))
        proxies.create_proxy(root, _proxy_body(address="10.0.0.2", department_id=world.sales_id, status="Banned"))
        proxies.create_proxy(
            root, _proxy_body(address="10.0.0.3", department_id=world.marketing_id, protocol="SOCKS5", location="york")
        )
        return world

    def test_manager_sees_only_own_department(self, seeded) -> None:
        page = seeded.services.proxies.list_proxies(seeded.ctx(seeded.alice))
        assert page.total == 2
        assert {p.department_id for p in page.items} == {seeded.sales_id}

    def test_manager_department_filter_cannot_escape(self, seeded) -> None:
        page = seeded.services.proxies.list_proxies(seeded.ctx(seeded.alice), department_id=seeded.marketing_id)
        assert {p.department_id for p in page.items} == {seeded.sales_id}

    def test_super_admin_sees_all_newest_first(self, seeded) -> None:
        page = seeded.services.proxies.list_proxies(seeded.ctx(seeded.root))
        assert [p.address for p in page.items] == ["10.0.0.3", "10.0.0.2", "10.0.0.1"]

    def test_filters(self, seeded) -> None:
        proxies = seeded.services.proxies
        root = seeded.ctx(seeded.root)
        assert proxies.list_proxies(root, status="Banned").total == 1
        assert proxies.list_proxies(root, protocol="SOCKS5").total == 1
        assert proxies.list_proxies(root, location="YORK").total == 2
        assert proxies.list_proxies(root, department_id=seeded.marketing_id).total == 1

    def test_bad_filter_value(self, seeded) -> None:
        with pytest.raises(ValidationError, match="status must be one of"):
            seeded.services.proxies.list_proxies(seeded.ctx(seeded.root), status="Broken")

    def test_pagination(self, seeded) -> None:
        page = seeded.services.proxies.list_proxies(seeded.ctx(seeded.root), page=2, limit=2)
        assert page.total == 3
        assert page.page_count == 2
        assert [p.address for p in page.items] == ["10.0.0.1"]

    def test_limit_out_of_range(self, seeded) -> None:
        with pytest.raises(ValidationError):
            seeded.services.proxies.list_proxies(seeded.ctx(seeded.root), limit=0)

    def test_get_foreign_proxy_is_forbidden(self, seeded) -> None:
        marketing = seeded.services.proxies.list_proxies(seeded.ctx(seeded.bob)).items[0]
        with pytest.raises(ForbiddenError):
            seeded.services.proxies.get_proxy(seeded.ctx(seeded.alice), marketing.id)

    def test_get_missing_proxy(self, world) -> None:
        with pytest.raises(NotFoundError):
            world.services.proxies.get_proxy(world.ctx(world.root), 404)


class TestMutateProxies:
    @pytest.fixture
    def sales_proxy(self, world):
        return world.services.proxies.create_proxy(
            world.ctx(world.alice), _proxy_body(location="Berlin", speed=120.5, expires_at="2030-06-01T12:00:00Z")
        )

    def test_update_records_before_and_after(self, world, sales_proxy) -> None:
        updated = world.services.proxies.update_proxy(
            world.ctx(world.alice), sales_proxy.id, {"status": "Inactive", "location": "Paris"}
        )
        assert updated.status is ProxyStatus.INACTIVE
        assert updated.location == "Paris"

        entry = _audit_entries(world)[0]
        assert entry.action is AuditAction.UPDATE_PROXY
        assert entry.before["status"] == "Active"
        assert entry.before["location"] == "Berlin"
        assert entry.after["status"] == "Inactive"
        assert entry.after["location"] == "Paris"

    def test_update_with_own_values_has_equal_snapshots(self, world, sales_proxy) -> None:
        body = {
            "address": sales_proxy.address,
            "port": sales_proxy.port,
            "protocol": sales_proxy.protocol.value,
            "location": sales_proxy.location,
            "speed": sales_proxy.speed,
            "status": sales_proxy.status.value,
            "expires_at": sales_proxy.expires_at,
        }
        world.services.proxies.update_proxy(world.ctx(world.alice), sales_proxy.id, body)
        entry = _audit_entries(world)[0]
        assert entry.action is AuditAction.UPDATE_PROXY
        assert entry.before == entry.after

    def test_update_ignores_department_change(self, world, sales_proxy) -> None:
        updated = world.services.proxies.update_proxy(
            world.ctx(world.root), sales_proxy.id, {"department_id": world.marketing_id}
        )
        assert updated.department_id == world.sales_id

    def test_update_into_existing_endpoint_conflicts(self, world, sales_proxy) -> None:
        other = world.services.proxies.create_proxy(world.ctx(world.alice), _proxy_body(port=9090))
        with pytest.raises(ConflictError):
            world.services.proxies.update_proxy(world.ctx(world.alice), other.id, {"port": 8080})
        assert world.stores.inventory.get_proxy(other.id).port == 9090

    def test_update_rejects_null_required_field(self, world, sales_proxy) -> None:
        with pytest.raises(ValidationError):
            world.services.proxies.update_proxy(world.ctx(world.alice), sales_proxy.id, {"port": None})

    def test_foreign_manager_cannot_update_or_delete(self, world, sales_proxy) -> None:
        before_count = world.stores.audit.count()
        with pytest.raises(ForbiddenError):
            world.services.proxies.update_proxy(world.ctx(world.bob), sales_proxy.id, {"status": "Banned"})
        with pytest.raises(ForbiddenError):
            world.services.proxies.delete_proxy(world.ctx(world.bob), sales_proxy.id)
        assert world.stores.inventory.get_proxy(sales_proxy.id).status is ProxyStatus.ACTIVE
        assert world.stores.audit.count() == before_count

    def test_scope_check_runs_before_body_validation(self, world, sales_proxy) -> None:
        with pytest.raises(ForbiddenError):
            world.services.proxies.update_proxy(world.ctx(world.bob), sales_proxy.id, {"port": "not-a-port"})

    def test_delete_records_before_snapshot(self, world, sales_proxy) -> None:
        world.services.proxies.delete_proxy(world.ctx(world.alice), sales_proxy.id)
        assert world.stores.inventory.get_proxy(sales_proxy.id) is None

        entry = _audit_entries(world)[0]
        assert entry.action is AuditAction.DELETE_PROXY
        assert entry.target_id == sales_proxy.id
        assert entry.before["address"] == sales_proxy.address
        assert entry.after is None

    def test_delete_missing_proxy(self, world) -> None:
        with pytest.raises(NotFoundError):
            world.services.proxies.delete_proxy(world.ctx(world.root), 12345)

    def test_assign_moves_proxy(self, world, sales_proxy) -> None:
        moved = world.services.proxies.assign_proxy(
            world.ctx(world.root), sales_proxy.id, {"departmentId": world.marketing_id}
        )
        assert moved.department_id == world.marketing_id

        entry = _audit_entries(world)[0]
        assert entry.action is AuditAction.ASSIGN_PROXY
        assert entry.before["department_id"] == world.sales_id
        assert entry.after["department_id"] == world.marketing_id

    def test_assign_is_super_admin_only(self, world, sales_proxy) -> None:
        with pytest.raises(ForbiddenError):
            world.services.proxies.assign_proxy(
                world.ctx(world.alice), sales_proxy.id, {"department_id": world.sales_id}
            )

    def test_assign_to_unknown_department(self, world, sales_proxy) -> None:
        with pytest.raises(ValidationError):
            world.services.proxies.assign_proxy(world.ctx(world.root), sales_proxy.id, {"department_id": 999})

    def test_each_successful_mutation_writes_one_entry(self, world, sales_proxy) -> None:
        proxies = world.services.proxies
        ctx = world.ctx(world.alice)
        proxies.update_proxy(ctx, sales_proxy.id, {"speed": 10})
        proxies.delete_proxy(ctx, sales_proxy.id)
        actions = [e.action for e in reversed(_audit_entries(world))]
        assert actions == [AuditAction.CREATE_PROXY, AuditAction.UPDATE_PROXY, AuditAction.DELETE_PROXY]
        assert all(e.actor_id == world.alice.id for e in _audit_entries(world))
