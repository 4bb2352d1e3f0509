"""
Back-office account management through the HTTP API: admin users,
customer deactivation and driver enrollment.
"""
import pytest
from sqlalchemy import select

from stableride.middleware.auth import create_admin_token
from stableride.models.admin import AuditLog

NEW_ADMIN = {
    "email": "Dispatch.Lead@StableRide.example",
    "password": "dispatch-pass",
    "first_name": "Dee",
    "last_name": "Spatch",
    "role": "OPERATIONS_MANAGER",
}


async def audit_actions(session_factory, resource_id: str) -> list[str]:
    async with session_factory() as db:
        rows = await db.execute(select(AuditLog.action).where(AuditLog.resource_id == resource_id))
        return sorted(rows.scalars().all())


@pytest.mark.asyncio
class TestAdminUsers:
    async def test_create_list_and_login(self, client, admin_headers, session_factory):
        resp = await client.post("/api/admin/users", headers=admin_headers, json=NEW_ADMIN)
        assert resp.status_code == 201, resp.text
        created = resp.json()
        assert created["email"] == "dispatch.lead@stableride.example"
        assert created["role"] == "OPERATIONS_MANAGER"
        assert "bookings:write" in created["permissions"]
        assert created["is_active"] is True

        listing = (await client.get("/api/admin/users?search=dispatch", headers=admin_headers)).json()
        assert listing["total"] == 1
        assert listing["items"][0]["id"] == created["id"]

        login = await client.post(
            "/api/admin/auth/login", json={"email": created["email"], "password": "dispatch-pass"},
        )
        assert login.status_code == 200, login.text
        assert await audit_actions(session_factory, created["id"]) == ["create", "login"]

    async def test_duplicate_email(self, client, admin_headers):
        await client.post("/api/admin/users", headers=admin_headers, json=NEW_ADMIN)
        resp = await client.post("/api/admin/users", headers=admin_headers, json=NEW_ADMIN)
        assert resp.status_code == 409

    async def test_unknown_permission_rejected(self, client, admin_headers):
        resp = await client.post(
            "/api/admin/users", headers=admin_headers, json={**NEW_ADMIN, "permissions": ["rockets:launch"]},
        )
        assert resp.status_code == 400

    async def test_role_change_applies_to_existing_token(self, client, admin_headers, make_admin):
        target, target_headers = await make_admin("CUSTOMER_SERVICE")
        resp = await client.get("/api/admin/financial/metrics", headers=target_headers)
        assert resp.status_code == 403

        resp = await client.patch(
            f"/api/admin/users/{target.id}", headers=admin_headers, json={"role": "FINANCE_MANAGER"},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["role"] == "FINANCE_MANAGER"

        resp = await client.get("/api/admin/financial/metrics", headers=target_headers)
        assert resp.status_code == 200

    async def test_cannot_demote_self(self, client, make_admin):
        admin, headers = await make_admin("SUPER_ADMIN")
        resp = await client.patch(f"/api/admin/users/{admin.id}", headers=headers, json={"role": "CUSTOMER_SERVICE"})
        assert resp.status_code == 400
        resp = await client.delete(f"/api/admin/users/{admin.id}", headers=headers)
        assert resp.status_code == 400

    async def test_deactivate_blocks_access(self, client, admin_headers, make_admin, session_factory):
        target, target_headers = await make_admin("FINANCE_MANAGER")
        resp = await client.delete(f"/api/admin/users/{target.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

        assert (await client.get("/api/admin/auth/me", headers=target_headers)).status_code == 401
        login = await client.post("/api/admin/auth/login", json={"email": target.email, "password": "admin-password"})
        assert login.status_code == 403

        # deactivating twice is a no-op
        again = await client.delete(f"/api/admin/users/{target.id}", headers=admin_headers)
        assert again.status_code == 200
        assert await audit_actions(session_factory, target.id) == ["deactivate"]

    async def test_last_super_admin_is_kept(self, client, admin_headers, make_admin, session_factory):
        ops, _ = await make_admin("OPERATIONS_MANAGER")
        resp = await client.patch(
            f"/api/admin/users/{ops.id}",
            headers=admin_headers,
            json={"permissions": ["users:read", "users:write", "users:delete"]},
        )
        assert resp.status_code == 200, resp.text
        ops_headers = {"Authorization": f"Bearer {create_admin_token(ops.id, ops.role)}"}

        listing = (await client.get("/api/admin/users?role=SUPER_ADMIN", headers=ops_headers)).json()
        [super_admin] = listing["items"]
        resp = await client.delete(f"/api/admin/users/{super_admin['id']}", headers=ops_headers)
        assert resp.status_code == 400
        resp = await client.patch(
            f"/api/admin/users/{super_admin['id']}", headers=ops_headers, json={"role": "CUSTOMER_SERVICE"},
        )
        assert resp.status_code == 400

    async def test_operations_manager_cannot_manage_admins(self, client, make_admin):
        _, headers = await make_admin("OPERATIONS_MANAGER")
        assert (await client.get("/api/admin/users", headers=headers)).status_code == 403
        assert (await client.post("/api/admin/users", headers=headers, json=NEW_ADMIN)).status_code == 403


@pytest.mark.asyncio
class TestCustomerManagement:
    async def test_deactivate_and_reactivate_customer(self, client, customer, customer_headers, make_admin,
                                                      session_factory):
        _, headers = await make_admin("CUSTOMER_SERVICE")
        resp = await client.patch(
            f"/api/admin/customers/{customer.id}/status", headers=headers,
            json={"is_active": False, "reason": "chargeback fraud"},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["is_active"] is False

        assert (await client.get("/api/auth/me", headers=customer_headers)).status_code == 401
        login = await client.post("/api/auth/login", json={"email": customer.email, "password": "password123"})
        assert login.status_code == 403

        resp = await client.patch(f"/api/admin/customers/{customer.id}/status", headers=headers, json={"is_active": True})
        assert resp.json()["is_active"] is True
        login = await client.post("/api/auth/login", json={"email": customer.email, "password": "password123"})
        assert login.status_code == 200
        assert await audit_actions(session_factory, customer.id) == ["activate", "deactivate"]

    async def test_list_and_filter(self, client, customer, driver, admin_headers):
        everyone = (await client.get("/api/admin/customers", headers=admin_headers)).json()
        assert everyone["total"] == 2

        drivers = (await client.get("/api/admin/customers?is_driver=true", headers=admin_headers)).json()
        assert [u["id"] for u in drivers["items"]] == [driver.id]

        found = (await client.get("/api/admin/customers?search=riley", headers=admin_headers)).json()
        assert [u["email"] for u in found["items"]] == ["rider@example.com"]

        single = await client.get(f"/api/admin/customers/{customer.id}", headers=admin_headers)
        assert single.json()["total_trips"] == 0

    async def test_enroll_driver(self, client, customer, customer_headers, admin_headers, session_factory):
        assert (await client.get("/api/driver/profile", headers=customer_headers)).status_code == 403

        resp = await client.post(
            f"/api/admin/customers/{customer.id}/driver",
            headers=admin_headers,
            json={"vehicle_info": {"make": "Cadillac", "model": "Escalade", "plate": "SR-042"}},
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["is_driver"] is True
        assert body["driver_status"] == "OFFLINE"
        assert body["vehicle_info"]["plate"] == "SR-042"

        profile = await client.get("/api/driver/profile", headers=customer_headers)
        assert profile.status_code == 200
        assert await audit_actions(session_factory, customer.id) == ["enroll_driver"]

    async def test_driver_with_assigned_ride_stays_on_roster(self, client, driver, driver_headers, admin_headers,
                                                             create_booking):
        booking = await create_booking()
        resp = await client.post(
            f"/api/admin/bookings/{booking['id']}/assign-driver", headers=admin_headers, json={"driver_id": driver.id},
        )
        assert resp.status_code == 200, resp.text

        resp = await client.delete(f"/api/admin/customers/{driver.id}/driver", headers=admin_headers)
        assert resp.status_code == 409

        await client.patch(
            f"/api/admin/bookings/{booking['id']}/status", headers=admin_headers, json={"status": "CANCELLED"},
        )
        resp = await client.delete(f"/api/admin/customers/{driver.id}/driver", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["is_driver"] is False
        assert (await client.get("/api/driver/profile", headers=driver_headers)).status_code == 403

    async def test_finance_manager_cannot_change_customers(self, client, customer, make_admin):
        _, headers = await make_admin("FINANCE_MANAGER")
        resp = await client.patch(
            f"/api/admin/customers/{customer.id}/status", headers=headers, json={"is_active": False},
        )
        assert resp.status_code == 403
