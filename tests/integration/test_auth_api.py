import pytest

REGISTRATION = {
    "email": "New.Rider@Example.com",
    "password": "s3cure-pass",
    "first_name": "Nia",
    "last_name": "Rider",
    "phone": "7025550111",
}


@pytest.mark.asyncio
class TestCustomerAuth:
    async def test_register_and_me(self, client):
        resp = await client.post("/api/auth/register", json=REGISTRATION)
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "new.rider@example.com"

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["first_name"] == "Nia"

    async def test_duplicate_email(self, client):
        await client.post("/api/auth/register", json=REGISTRATION)
        resp = await client.post("/api/auth/register", json={**REGISTRATION, "email": "new.rider@example.com"})
        assert resp.status_code == 409

    async def test_short_password(self, client):
        resp = await client.post("/api/auth/register", json={**REGISTRATION, "password": "short"})
        assert resp.status_code == 422

    async def test_login(self, client, customer):
        resp = await client.post("/api/auth/login", json={"email": customer.email, "password": "password123"})
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == customer.id

    async def test_wrong_password_then_lockout(self, client, customer):
        for _ in range(5):
            resp = await client.post("/api/auth/login", json={"email": customer.email, "password": "nope"})
            assert resp.status_code == 401

        # even the right password is refused while locked
        resp = await client.post("/api/auth/login", json={"email": customer.email, "password": "password123"})
        assert resp.status_code == 423

    async def test_unknown_email(self, client):
        resp = await client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "password123"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password"

    async def test_garbage_token(self, client):
        resp = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401


@pytest.mark.asyncio
class TestAdminAuth:
    async def test_login_returns_role_permissions(self, client, make_admin):
        admin, _ = await make_admin("FINANCE_MANAGER")
        resp = await client.post("/api/admin/auth/login", json={"email": admin.email, "password": "admin-password"})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["admin"]["role"] == "FINANCE_MANAGER"
        assert "financial:write" in body["admin"]["permissions"]
        assert "configuration:write" not in body["admin"]["permissions"]
        assert body["admin"]["last_login_at"] is not None

        me = await client.get("/api/admin/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.json()["email"] == admin.email

    async def test_bad_password(self, client, make_admin):
        admin, _ = await make_admin("SUPER_ADMIN")
        resp = await client.post("/api/admin/auth/login", json={"email": admin.email, "password": "wrong"})
        assert resp.status_code == 401

    async def test_customer_token_is_not_admin(self, client, customer_headers):
        resp = await client.get("/api/admin/auth/me", headers=customer_headers)
        assert resp.status_code == 403
