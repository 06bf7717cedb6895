"""认证路由测试。"""
from app.core.security import create_access_token, create_refresh_token


class TestAuth:
    async def test_first_user_is_admin(self, client):
        resp = await client.post("/api/v1/auth/register", json={
            "email": "first@example.com", "name": "First", "password": "secret123",
        })
        assert resp.status_code == 201
        token = resp.json()["access_token"]

        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["role"] == "admin"

        resp = await client.post("/api/v1/auth/register", json={
            "email": "second@example.com", "name": "Second", "password": "secret123",
        })
        token = resp.json()["access_token"]
        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["role"] == "viewer"

    async def test_duplicate_email(self, client, admin_user):
        resp = await client.post("/api/v1/auth/register", json={
            "email": admin_user.email, "name": "Dup", "password": "secret123",
        })
        assert resp.status_code == 409

    async def test_login(self, client, admin_user):
        resp = await client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": "secret123"})
        assert resp.status_code == 200
        assert resp.json()["token_type"] == "bearer"

    async def test_login_wrong_password(self, client, admin_user):
        resp = await client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": "nope"})
        assert resp.status_code == 401

    async def test_refresh(self, client, admin_user):
        resp = await client.post("/api/v1/auth/refresh",
                                 json={"refresh_token": create_refresh_token(str(admin_user.id))})
        assert resp.status_code == 200
        assert resp.json()["access_token"]

    async def test_access_token_cannot_refresh(self, client, admin_user):
        resp = await client.post("/api/v1/auth/refresh",
                                 json={"refresh_token": create_access_token(str(admin_user.id))})
        assert resp.status_code == 401

    async def test_invalid_token(self, client):
        resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401
