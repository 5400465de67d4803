from datetime import timedelta

import pytest

from storefront.models import User
from storefront.security_utils import create_access_token, hash_password


@pytest.fixture
def member(db):
    user = User(
        name="Siti Rahma",
        email="siti@example.com",
        phone="6281298765432",
        role="customer",
        password_hash=hash_password("rahasia123"),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def signin(client, identifier, password="rahasia123"):
    return client.post("/auth/signin", json={"identifier": identifier, "password": password})


class TestSignIn:
    def test_signin_with_email(self, client, member):
        response = signin(client, "Siti@Example.com")

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"] == {
            "id": member.id,
            "name": "Siti Rahma",
            "email": "siti@example.com",
            "phone": "6281298765432",
            "role": "customer",
        }

    def test_signin_with_local_phone_number(self, client, member):
        response = signin(client, "0812-9876-5432")

        assert response.status_code == 200
        assert response.json()["user"]["id"] == member.id

    def test_wrong_password(self, client, member):
        response = signin(client, "siti@example.com", password="salah")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_inactive_user(self, client, db, member):
        member.is_active = False
        db.commit()

        assert signin(client, "siti@example.com").status_code == 401

    def test_unknown_user(self, client):
        assert signin(client, "nobody@example.com").status_code == 401

    def test_malformed_email(self, client, member):
        response = signin(client, "siti@example")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"


class TestCurrentUser:
    def test_me(self, client, member, headers_for):
        response = client.get("/auth/me", headers=headers_for(member))

        assert response.status_code == 200
        assert response.json()["email"] == "siti@example.com"

    def test_token_from_signin_is_accepted(self, client, member):
        token = signin(client, "siti@example.com").json()["access_token"]

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.json()["id"] == member.id

    def test_expired_token(self, client, member):
        token = create_access_token({"sub": member.id, "role": member.role}, expires_delta=timedelta(minutes=-1))

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401

    def test_missing_token(self, client):
        assert client.get("/auth/me").status_code in (401, 403)

    def test_admin_only_route_rejects_customer(self, client, member, headers_for):
        response = client.get("/admin/vouchers", headers=headers_for(member))

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"
