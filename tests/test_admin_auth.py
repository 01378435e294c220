from unittest.mock import patch

from jose import jwt

from app.core.admin_auth import ALGORITHM, create_access_token, hash_password, verify_password
from app.core.config import settings


def test_password_round_trip():
    hashed = hash_password("hunter22")
    assert verify_password("hunter22", hashed)
    assert not verify_password("wrong", hashed)


def test_empty_or_malformed_hash_never_verifies():
    assert not verify_password("anything", "")
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_token_carries_subject():
    token = create_access_token("admin")
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[ALGORITHM])
    assert payload["sub"] == "admin"


def test_admin_login_and_token_use(client):
    with patch.object(settings, "ADMIN_USERNAME", "admin"), patch.object(
        settings, "ADMIN_PASSWORD_HASH", hash_password("hunter22")
    ):
        bad = client.post("/api/v1/admin/login", json={"username": "admin", "password": "nope"})
        assert bad.status_code == 401

        response = client.post(
            "/api/v1/admin/login", json={"username": "admin", "password": "hunter22"}
        )
    assert response.status_code == 200
    token = response.json()["access_token"]

    prize = client.post(
        "/api/v1/wallet/add-prize",
        json={"phone": "9876543210", "prize": 100},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert prize.json()["code"] == "WALLET_NOT_FOUND"


def test_garbage_token_rejected(client):
    response = client.post(
        "/api/v1/wallet/add",
        json={"phone": "9876543210", "amount": 100},
        headers={"Authorization": "Bearer garbage"},
    )
    assert response.status_code == 401
