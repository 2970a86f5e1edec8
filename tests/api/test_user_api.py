import pyotp
from fastapi import status
from fastapi.testclient import TestClient


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, username="alice", email="alice@x.com", password="correct-horse") -> str:
    response = client.post(
        "/api/register",
        json={"username": username, "email": email, "password": password},
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["access_token"]


class TestCurrentUserAPI:
    """Test cases for GET/PATCH /api/user"""

    def test_get_me(self, client: TestClient):
        token = register(client)

        response = client.get("/api/user", headers=auth_header(token))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["username"] == "alice"
        assert data["email"] == "alice@x.com"
        assert data["role"] == "user"
        assert data["language"] == "en"

    def test_plain_token_header(self, client: TestClient):
        """The Bearer prefix is optional"""
        token = register(client)

        response = client.get("/api/user", headers={"Authorization": token})
        assert response.status_code == status.HTTP_200_OK

    def test_missing_token(self, client: TestClient):
        response = client.get("/api/user")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "NotAuthenticated"

    def test_unknown_token(self, client: TestClient):
        response = client.get("/api/user", headers=auth_header("made-up"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Session expired or invalid"

    def test_update_profile(self, client: TestClient):
        token = register(client)

        response = client.patch(
            "/api/user",
            json={"first_name": "Alice", "last_name": "Liddell", "language": "fr"},
            headers=auth_header(token),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["first_name"] == "Alice"
        assert data["last_name"] == "Liddell"
        assert data["language"] == "fr"
        assert data["email"] == "alice@x.com"

    def test_update_email_taken(self, client: TestClient):
        register(client)
        token = register(client, username="bob", email="bob@x.com")

        response = client.patch("/api/user", json={"email": "alice@x.com"}, headers=auth_header(token))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "AlreadyExists"


class TestChangePasswordAPI:
    """Test cases for POST /api/user/change-password"""

    def test_change_password(self, client: TestClient):
        token = register(client)
        other = client.post("/api/login", json={"username": "alice", "password": "correct-horse"}).json()[
            "access_token"
        ]

        response = client.post(
            "/api/user/change-password",
            json={"current_password": "correct-horse", "new_password": "battery-staple"},
            headers=auth_header(token),
        )

        assert response.status_code == status.HTTP_200_OK
        assert client.get("/api/user", headers=auth_header(token)).status_code == status.HTTP_200_OK
        assert client.get("/api/user", headers=auth_header(other)).status_code == status.HTTP_401_UNAUTHORIZED

        old = client.post("/api/login", json={"username": "alice", "password": "correct-horse"})
        new = client.post("/api/login", json={"username": "alice", "password": "battery-staple"})
        assert old.status_code == status.HTTP_401_UNAUTHORIZED
        assert new.status_code == status.HTTP_200_OK

    def test_wrong_current_password(self, client: TestClient):
        token = register(client)

        response = client.post(
            "/api/user/change-password",
            json={"current_password": "nope", "new_password": "battery-staple"},
            headers=auth_header(token),
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Current password is incorrect"


class TestTwoFactorAPI:
    """Test cases for /api/user/setup-2fa, enable-2fa and disable-2fa"""

    def test_enable_without_setup(self, client: TestClient):
        token = register(client)

        response = client.post("/api/user/enable-2fa", json={"token": "123456"}, headers=auth_header(token))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "InvalidState"

    def test_enable_with_wrong_code(self, client: TestClient):
        token = register(client)
        secret = client.post("/api/user/setup-2fa", headers=auth_header(token)).json()["secret"]
        good = pyotp.TOTP(secret).now()
        bad = "000000" if good != "000000" else "111111"

        response = client.post("/api/user/enable-2fa", json={"token": bad}, headers=auth_header(token))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "InvalidCode"

    def test_disable(self, client: TestClient):
        token = register(client)
        secret = client.post("/api/user/setup-2fa", headers=auth_header(token)).json()["secret"]
        client.post("/api/user/enable-2fa", json={"token": pyotp.TOTP(secret).now()}, headers=auth_header(token))

        response = client.post("/api/user/disable-2fa", headers=auth_header(token))

        assert response.status_code == status.HTTP_200_OK
        login = client.post("/api/login", json={"username": "alice", "password": "correct-horse"}).json()
        assert login["authenticated"] is True
        assert login["requires_2fa"] is False

    def test_requires_session(self, client: TestClient):
        assert client.post("/api/user/setup-2fa").status_code == status.HTTP_401_UNAUTHORIZED
        assert client.post("/api/user/disable-2fa").status_code == status.HTTP_401_UNAUTHORIZED
