"""Tests for the authentication routes."""

from urllib.parse import parse_qs, urlsplit

from fastapi.testclient import TestClient


def state_of(url: str) -> str:
    return parse_qs(urlsplit(url).query)["state"][0]


def sign_up(client: TestClient, email: str = "alice@example.com", handle: str = "alice"):
    return client.post(
        "/auth/sign-up",
        json={
            "email": email,
            "password": "correct-horse",
            "handle": handle,
            "display_name": "Alice",
        },
    )


class TestPasswordRoutes:
    def test_sign_up_then_session(self, client):
        response = sign_up(client)

        assert response.status_code == 200
        assert response.json() == {}

        session = client.get("/auth/session").json()
        assert session["state"] == "authenticated"
        assert session["profile"]["handle"] == "alice"
        assert session["error"] is None

    def test_sign_in_with_unknown_account(self, client):
        response = client.post(
            "/auth/sign-in", json={"email": "nobody@example.com", "password": "pw"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}
        assert client.get("/auth/session").json()["error_kind"] == "InvalidCredentials"

    def test_sign_out(self, client):
        sign_up(client)

        response = client.post("/auth/sign-out")

        assert response.status_code == 200
        assert client.get("/auth/session").json()["state"] == "unauthenticated"

    def test_sign_up_with_taken_email(self, client):
        sign_up(client)
        client.post("/auth/sign-out")

        response = sign_up(client, handle="alice2")

        assert response.json() == {
            "error": "An account with this email is already registered"
        }

    def test_session_is_process_wide(self, client):
        """One session per process: any caller sees the last sign-in."""
        sign_up(client)

        other_caller = client.get(
            "/auth/session", headers={"Authorization": "Bearer someone-else"}
        )

        assert other_caller.json()["profile"]["handle"] == "alice"

    def test_reset_password(self, client):
        response = client.post("/auth/reset-password", json={"email": "a@example.com"})

        assert response.status_code == 200
        assert response.json() == {}

    def test_missing_field_is_rejected(self, client):
        response = client.post("/auth/sign-in", json={"email": "a@example.com"})

        assert response.status_code == 422


class TestFederatedRoutes:
    def test_authorize_and_callback(self, client):
        response = client.post("/auth/authorize", json={"provider": "twitter"})

        assert response.status_code == 200
        url = response.json()["authorization_url"]
        assert url.startswith("https://")

        callback = client.get(
            "/auth/callback/twitter", params={"state": state_of(url), "code": "abc"}
        )

        assert callback.status_code == 200
        assert callback.json() == {}
        session = client.get("/auth/session").json()
        assert session["state"] == "authenticated"
        assert session["profile"]["auth_provider"] == "twitter"

    def test_replayed_callback(self, client):
        url = client.post("/auth/authorize", json={"provider": "google"}).json()[
            "authorization_url"
        ]
        params = {"state": state_of(url), "code": "abc"}
        client.get("/auth/callback/google", params=params)

        replay = client.get("/auth/callback/google", params=params)

        assert replay.status_code == 403
        # The first sign-in survives the refused replay
        assert client.get("/auth/session").json()["state"] == "authenticated"

    def test_forged_state(self, client):
        client.post("/auth/authorize", json={"provider": "twitter"})

        response = client.get(
            "/auth/callback/twitter", params={"state": "forged", "code": "abc"}
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Authorization state does not match"}
        assert client.get("/auth/session").json()["state"] == "unauthenticated"

    def test_provider_denied(self, client):
        url = client.post("/auth/authorize", json={"provider": "twitter"}).json()[
            "authorization_url"
        ]

        response = client.get(
            "/auth/callback/twitter",
            params={"state": state_of(url), "error": "access_denied"},
        )

        assert response.status_code == 403
        assert response.json() == {"error": "access_denied"}

    def test_missing_code(self, client):
        url = client.post("/auth/authorize", json={"provider": "twitter"}).json()[
            "authorization_url"
        ]

        response = client.get("/auth/callback/twitter", params={"state": state_of(url)})

        assert response.status_code == 400

    def test_unconfigured_provider(self, client):
        response = client.post("/auth/authorize", json={"provider": "apple"})

        assert response.status_code == 400

    def test_dismiss_refuses_later_callback(self, client):
        url = client.post("/auth/authorize", json={"provider": "twitter"}).json()[
            "authorization_url"
        ]
        state = state_of(url)

        dismissed = client.post(
            "/auth/dismiss", json={"provider": "twitter", "state": state}
        )
        late = client.get("/auth/callback/twitter", params={"state": state, "code": "abc"})

        assert dismissed.status_code == 204
        assert late.status_code == 403
        assert client.get("/auth/session").json()["error_kind"] == "ReplayedCallback"
