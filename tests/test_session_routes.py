"""
세션 라우터 테스트

FastAPI TestClient와 dependency_overrides로 세션 관리자를 대체합니다.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from adapters.web.session_routes import get_session_manager, router
from core.domain.entities import DomainInfo, SessionOrigin, SessionState, SessionView
from core.domain.errors import (
    AccountCreationError,
    AddressTakenError,
    AuthenticationError,
    NetworkError,
    SessionExpiredError,
    ValidationError,
)
from tests.fakes import make_message


ACTIVE_VIEW = SessionView(
    address="abc123@example.test",
    account_id="acc-1",
    messages=[make_message("m1", account_id="acc-1")],
    quota=40000000,
    state=SessionState.ACTIVE,
    origin=SessionOrigin.LOGIN,
)


@pytest.fixture
def manager():
    mock = Mock()
    mock.view.return_value = ACTIVE_VIEW
    for name in (
        "generate_new_email",
        "create_custom_email",
        "login_with_credentials",
        "delete_account",
        "refresh_inbox",
    ):
        setattr(mock, name, AsyncMock(return_value=ACTIVE_VIEW))
    mock.get_message = AsyncMock(return_value=make_message("m1", text="body"))
    mock.mark_seen = AsyncMock(return_value=True)
    mock.delete_message = AsyncMock(return_value=True)
    mock.list_domains = AsyncMock(return_value=[DomainInfo(id="d1", domain="example.test")])
    return mock


@pytest.fixture
def client(manager):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_session_manager] = lambda: manager
    return TestClient(app)


class TestSessionRoutes:

    def test_get_session(self, client):
        response = client.get("/session")

        assert response.status_code == 200
        body = response.json()
        assert body["address"] == "abc123@example.test"
        assert body["state"] == "active"
        assert body["messages"][0]["id"] == "m1"

    def test_generate(self, client, manager):
        assert client.post("/session/generate").status_code == 200
        manager.generate_new_email.assert_awaited_once()

    def test_custom(self, client, manager):
        response = client.post("/session/custom", json={
            "username": "abc123", "domain": "example.test", "password": "password123",
        })

        assert response.status_code == 200
        manager.create_custom_email.assert_awaited_once_with("abc123", "example.test", "password123")

    def test_login(self, client, manager):
        response = client.post("/session/login", json={"address": "abc123@example.test", "password": "pw"})

        assert response.status_code == 200
        manager.login_with_credentials.assert_awaited_once_with("abc123@example.test", "pw")

    def test_delete_and_refresh(self, client, manager):
        assert client.delete("/session").status_code == 200
        assert client.post("/session/refresh").status_code == 200
        manager.delete_account.assert_awaited_once()
        manager.refresh_inbox.assert_awaited_once()

    def test_message_routes(self, client, manager):
        assert client.get("/session/messages/m1").json()["text"] == "body"
        assert client.post("/session/messages/m1/seen").json() == {"message_id": "m1", "changed": True}
        assert client.delete("/session/messages/m1").status_code == 204
        manager.mark_seen.assert_awaited_once_with("m1")
        manager.delete_message.assert_awaited_once_with("m1")

    def test_missing_message(self, client, manager):
        manager.get_message.return_value = None
        assert client.get("/session/messages/unknown").status_code == 404

    def test_domains(self, client):
        assert [d["domain"] for d in client.get("/session/domains").json()] == ["example.test"]

    @pytest.mark.parametrize("error, status_code", [
        (ValidationError("short password"), 400),
        (AuthenticationError("bad credentials"), 401),
        (SessionExpiredError("expired"), 401),
        (AddressTakenError("abc123@example.test"), 409),
        (AccountCreationError("no domain"), 502),
        (NetworkError("offline"), 502),
    ])
    def test_engine_errors_map_to_status(self, client, manager, error, status_code):
        manager.create_custom_email.side_effect = error

        response = client.post("/session/custom", json={
            "username": "abc123", "domain": "example.test", "password": "password123",
        })

        assert response.status_code == status_code
        assert response.json()["detail"] == str(error)

    def test_uninitialized_engine(self):
        app = FastAPI()
        app.include_router(router)

        assert TestClient(app).get("/session").status_code == 503
