"""
메일함 API 클라이언트 어댑터 테스트

httpx.MockTransport로 원격 API 응답을 흉내냅니다.
"""

import json

import httpx
import pytest

from adapters.external.mailbox_api_client import MailTmApiClientAdapter
from core.domain.errors import (
    AccountCreationError,
    AddressTakenError,
    AuthenticationError,
    CredentialInvalidError,
    MailboxApiError,
    NetworkError,
)
from tests.fakes import RecordingLogger


ACCOUNT = {
    "@id": "/accounts/acc-1",
    "@type": "Account",
    "id": "acc-1",
    "address": "abc123@example.test",
    "quota": 40000000,
    "used": 0,
    "isDisabled": False,
    "isDeleted": False,
    "createdAt": "2024-01-01T12:00:00+00:00",
    "updatedAt": "2024-01-01T12:00:00+00:00",
}

MESSAGE = {
    "@id": "/messages/m1",
    "@type": "Message",
    "id": "m1",
    "accountId": "/accounts/acc-1",
    "msgid": "<m1@example.org>",
    "from": {"address": "sender@example.org", "name": "Sender"},
    "to": [{"address": "abc123@example.test", "name": ""}],
    "subject": "hello",
    "intro": "hi there",
    "seen": False,
    "isDeleted": False,
    "hasAttachments": False,
    "size": 1024,
    "downloadUrl": "/messages/m1/download",
    "createdAt": "2024-01-01T12:00:00+00:00",
    "updatedAt": "2024-01-01T12:00:00+00:00",
}


def _client(handler):
    return MailTmApiClientAdapter(
        logger=RecordingLogger(),
        base_url="https://api.example.test",
        transport=httpx.MockTransport(handler),
    )


class TestUnauthenticated:

    @pytest.mark.asyncio
    async def test_list_domains(self):
        def handler(request):
            assert request.url.path == "/domains"
            return httpx.Response(200, json={"hydra:member": [
                {"id": "d1", "domain": "example.test", "isActive": True, "isPrivate": False},
            ]})

        domains = await _client(handler).list_domains()

        assert [d.domain for d in domains] == ["example.test"]

    @pytest.mark.asyncio
    async def test_create_account(self):
        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/accounts"
            assert json.loads(request.content) == {"address": "abc123@example.test", "password": "password1"}
            return httpx.Response(201, json=ACCOUNT)

        account = await _client(handler).create_account("abc123@example.test", "password1")

        assert account.id == "acc-1"

    @pytest.mark.asyncio
    async def test_create_account_address_taken(self):
        def handler(request):
            return httpx.Response(422, json={
                "hydra:description": "address: This value is already used.",
            })

        with pytest.raises(AddressTakenError):
            await _client(handler).create_account("abc123@example.test", "password1")

    @pytest.mark.asyncio
    async def test_create_account_other_failure(self):
        def handler(request):
            return httpx.Response(422, json={"hydra:description": "password: too short"})

        with pytest.raises(AccountCreationError) as exc_info:
            await _client(handler).create_account("abc123@example.test", "pw")

        assert not isinstance(exc_info.value, AddressTakenError)
        assert "too short" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_get_token(self):
        def handler(request):
            assert request.url.path == "/token"
            return httpx.Response(200, json={"id": "acc-1", "token": "jwt-token"})

        assert await _client(handler).get_token("abc123@example.test", "password1") == "jwt-token"

    @pytest.mark.asyncio
    async def test_get_token_rejected(self):
        def handler(request):
            return httpx.Response(401, json={"code": 401, "message": "Invalid credentials."})

        with pytest.raises(AuthenticationError):
            await _client(handler).get_token("abc123@example.test", "wrong")

    @pytest.mark.asyncio
    async def test_transport_error_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError):
            await _client(handler).list_domains()


class TestAuthenticated:

    @pytest.mark.asyncio
    async def test_get_account_sends_bearer_token(self):
        def handler(request):
            assert request.url.path == "/me"
            assert request.headers["Authorization"] == "Bearer jwt-token"
            return httpx.Response(200, json=ACCOUNT)

        account = await _client(handler).get_account("jwt-token")

        assert account.address == "abc123@example.test"

    @pytest.mark.asyncio
    async def test_unauthorized_is_credential_invalid(self):
        def handler(request):
            return httpx.Response(401, json={"code": 401, "message": "Expired JWT Token"})

        with pytest.raises(CredentialInvalidError):
            await _client(handler).list_messages("expired")

    @pytest.mark.asyncio
    async def test_list_messages(self):
        def handler(request):
            assert request.url.path == "/messages"
            assert request.url.params["page"] == "2"
            return httpx.Response(200, json={"hydra:member": [MESSAGE], "hydra:totalItems": 1})

        messages = await _client(handler).list_messages("jwt-token", page=2)

        assert [m.id for m in messages] == ["m1"]
        assert messages[0].account_id == "acc-1"
        assert messages[0].sender.address == "sender@example.org"

    @pytest.mark.asyncio
    async def test_get_message_with_body(self):
        detail = dict(MESSAGE, text="plain body", html=["<p>body</p>"], attachments=[
            {"id": "att1", "filename": "a.txt", "contentType": "text/plain", "size": 3,
             "downloadUrl": "/messages/m1/attachment/att1"},
        ])

        def handler(request):
            assert request.url.path == "/messages/m1"
            return httpx.Response(200, json=detail)

        message = await _client(handler).get_message("jwt-token", "m1")

        assert message.text == "plain body"
        assert message.attachments[0].filename == "a.txt"

    @pytest.mark.asyncio
    async def test_mark_message_seen_uses_merge_patch(self):
        def handler(request):
            assert request.method == "PATCH"
            assert request.url.path == "/messages/m1"
            assert request.headers["Content-Type"] == "application/merge-patch+json"
            assert json.loads(request.content) == {"seen": True}
            return httpx.Response(200, json=dict(MESSAGE, seen=True))

        await _client(handler).mark_message_seen("jwt-token", "m1")

    @pytest.mark.asyncio
    async def test_delete_message(self):
        def handler(request):
            assert (request.method, request.url.path) == ("DELETE", "/messages/m1")
            return httpx.Response(204)

        await _client(handler).delete_message("jwt-token", "m1")

    @pytest.mark.asyncio
    async def test_delete_account_failure(self):
        def handler(request):
            assert (request.method, request.url.path) == ("DELETE", "/accounts/acc-1")
            return httpx.Response(500, text="server error")

        with pytest.raises(MailboxApiError) as exc_info:
            await _client(handler).delete_account("jwt-token", "acc-1")

        assert exc_info.value.status_code == 500
