"""
계정 세션 관리자 테스트
"""

import asyncio

import pytest

from core.domain.entities import DomainInfo, SessionOrigin, SessionSnapshot, SessionState
from core.domain.errors import (
    AccountCreationError,
    AddressTakenError,
    AuthenticationError,
    CredentialInvalidError,
    MailboxApiError,
    NetworkError,
    SessionExpiredError,
    ValidationError,
)
from tests.fakes import make_message, wait_until


async def _settle(mailbox):
    """시작 직후의 첫 폴링이 끝날 때까지 대기합니다."""
    await wait_until(lambda: mailbox.count("list_messages") >= 1)
    await asyncio.sleep(0)


class TestInitialize:
    """세션 초기화"""

    @pytest.mark.asyncio
    async def test_without_snapshot_generates_address(self, manager, mailbox, store):
        view = await manager.initialize()

        assert view.state == SessionState.ACTIVE
        assert view.origin == SessionOrigin.GENERATED
        assert view.address.endswith("@example.test")
        assert len(view.address.split("@")[0]) == 10
        assert mailbox.count("create_account") == 1
        assert store.snapshot.address == view.address
        assert store.snapshot.is_resumable()

    @pytest.mark.asyncio
    async def test_resumes_valid_snapshot(self, manager, mailbox, store):
        account = mailbox.add_account("abc123@example.test", "password1")
        mailbox.deliver(account.id, make_message("m1"))
        token = mailbox.issue_token(account.id)
        store.snapshot = SessionSnapshot.from_account(account, token, SessionOrigin.LOGIN)

        view = await manager.initialize()

        assert view.address == "abc123@example.test"
        assert view.origin == SessionOrigin.LOGIN
        assert [m.id for m in view.messages] == ["m1"]
        assert mailbox.count("create_account") == 0

    @pytest.mark.asyncio
    async def test_invalid_snapshot_token_falls_back_to_generation(self, manager, mailbox, store):
        account = mailbox.add_account("abc123@example.test", "password1")
        store.snapshot = SessionSnapshot.from_account(account, "expired-token", SessionOrigin.GENERATED)

        view = await manager.initialize()

        assert view.address != "abc123@example.test"
        assert mailbox.count("create_account") == 1

    @pytest.mark.asyncio
    async def test_mismatched_account_id_falls_back_to_generation(self, manager, mailbox, store):
        account = mailbox.add_account("abc123@example.test", "password1")
        token = mailbox.issue_token(account.id)
        store.snapshot = SessionSnapshot(address=account.address, token=token, account_id="someone-else")

        view = await manager.initialize()

        assert view.address != "abc123@example.test"

    @pytest.mark.asyncio
    async def test_partial_snapshot_falls_back_to_generation(self, manager, mailbox, store):
        store.snapshot = SessionSnapshot(address="abc123@example.test")

        await manager.initialize()

        assert mailbox.count("get_account") == 0
        assert mailbox.count("create_account") == 1


class TestGenerate:

    @pytest.mark.asyncio
    async def test_no_available_domain(self, manager, mailbox):
        mailbox.domains = [DomainInfo(domain="private.test", isPrivate=True)]

        with pytest.raises(AccountCreationError):
            await manager.generate_new_email()

        view = manager.view()
        assert view.state == SessionState.UNINITIALIZED
        assert view.last_error
        assert not view.loading

    @pytest.mark.asyncio
    async def test_network_failure_is_wrapped(self, manager, mailbox):
        mailbox.failures["create_account"] = NetworkError("offline")

        with pytest.raises(AccountCreationError):
            await manager.generate_new_email()

    @pytest.mark.asyncio
    async def test_switching_replaces_synchronizer_account(self, manager, synchronizer):
        first = await manager.generate_new_email()
        second = await manager.generate_new_email()

        assert first.account_id != second.account_id
        assert synchronizer.account_id == second.account_id
        assert synchronizer.is_running

    @pytest.mark.asyncio
    async def test_password_persistence_can_be_disabled(self, manager, store):
        manager.persist_password = False

        await manager.generate_new_email()

        assert store.snapshot.token
        assert store.snapshot.password is None


class TestCustom:
    """사용자 지정 주소 생성"""

    @pytest.mark.asyncio
    async def test_short_password_fails_before_network(self, manager, mailbox):
        with pytest.raises(ValidationError):
            await manager.create_custom_email("abc123", "example.test", "short")

        assert mailbox.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username, domain", [("", "example.test"), ("abc", ""), ("a@b", "example.test")])
    async def test_invalid_parts_fail_before_network(self, manager, mailbox, username, domain):
        with pytest.raises(ValidationError):
            await manager.create_custom_email(username, domain, "password123")

        assert mailbox.calls == []

    @pytest.mark.asyncio
    async def test_creates_custom_session(self, manager, store):
        view = await manager.create_custom_email("Abc123", "example.test", "password123")

        assert view.address == "abc123@example.test"
        assert view.origin == SessionOrigin.CUSTOM
        assert store.snapshot.origin == SessionOrigin.CUSTOM
        assert store.snapshot.password == "password123"

    @pytest.mark.asyncio
    async def test_address_taken(self, manager, mailbox):
        mailbox.add_account("abc123@example.test", "password1")

        with pytest.raises(AddressTakenError):
            await manager.create_custom_email("abc123", "example.test", "password123")

        assert manager.view().state == SessionState.UNINITIALIZED


class TestLogin:
    """명시적 로그인"""

    @pytest.mark.asyncio
    async def test_failure_keeps_prior_session(self, manager, mailbox, synchronizer):
        prior = await manager.generate_new_email()
        mailbox.add_account("abc123@example.test", "password1")

        with pytest.raises(AuthenticationError):
            await manager.login_with_credentials("abc123@example.test", "wrong-password")

        view = manager.view()
        assert view.address == prior.address
        assert view.state == SessionState.ACTIVE
        assert view.last_error
        assert synchronizer.account_id == prior.account_id
        assert mailbox.count("create_account") == 1

    @pytest.mark.asyncio
    async def test_rejected_account_lookup_is_authentication_error(self, manager, mailbox):
        mailbox.add_account("abc123@example.test", "password1")
        mailbox.failures["get_account"] = CredentialInvalidError("401")

        with pytest.raises(AuthenticationError):
            await manager.login_with_credentials("abc123@example.test", "password1")

        assert mailbox.count("create_account") == 0

    @pytest.mark.asyncio
    async def test_malformed_address(self, manager, mailbox):
        with pytest.raises(ValidationError):
            await manager.login_with_credentials("not-an-address", "password1")

        assert mailbox.calls == []


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_login_then_mark_seen_is_optimistic(self, manager, mailbox):
        account = mailbox.add_account("abc123@example.test", "password1")
        mailbox.deliver(account.id, make_message("m1"))
        views = []
        manager.subscribe(views.append)

        view = await manager.login_with_credentials("abc123@example.test", "password1")

        assert view.state == SessionState.ACTIVE
        assert view.origin == SessionOrigin.LOGIN
        assert [m.id for m in view.messages] == ["m1"]
        assert view.unseen_count == 1

        gate = asyncio.Event()
        mailbox.gates["mark_message_seen"] = gate
        pending = asyncio.create_task(manager.mark_seen("m1"))
        await wait_until(lambda: mailbox.count("mark_message_seen") == 1)

        # 원격 요청이 끝나기 전에 로컬 상태와 알림이 이미 반영됨
        assert manager.view().messages[0].seen is True
        assert views[-1].messages[0].seen is True
        assert mailbox.messages[account.id][0].seen is False

        gate.set()
        assert await pending is True
        assert mailbox.messages[account.id][0].seen is True

    @pytest.mark.asyncio
    async def test_remote_seen_failure_keeps_local_flag(self, manager, mailbox):
        account = mailbox.add_account("abc123@example.test", "password1")
        mailbox.deliver(account.id, make_message("m1"))
        await manager.login_with_credentials("abc123@example.test", "password1")
        mailbox.failures["mark_message_seen"] = NetworkError("offline")

        assert await manager.mark_seen("m1") is True
        assert manager.view().messages[0].seen is True

    @pytest.mark.asyncio
    async def test_get_and_delete_message(self, manager, mailbox):
        account = mailbox.add_account("abc123@example.test", "password1")
        mailbox.deliver(account.id, make_message("m1"))
        mailbox.deliver(account.id, make_message("m2", minutes=1))
        await manager.login_with_credentials("abc123@example.test", "password1")

        message = await manager.get_message("m1")
        assert message.text == "body of m1"

        assert await manager.delete_message("m1") is True
        assert [m.id for m in manager.view().messages] == ["m2"]
        assert [m.id for m in mailbox.messages[account.id]] == ["m2"]

    @pytest.mark.asyncio
    async def test_failed_message_delete_keeps_cache(self, manager, mailbox):
        account = mailbox.add_account("abc123@example.test", "password1")
        mailbox.deliver(account.id, make_message("m1"))
        await manager.login_with_credentials("abc123@example.test", "password1")
        mailbox.failures["delete_message"] = MailboxApiError("500", status_code=500)

        with pytest.raises(MailboxApiError):
            await manager.delete_message("m1")

        assert [m.id for m in manager.view().messages] == ["m1"]

    @pytest.mark.asyncio
    async def test_refresh_inbox_picks_up_new_messages(self, manager, mailbox):
        view = await manager.generate_new_email()
        await _settle(mailbox)
        mailbox.deliver(view.account_id, make_message("m1"))

        view = await manager.refresh_inbox()

        assert [m.id for m in view.messages] == ["m1"]
        assert not view.refreshing

    @pytest.mark.asyncio
    async def test_list_domains_filters_unavailable(self, manager, mailbox):
        mailbox.domains.append(DomainInfo(domain="private.test", isPrivate=True))

        domains = await manager.list_domains()

        assert [d.domain for d in domains] == ["example.test"]

    @pytest.mark.asyncio
    async def test_refresh_account_info_persists_usage(self, manager, mailbox, store):
        view = await manager.generate_new_email()
        remote = mailbox.accounts[view.account_id]
        mailbox.accounts[view.account_id] = remote.model_copy(update={"used": 1234})

        await manager.refresh_account_info()

        assert manager.view().used == 1234
        assert store.snapshot.used == 1234


class TestDelete:
    """계정 삭제"""

    @pytest.mark.asyncio
    async def test_delete_generates_new_address(self, manager, mailbox, store):
        first = await manager.generate_new_email()

        second = await manager.delete_account()

        assert second.account_id != first.account_id
        assert first.account_id not in mailbox.accounts
        assert store.cleared == 1
        assert store.snapshot.account_id == second.account_id
        assert second.state == SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_session(self, manager, mailbox):
        first = await manager.generate_new_email()
        mailbox.failures["delete_account"] = MailboxApiError("500", status_code=500)

        with pytest.raises(MailboxApiError):
            await manager.delete_account()

        view = manager.view()
        assert view.account_id == first.account_id
        assert view.last_error

    @pytest.mark.asyncio
    async def test_without_session(self, manager):
        with pytest.raises(ValidationError):
            await manager.delete_account()


class TestCredentialRecovery:
    """토큰 무효화 복구"""

    @pytest.mark.asyncio
    async def test_generated_session_recovers_with_new_address(self, manager, mailbox):
        first = await manager.generate_new_email()
        await _settle(mailbox)
        mailbox.revoke_tokens(first.account_id)

        view = await manager.refresh_inbox()

        assert view.account_id != first.account_id
        assert view.state == SessionState.ACTIVE
        assert mailbox.count("create_account") == 2

    @pytest.mark.asyncio
    async def test_custom_session_recovers_with_new_address(self, manager, mailbox):
        first = await manager.create_custom_email("abc123", "example.test", "password123")
        await _settle(mailbox)
        mailbox.revoke_tokens(first.account_id)

        view = await manager.refresh_inbox()

        assert view.origin == SessionOrigin.GENERATED
        assert view.account_id != first.account_id

    @pytest.mark.asyncio
    async def test_login_session_expires_without_generation(self, manager, mailbox, synchronizer):
        account = mailbox.add_account("abc123@example.test", "password1")
        await manager.login_with_credentials("abc123@example.test", "password1")
        await _settle(mailbox)
        mailbox.revoke_tokens(account.id)

        with pytest.raises(SessionExpiredError):
            await manager.refresh_inbox()

        view = manager.view()
        assert view.state == SessionState.UNINITIALIZED
        assert view.last_error
        assert not synchronizer.is_running
        assert mailbox.count("create_account") == 0

    @pytest.mark.asyncio
    async def test_background_detection_recovers_generated_session(self, manager, mailbox):
        first = await manager.generate_new_email()
        await _settle(mailbox)
        mailbox.revoke_tokens(first.account_id)

        await manager.refresh_account_info()
        await wait_until(lambda: manager.view().account_id not in (None, first.account_id))

        assert manager.view().state == SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_background_detection_expires_login_session(self, manager, mailbox, logger):
        account = mailbox.add_account("abc123@example.test", "password1")
        await manager.login_with_credentials("abc123@example.test", "password1")
        await _settle(mailbox)
        mailbox.revoke_tokens(account.id)

        await manager.refresh_account_info()
        await wait_until(lambda: manager.view().state == SessionState.UNINITIALIZED)

        assert mailbox.count("create_account") == 0
        await wait_until(lambda: any("만료" in m for m in logger.messages("info")))


class TestConcurrentTransitions:
    """동시에 요청된 세션 전이"""

    @pytest.mark.asyncio
    async def test_overlapping_generation_leaves_one_consistent_session(
        self, manager, mailbox, store, synchronizer, token_store
    ):
        await manager.initialize()

        results = await asyncio.gather(
            manager.generate_new_email(),
            manager.generate_new_email(),
            return_exceptions=True,
        )

        assert [type(r).__name__ for r in results] == ["SessionView", "SessionView"]
        assert results[0].account_id != results[1].account_id
        assert token_store.account_id == results[1].account_id
        assert synchronizer.account_id == results[1].account_id
        assert synchronizer.is_running
        assert store.snapshot.account_id == results[1].account_id
        assert manager.view().state == SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_login_cancels_scheduled_background_recovery(self, manager, mailbox, synchronizer):
        first = await manager.generate_new_email()
        await _settle(mailbox)
        mailbox.revoke_tokens(first.account_id)
        account = mailbox.add_account("user@example.test", "password1")

        await manager.refresh_account_info()
        view = await manager.login_with_credentials("user@example.test", "password1")
        await asyncio.sleep(0.05)

        assert view.account_id == account.id
        current = manager.view()
        assert current.account_id == account.id
        assert current.origin == SessionOrigin.LOGIN
        assert synchronizer.account_id == account.id
        assert mailbox.count("create_account") == 1

    @pytest.mark.asyncio
    async def test_login_cancels_recovery_in_progress(self, manager, mailbox, synchronizer):
        first = await manager.generate_new_email()
        await _settle(mailbox)
        mailbox.revoke_tokens(first.account_id)
        account = mailbox.add_account("user@example.test", "password1")
        gate = asyncio.Event()
        mailbox.gates["create_account"] = gate

        await manager.refresh_account_info()
        await wait_until(lambda: mailbox.count("create_account") == 2)

        view = await manager.login_with_credentials("user@example.test", "password1")
        gate.set()
        await asyncio.sleep(0.05)

        assert view.account_id == account.id
        assert manager.view().account_id == account.id
        assert manager.view().origin == SessionOrigin.LOGIN
        assert synchronizer.account_id == account.id
        assert mailbox.count("create_account") == 2

    @pytest.mark.asyncio
    async def test_recovery_queued_behind_login_is_ignored(self, manager, mailbox, synchronizer, logger):
        first = await manager.generate_new_email()
        await _settle(mailbox)
        account = mailbox.add_account("user@example.test", "password1")
        gate = asyncio.Event()
        mailbox.gates["get_token"] = gate

        login = asyncio.create_task(manager.login_with_credentials("user@example.test", "password1"))
        await wait_until(lambda: mailbox.count("get_token") == 2)

        mailbox.revoke_tokens(first.account_id)
        await manager.refresh_account_info()
        gate.set()
        view = await login
        await wait_until(lambda: any("무효화 무시" in m for m in logger.messages("debug")))

        assert view.account_id == account.id
        assert manager.view().account_id == account.id
        assert synchronizer.account_id == account.id
        assert mailbox.count("create_account") == 1
