"""
계정 세션 관리 유즈케이스

임시 메일 계정의 생성, 로그인, 삭제, 세션 재개와
토큰 만료 시 복구 전이를 담당하는 최상위 오케스트레이터입니다.

상태 전이:
- uninitialized → authenticating → active
- active → authenticating (계정 전환)
- active → uninitialized (계정 삭제 후 즉시 authenticating)
- active 중 토큰 무효화: 자동 생성 세션은 새 주소 생성,
  명시적 로그인 세션은 SessionExpiredError
"""

import asyncio
import secrets
import string
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..domain.entities import (
    Account,
    DomainInfo,
    Message,
    SessionOrigin,
    SessionSnapshot,
    SessionState,
    SessionView,
)
from ..domain.errors import (
    AccountCreationError,
    AuthenticationError,
    CredentialInvalidError,
    MailEngineError,
    SessionExpiredError,
    ValidationError,
)
from ..domain.ports import LoggerPort, MailboxClientPort, SessionStorePort
from .auth_token_store import AuthTokenStore
from .inbox_sync import InboxSynchronizer
from .message_cache import MessageCache
from .recovery import ErrorRecoveryPolicy


MIN_PASSWORD_LENGTH = 8
LOCAL_PART_LENGTH = 10

SessionListener = Callable[[SessionView], None]


def generate_local_part(length: int = LOCAL_PART_LENGTH) -> str:
    """임의의 주소 로컬 파트를 생성합니다."""
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_password() -> str:
    """원격 API의 비밀번호 규칙을 만족하는 임의 비밀번호를 생성합니다."""
    return secrets.token_urlsafe(12) + "X!1"


class AccountSessionManager:
    """계정 세션 관리자"""

    def __init__(
        self,
        mailbox_client: MailboxClientPort,
        session_store: SessionStorePort,
        synchronizer: InboxSynchronizer,
        token_store: AuthTokenStore,
        message_cache: MessageCache,
        logger: LoggerPort,
        account_refresh_interval: float = 60.0,
        persist_password: bool = True,
        recovery_policy: Optional[ErrorRecoveryPolicy] = None,
    ):
        self.mailbox_client = mailbox_client
        self.session_store = session_store
        self.synchronizer = synchronizer
        self.token_store = token_store
        self.message_cache = message_cache
        self.logger = logger
        self.account_refresh_interval = account_refresh_interval
        self.persist_password = persist_password
        self.recovery_policy = recovery_policy or ErrorRecoveryPolicy()

        self._state = SessionState.UNINITIALIZED
        self._loading = False
        self._refreshing = False
        self._password: Optional[str] = None
        self._last_error: Optional[str] = None
        self._listeners: List[SessionListener] = []
        self._info_task: Optional[asyncio.Task] = None
        self._recovery_task: Optional[asyncio.Task] = None
        self._transition_lock = asyncio.Lock()

        self.synchronizer.bind_handlers(
            on_credential_invalid=self._on_credential_invalid,
            on_account_event=self._on_account_event,
        )
        self.message_cache.subscribe(lambda _messages: self._notify())

    # ------------------------------------------------------------------
    # 관찰 가능한 상태
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    def view(self) -> SessionView:
        """UI에 노출할 현재 세션 상태"""
        account = self.token_store.account
        return SessionView(
            address=account.address if account else "",
            account_id=account.id if account else None,
            messages=self.message_cache.messages,
            loading=self._loading,
            refreshing=self._refreshing,
            quota=account.quota if account else 0,
            used=account.used if account else 0,
            state=self._state,
            origin=self.token_store.origin,
            last_error=self._last_error,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """세션 상태 변경을 구독합니다. 구독 해제 함수를 반환합니다."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception as e:
                self.logger.error(f"세션 구독자 알림 실패: {str(e)}")

    # ------------------------------------------------------------------
    # 공개 작업
    # ------------------------------------------------------------------

    async def initialize(self) -> SessionView:
        """
        저장된 세션을 재개하거나 새 임시 주소를 생성합니다.

        저장된 토큰은 가벼운 인증 요청 한 번으로 검증하며,
        검증에 실패하면 새 주소 생성으로 넘어갑니다.
        """
        self.logger.info("세션 초기화 시작")
        await self._cancel_recovery()

        async with self._transition_lock:
            self._begin_transition()

            snapshot = await self.session_store.load()
            if not snapshot.is_resumable():
                self.logger.info("저장된 세션 없음, 새 주소 생성")
                return await self._generate_new_email()

            try:
                account = await self.mailbox_client.get_account(snapshot.token)
            except MailEngineError as e:
                self.logger.warning(f"저장된 토큰 검증 실패, 새 주소 생성: {str(e)}")
                return await self._generate_new_email()

            if account.id != snapshot.account_id:
                self.logger.warning(f"저장된 계정 ID 불일치, 새 주소 생성: {snapshot.account_id}")
                return await self._generate_new_email()
            if not account.is_usable():
                self.logger.warning(f"비활성화되었거나 삭제된 계정, 새 주소 생성: {account.address}")
                return await self._generate_new_email()

            origin = snapshot.origin or SessionOrigin.GENERATED
            await self._switch_session(account, snapshot.token, origin, snapshot.password)
            await self._initial_fetch()

            self.logger.info(f"저장된 세션 재개 완료: {account.address}")
            return self.view()

    async def generate_new_email(self) -> SessionView:
        """
        새 임시 주소를 생성하고 세션을 교체합니다.

        Raises:
            AccountCreationError: 사용 가능한 도메인이 없거나 생성 요청이 실패한 경우
        """
        await self._cancel_recovery()
        async with self._transition_lock:
            return await self._generate_new_email()

    async def create_custom_email(self, username: str, domain: str, password: str) -> SessionView:
        """
        사용자가 지정한 주소와 비밀번호로 계정을 생성합니다.

        Raises:
            ValidationError: 입력값이 올바르지 않은 경우 (네트워크 호출 전)
            AddressTakenError: 이미 사용 중인 주소인 경우
            AccountCreationError: 생성 요청이 실패한 경우
        """
        username = (username or "").strip().lower()
        domain = (domain or "").strip().lower().lstrip("@")

        if not username or not domain or not password:
            raise ValidationError("사용자 이름, 도메인, 비밀번호를 모두 입력해야 합니다")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"비밀번호는 {MIN_PASSWORD_LENGTH}자 이상이어야 합니다")
        if "@" in username or "@" in domain:
            raise ValidationError("사용자 이름과 도메인에는 '@'를 사용할 수 없습니다")

        address = f"{username}@{domain}"
        self.logger.info(f"사용자 지정 주소 생성 시작: {address}")
        await self._cancel_recovery()

        async with self._transition_lock:
            self._begin_transition()
            try:
                account, token = await self._create_and_authenticate(address, password)
            except AccountCreationError as e:
                self._fail_transition(e)
                raise
            except MailEngineError as e:
                self._fail_transition(e)
                raise AccountCreationError(f"사용자 지정 주소 생성 실패: {str(e)}") from e

            await self._switch_session(account, token, SessionOrigin.CUSTOM, password)
            self.logger.info(f"사용자 지정 주소 생성 완료: {account.address}")
            return self.view()

    async def login_with_credentials(self, address: str, password: str) -> SessionView:
        """
        기존 계정으로 로그인합니다.

        실패 시 이전 세션은 그대로 유지되며, 새 주소를 자동 생성하지 않습니다.
        대기 중인 백그라운드 복구는 로그인 전에 취소됩니다.

        Raises:
            ValidationError: 입력값이 올바르지 않은 경우
            AuthenticationError: 자격 증명이 거부된 경우
        """
        address = (address or "").strip().lower()
        if "@" not in address or not password:
            raise ValidationError("유효한 메일 주소와 비밀번호를 입력해야 합니다")

        self.logger.info(f"로그인 시작: {address}")
        await self._cancel_recovery()

        async with self._transition_lock:
            self._begin_transition()
            try:
                token = await self.mailbox_client.get_token(address, password)
                account = await self.mailbox_client.get_account(token)
            except CredentialInvalidError as e:
                error = AuthenticationError(f"계정 정보를 조회할 수 없습니다: {address}")
                self._fail_transition(error)
                raise error from e
            except MailEngineError as e:
                self._fail_transition(e)
                raise

            await self._switch_session(account, token, SessionOrigin.LOGIN, password)
            await self._initial_fetch()

            self.logger.info(f"로그인 완료: {account.address}")
            return self.view()

    async def delete_account(self) -> SessionView:
        """
        현재 계정을 삭제하고 즉시 새 임시 주소를 생성합니다.

        원격 삭제가 실패하면 세션은 그대로 유지되고 오류가 전달됩니다.
        """
        await self._cancel_recovery()

        async with self._transition_lock:
            account_id, token = self.token_store.account_id, self.token_store.token
            if account_id is None or token is None:
                raise ValidationError("삭제할 활성 세션이 없습니다")

            self.logger.info(f"계정 삭제 시작: {account_id}")
            try:
                await self.mailbox_client.delete_account(token, account_id)
            except CredentialInvalidError:
                await self._recover_credential(account_id)
                return self.view()
            except MailEngineError as e:
                self._last_error = str(e)
                self._notify()
                self.logger.error(f"계정 삭제 실패: {account_id}, 오류: {str(e)}")
                raise

            await self._stop_background()
            self.token_store.clear()
            self.message_cache.clear()
            self._password = None
            await self.session_store.clear()
            self._state = SessionState.UNINITIALIZED
            self._notify()

            self.logger.info(f"계정 삭제 완료: {account_id}")
            return await self._generate_new_email()

    async def refresh_inbox(self) -> SessionView:
        """받은편지함을 수동으로 새로고침합니다."""
        account_id = self.token_store.account_id
        if not self.token_store.is_authenticated:
            return self.view()

        self._refreshing = True
        self._notify()
        try:
            await self.synchronizer.refresh()
        except CredentialInvalidError:
            await self._handle_credential_invalid(account_id)
        except MailEngineError as e:
            self.logger.warning(f"받은편지함 새로고침 실패: {str(e)}")
        finally:
            self._refreshing = False
            self._notify()

        return self.view()

    async def mark_seen(self, message_id: str) -> bool:
        """
        메시지를 읽음으로 표시합니다.

        로컬 플래그를 먼저 바꾸고 알린 뒤 원격 요청을 보냅니다.
        원격 요청이 실패해도 로컬 상태는 되돌리지 않습니다.

        Returns:
            로컬 상태가 바뀌었으면 True
        """
        account_id, token = self.token_store.account_id, self.token_store.token
        if not self.message_cache.mark_seen(message_id):
            return False
        if token is None:
            return True

        try:
            await self.mailbox_client.mark_message_seen(token, message_id)
            self.logger.debug(f"원격 읽음 처리 완료: {message_id}")
        except CredentialInvalidError:
            await self._handle_credential_invalid(account_id)
        except MailEngineError as e:
            self.logger.warning(f"원격 읽음 처리 실패, 로컬 상태 유지: {message_id}, 오류: {str(e)}")
        return True

    async def get_message(self, message_id: str) -> Optional[Message]:
        """메시지 전체 본문을 조회합니다."""
        account_id = self.token_store.account_id
        try:
            return await self.synchronizer.fetch_message(message_id)
        except CredentialInvalidError:
            await self._handle_credential_invalid(account_id)
            return None

    async def delete_message(self, message_id: str) -> bool:
        """
        메시지를 원격에서 삭제하고 캐시에서 제거합니다.

        Raises:
            MailboxApiError, NetworkError: 원격 삭제가 실패한 경우 (캐시는 그대로 유지)
        """
        account_id, token = self.token_store.account_id, self.token_store.token
        if token is None:
            raise ValidationError("활성 세션이 없습니다")

        try:
            await self.mailbox_client.delete_message(token, message_id)
        except CredentialInvalidError:
            await self._handle_credential_invalid(account_id)
            return False

        if not self.token_store.is_current(account_id):
            return False

        self.logger.info(f"메시지 삭제 완료: {message_id}")
        return self.message_cache.remove(message_id)

    async def list_domains(self) -> List[DomainInfo]:
        """사용자 지정 주소에 사용할 수 있는 도메인 목록"""
        domains = await self.mailbox_client.list_domains()
        return [domain for domain in domains if domain.is_available()]

    async def refresh_account_info(self) -> Optional[Account]:
        """할당량/사용량을 갱신합니다. 실패는 기록만 하고 무시합니다."""
        account_id, token = self.token_store.account_id, self.token_store.token
        if token is None:
            return None

        try:
            account = await self.mailbox_client.get_account(token)
        except CredentialInvalidError:
            self._on_credential_invalid(account_id)
            return None
        except Exception as e:
            self.logger.warning(f"계정 정보 갱신 실패: {str(e)}")
            return None

        if not self.token_store.is_current(account_id):
            return None

        self.token_store.update_account(account)
        await self._persist()
        self._notify()
        self.logger.debug(f"계정 정보 갱신: used={account.used}, quota={account.quota}")
        return self.token_store.account

    async def close(self) -> None:
        """엔진을 종료합니다. 진행 중인 요청 결과는 계정 비교로 폐기됩니다."""
        await self._cancel_recovery()
        await self._stop_background()
        self.logger.info("세션 엔진 종료")

    # ------------------------------------------------------------------
    # 내부 전이
    # ------------------------------------------------------------------

    def _begin_transition(self) -> None:
        self._state = SessionState.AUTHENTICATING
        self._loading = True
        self._notify()

    def _fail_transition(self, error: Exception) -> None:
        """실패한 전이 이후 이전 세션 상태로 복귀합니다."""
        self.logger.error(f"세션 전이 실패: {type(error).__name__}: {str(error)}")
        self._last_error = str(error)
        self._loading = False
        if self.token_store.is_authenticated and self.synchronizer.is_running:
            self._state = SessionState.ACTIVE
        else:
            self._state = SessionState.UNINITIALIZED
        self._notify()

    async def _generate_new_email(self) -> SessionView:
        """전이 잠금을 잡은 상태에서 새 주소를 생성합니다."""
        self.logger.info("새 임시 주소 생성 시작")
        self._begin_transition()

        try:
            domain = await self._pick_domain()
            address = f"{generate_local_part()}@{domain}"
            password = generate_password()
            account, token = await self._create_and_authenticate(address, password)
        except AccountCreationError as e:
            self._fail_transition(e)
            raise
        except MailEngineError as e:
            self._fail_transition(e)
            raise AccountCreationError(f"새 주소 생성 실패: {str(e)}") from e

        await self._switch_session(account, token, SessionOrigin.GENERATED, password)
        self.logger.info(f"새 임시 주소 생성 완료: {account.address}")
        return self.view()

    async def _pick_domain(self) -> str:
        domains = await self.list_domains()
        if not domains:
            raise AccountCreationError("사용 가능한 도메인이 없습니다")
        return domains[0].domain

    async def _create_and_authenticate(self, address: str, password: str) -> Tuple[Account, str]:
        account = await self.mailbox_client.create_account(address, password)
        try:
            token = await self.mailbox_client.get_token(address, password)
        except AuthenticationError as e:
            raise AccountCreationError(f"생성된 계정의 토큰 발급 실패: {address}") from e
        return account, token

    async def _switch_session(
        self,
        account: Account,
        token: str,
        origin: SessionOrigin,
        password: Optional[str],
    ) -> None:
        """이전 동기화를 완전히 중지한 뒤 새 세션을 설치하고 시작합니다."""
        await self._stop_background()

        self.token_store.install(account, token, origin)
        self._password = password
        self.message_cache.reset(account.id)
        self._state = SessionState.ACTIVE
        self._loading = False
        self._last_error = None

        await self.synchronizer.start(self.token_store.account)
        self._start_account_refresh(account.id)
        await self._persist()
        self._notify()

    async def _initial_fetch(self) -> None:
        account_id = self.token_store.account_id
        try:
            await self.synchronizer.refresh()
        except CredentialInvalidError:
            await self._recover_credential(account_id)
        except MailEngineError as e:
            self.logger.warning(f"초기 메시지 조회 실패: {str(e)}")

    async def _stop_background(self) -> None:
        await self.synchronizer.stop()

        task = self._info_task
        self._info_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def _start_account_refresh(self, account_id: str) -> None:
        if self.account_refresh_interval <= 0:
            return
        self._info_task = asyncio.create_task(self._account_refresh_loop(account_id))

    async def _account_refresh_loop(self, account_id: str) -> None:
        while self.token_store.is_current(account_id):
            await asyncio.sleep(self.account_refresh_interval)
            if not self.token_store.is_current(account_id):
                return
            await self.refresh_account_info()

    async def _persist(self) -> None:
        account, token = self.token_store.account, self.token_store.token
        if account is None or token is None:
            return

        snapshot = SessionSnapshot.from_account(
            account,
            token,
            self.token_store.origin or SessionOrigin.GENERATED,
            password=self._password if self.persist_password else None,
        )
        if not await self.session_store.save(snapshot):
            self.logger.warning(f"세션 스냅샷 저장 실패: {account.address}")

    # ------------------------------------------------------------------
    # 토큰 무효화 복구
    # ------------------------------------------------------------------

    async def _handle_credential_invalid(self, account_id: Optional[str]) -> None:
        """
        토큰 무효화 복구 전이를 수행합니다.

        Raises:
            SessionExpiredError: 명시적 로그인 세션인 경우
            AccountCreationError: 자동 복구 중 새 주소 생성에 실패한 경우
        """
        async with self._transition_lock:
            await self._recover_credential(account_id)

    async def _recover_credential(self, account_id: Optional[str]) -> None:
        """전이 잠금을 잡은 상태에서 토큰 무효화 복구를 수행합니다."""
        if not self.token_store.is_current(account_id):
            self.logger.debug(f"이미 교체된 계정의 토큰 무효화 무시: {account_id}")
            return

        origin = self.token_store.origin
        self.token_store.invalidate()
        await self._stop_background()

        if self.recovery_policy.should_auto_recover(origin):
            self.logger.warning(f"토큰 만료, 새 임시 주소로 복구: {account_id}")
            await self._generate_new_email()
            return

        self.logger.warning(f"로그인 세션 만료: {account_id}")
        error = SessionExpiredError("세션이 만료되었습니다. 다시 로그인하세요")
        self._state = SessionState.UNINITIALIZED
        self._last_error = str(error)
        self._notify()
        raise error

    def _on_credential_invalid(self, account_id: str) -> None:
        """백그라운드 작업에서 감지한 토큰 무효화를 복구 작업으로 넘깁니다."""
        if not self.token_store.is_current(account_id):
            return
        if self._recovery_task is not None and not self._recovery_task.done():
            return
        self._recovery_task = asyncio.create_task(self._recover_in_background(account_id))

    async def _cancel_recovery(self) -> None:
        """대기 중이거나 진행 중인 백그라운드 복구를 취소합니다."""
        task = self._recovery_task
        if task is None or task is asyncio.current_task() or task.done():
            return
        self._recovery_task = None
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.logger.debug("백그라운드 복구 취소")

    async def _recover_in_background(self, account_id: str) -> None:
        try:
            await self._handle_credential_invalid(account_id)
        except SessionExpiredError as e:
            self.logger.info(f"로그인 세션 만료를 UI에 알림: {str(e)}")
        except MailEngineError as e:
            self.logger.error(f"자동 복구 실패: {str(e)}")

    def _on_account_event(self, account_id: str, payload: dict) -> None:
        """푸시로 받은 계정 갱신 이벤트를 반영합니다."""
        if not self.token_store.is_current(account_id):
            return
        try:
            account = Account.model_validate(payload)
        except PydanticValidationError as e:
            self.logger.warning(f"계정 이벤트 파싱 실패: {str(e)}")
            return

        self.token_store.update_account(account)
        self._notify()
