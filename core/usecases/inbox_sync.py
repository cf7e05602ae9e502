"""
받은편지함 동기화

MailboxClient를 주기적으로 호출(폴링)하고, 가능한 경우 푸시 구독을 열어
결과를 MessageCache에 병합합니다.

- 폴링은 푸시 채널이 끊겨도 계속 동작합니다.
- 모든 요청은 요청 시점의 계정 ID를 캡처하고, 결과 적용 전에
  AuthTokenStore의 현재 계정과 비교합니다.
- 토큰 무효화는 직접 처리하지 않고 AccountSessionManager의 핸들러로 넘깁니다.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..domain.entities import Account, Message
from ..domain.errors import CredentialInvalidError, StreamError
from ..domain.ports import LoggerPort, MailboxClientPort, PushSubscriptionPort
from .auth_token_store import AuthTokenStore
from .message_cache import MessageCache
from .recovery import ErrorRecoveryPolicy, ReconnectPolicy, RecoveryAction


CredentialInvalidHandler = Callable[[str], None]
AccountEventHandler = Callable[[str, Dict[str, Any]], None]


class InboxSynchronizer:
    """폴링 + 푸시 동기화기"""

    def __init__(
        self,
        mailbox_client: MailboxClientPort,
        subscription: PushSubscriptionPort,
        token_store: AuthTokenStore,
        message_cache: MessageCache,
        logger: LoggerPort,
        poll_interval: float = 5.0,
        push_enabled: bool = True,
        reconnect_policy: Optional[ReconnectPolicy] = None,
        recovery_policy: Optional[ErrorRecoveryPolicy] = None,
    ):
        if poll_interval <= 0:
            raise ValueError("폴링 간격은 0보다 커야 합니다")

        self.mailbox_client = mailbox_client
        self.subscription = subscription
        self.token_store = token_store
        self.message_cache = message_cache
        self.logger = logger
        self.poll_interval = poll_interval
        self.push_enabled = push_enabled
        self.reconnect_policy = reconnect_policy or ReconnectPolicy()
        self.recovery_policy = recovery_policy or ErrorRecoveryPolicy()

        self._account_id: Optional[str] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._push_task: Optional[asyncio.Task] = None
        self._on_credential_invalid: Optional[CredentialInvalidHandler] = None
        self._on_account_event: Optional[AccountEventHandler] = None

    def bind_handlers(
        self,
        on_credential_invalid: CredentialInvalidHandler,
        on_account_event: Optional[AccountEventHandler] = None,
    ) -> None:
        """세션 관리자의 복구 핸들러를 연결합니다."""
        self._on_credential_invalid = on_credential_invalid
        self._on_account_event = on_account_event

    @property
    def account_id(self) -> Optional[str]:
        return self._account_id

    @property
    def is_running(self) -> bool:
        return self._poll_task is not None

    @property
    def is_push_active(self) -> bool:
        return self._push_task is not None and not self._push_task.done()

    async def start(self, account: Account) -> None:
        """
        계정에 대한 폴링과 푸시 구독을 시작합니다.

        Raises:
            RuntimeError: 이전 계정의 동기화가 중지되지 않은 경우
        """
        if self.is_running:
            raise RuntimeError(f"이전 동기화가 아직 실행 중입니다: {self._account_id}")

        self.logger.info(f"받은편지함 동기화 시작: {account.id}, 간격: {self.poll_interval}초")
        self._account_id = account.id
        self._poll_task = asyncio.create_task(self._poll_loop(account.id))
        if self.push_enabled:
            self._push_task = asyncio.create_task(self._push_loop(account.id))

    async def stop(self) -> None:
        """타이머를 취소하고 구독을 닫습니다. 멱등입니다."""
        tasks = [task for task in (self._poll_task, self._push_task) if task is not None]
        account_id = self._account_id
        self._poll_task = None
        self._push_task = None
        self._account_id = None

        current = asyncio.current_task()
        pending = [task for task in tasks if task is not current]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self.subscription.close()
        if tasks:
            self.logger.info(f"받은편지함 동기화 중지: {account_id}")

    async def refresh(self) -> Optional[List[Message]]:
        """
        수동 폴링을 한 번 수행합니다.

        Returns:
            병합 후 메시지 목록, 요청 도중 계정이 바뀌었으면 None

        Raises:
            CredentialInvalidError, NetworkError, MailboxApiError
        """
        return await self._fetch_and_merge()

    async def fetch_message(self, message_id: str) -> Optional[Message]:
        """메시지 전체 본문을 조회해 캐시에 병합합니다."""
        account_id, token = self._capture()
        if token is None:
            return None

        message = await self.mailbox_client.get_message(token, message_id)
        if not self.token_store.is_current(account_id):
            self.logger.debug(f"교체된 계정의 메시지 상세 결과 폐기: {message_id}")
            return None
        return self.message_cache.upsert_detail(message)

    def _capture(self) -> Tuple[Optional[str], Optional[str]]:
        return self.token_store.account_id, self.token_store.token

    async def _fetch_and_merge(self) -> Optional[List[Message]]:
        account_id, token = self._capture()
        if token is None:
            return None

        messages = await self.mailbox_client.list_messages(token)

        if not self.token_store.is_current(account_id):
            self.logger.debug(f"교체된 계정의 폴링 결과 폐기: {account_id}")
            return None
        return self.message_cache.merge(messages)

    async def _poll_loop(self, account_id: str) -> None:
        while self.token_store.is_current(account_id):
            try:
                await self._fetch_and_merge()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._handle_background_error(account_id, e, "폴링"):
                    return
            await asyncio.sleep(self.poll_interval)

    async def _push_loop(self, account_id: str) -> None:
        topic = f"/accounts/{account_id}"
        attempt = 0

        while self.token_store.is_current(account_id):
            received = {"count": 0}

            async def on_event(payload: Dict[str, Any]) -> None:
                received["count"] += 1
                self._apply_push_event(account_id, payload)

            try:
                await self.subscription.open(topic, on_event, token=self.token_store.token)
                raise StreamError("푸시 채널이 서버에 의해 닫혔습니다")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._handle_background_error(account_id, e, "푸시"):
                    return
            finally:
                await self.subscription.close()

            attempt = 1 if received["count"] else attempt + 1
            delay = self.reconnect_policy.next_delay(attempt)
            if delay is None:
                self.logger.warning(f"푸시 재연결 한도 초과, 폴링만 사용: {account_id}")
                return

            self.logger.info(f"푸시 채널 재연결 대기: {delay}초 (시도 {attempt})")
            await asyncio.sleep(delay)

    def _apply_push_event(self, account_id: str, payload: Dict[str, Any]) -> None:
        if not self.token_store.is_current(account_id):
            self.logger.debug(f"교체된 계정의 푸시 이벤트 폐기: {account_id}")
            return

        if payload.get("@type") == "Account":
            if self._on_account_event is not None:
                self._on_account_event(account_id, payload)
            return

        try:
            message = Message.model_validate(payload)
        except PydanticValidationError as e:
            self.logger.warning(f"푸시 메시지 파싱 실패: {str(e)}")
            return

        self.message_cache.merge([message])

    def _handle_background_error(self, account_id: str, error: Exception, source: str) -> bool:
        """
        백그라운드 오류를 처리합니다.

        Returns:
            루프를 계속할지 여부
        """
        action = self.recovery_policy.classify(error)

        if action == RecoveryAction.RECOVER_CREDENTIAL:
            self.logger.warning(f"{source} 중 토큰 무효화 감지: {account_id}")
            if self._on_credential_invalid is not None:
                self._on_credential_invalid(account_id)
            return False

        if action == RecoveryAction.RETRY:
            self.logger.warning(f"{source} 실패, 기존 메시지 유지: {str(error)}")
        else:
            self.logger.error(f"{source} 중 예상하지 못한 오류: {type(error).__name__}: {str(error)}")
        return True
