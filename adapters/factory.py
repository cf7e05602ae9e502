"""
어댑터 팩토리

모든 어댑터들을 생성하고 의존성을 주입하는 팩토리 클래스입니다.
클린 아키텍처의 의존성 역전 원칙을 구현합니다.
"""

from typing import Optional

from core.domain.ports import (
    ConfigPort,
    EncryptionServicePort,
    LoggerPort,
    MailboxClientPort,
    PushSubscriptionPort,
    SessionStorePort,
)
from core.usecases.account_session import AccountSessionManager
from core.usecases.auth_token_store import AuthTokenStore
from core.usecases.inbox_sync import InboxSynchronizer
from core.usecases.message_cache import MessageCache
from core.usecases.recovery import ErrorRecoveryPolicy, ReconnectPolicy

from .db.database import DatabaseAdapter
from .db.session_repository import SessionSnapshotRepositoryAdapter
from .external.encryption_service import EncryptionServiceAdapter
from .external.mailbox_api_client import MailTmApiClientAdapter
from .external.mercure_subscription import MercureSubscriptionAdapter, PollingOnlySubscription
from .logger import LoggerAdapter
from config.adapters import get_config


class AdapterFactory:
    """어댑터 팩토리"""

    def __init__(self, config: Optional[ConfigPort] = None):
        self.config = config or get_config()
        self._logger: Optional[LoggerPort] = None
        self._encryption_service: Optional[EncryptionServicePort] = None
        self._mailbox_client: Optional[MailboxClientPort] = None
        self._database: Optional[DatabaseAdapter] = None
        self._session_store: Optional[SessionStorePort] = None
        self._session_manager: Optional[AccountSessionManager] = None

    def create_logger(self) -> LoggerPort:
        """로거 어댑터를 생성합니다."""
        if self._logger is None:
            self._logger = LoggerAdapter(
                name="tempmail",
                level=self.config.get_log_level(),
                format_string=self.config.get_log_format(),
            )
        return self._logger

    def create_encryption_service(self) -> EncryptionServicePort:
        """암호화 서비스 어댑터를 생성합니다."""
        if self._encryption_service is None:
            self._encryption_service = EncryptionServiceAdapter(
                encryption_key=self.config.get_encryption_key(),
                logger=self.create_logger(),
            )
        return self._encryption_service

    def create_mailbox_client(self) -> MailboxClientPort:
        """메일함 API 클라이언트 어댑터를 생성합니다."""
        if self._mailbox_client is None:
            self._mailbox_client = MailTmApiClientAdapter(
                logger=self.create_logger(),
                base_url=self.config.get_mail_api_base_url(),
                timeout=self.config.get_http_timeout(),
            )
        return self._mailbox_client

    def create_push_subscription(self) -> PushSubscriptionPort:
        """푸시 구독 어댑터를 생성합니다. 동기화기마다 새 인스턴스를 사용합니다."""
        logger = self.create_logger()

        # 푸시가 꺼져 있으면 폴링만 사용
        if not self.config.is_push_enabled():
            logger.info("푸시 채널이 비활성화되어 폴링만 사용합니다")
            return PollingOnlySubscription(logger=logger)

        return MercureSubscriptionAdapter(
            logger=logger,
            hub_url=self.config.get_mercure_hub_url(),
            connect_timeout=self.config.get_http_timeout(),
        )

    def create_database(self) -> DatabaseAdapter:
        """데이터베이스 어댑터를 생성합니다."""
        if self._database is None:
            self._database = DatabaseAdapter(self.config)
        return self._database

    def create_session_store(self) -> SessionStorePort:
        """세션 스냅샷 Repository 어댑터를 생성합니다."""
        if self._session_store is None:
            self._session_store = SessionSnapshotRepositoryAdapter(
                database=self.create_database(),
                encryption_service=self.create_encryption_service(),
                logger=self.create_logger(),
                namespace=self.config.get_session_namespace(),
                persist_password=self.config.should_persist_password(),
            )
        return self._session_store

    def create_session_manager(self) -> AccountSessionManager:
        """계정 세션 관리자를 생성합니다."""
        if self._session_manager is not None:
            return self._session_manager

        logger = self.create_logger()
        mailbox_client = self.create_mailbox_client()
        token_store = AuthTokenStore()
        message_cache = MessageCache(logger=logger)
        recovery_policy = ErrorRecoveryPolicy()

        synchronizer = InboxSynchronizer(
            mailbox_client=mailbox_client,
            subscription=self.create_push_subscription(),
            token_store=token_store,
            message_cache=message_cache,
            logger=logger,
            poll_interval=self.config.get_poll_interval_seconds(),
            push_enabled=self.config.is_push_enabled(),
            reconnect_policy=ReconnectPolicy.from_config(self.config.get_push_retry_config()),
            recovery_policy=recovery_policy,
        )

        self._session_manager = AccountSessionManager(
            mailbox_client=mailbox_client,
            session_store=self.create_session_store(),
            synchronizer=synchronizer,
            token_store=token_store,
            message_cache=message_cache,
            logger=logger,
            account_refresh_interval=self.config.get_account_refresh_interval_seconds(),
            persist_password=self.config.should_persist_password(),
            recovery_policy=recovery_policy,
        )
        return self._session_manager

    async def close(self) -> None:
        """생성한 리소스를 정리합니다."""
        if self._session_manager is not None:
            await self._session_manager.close()
            self._session_manager = None
        if self._database is not None:
            await self._database.close()

    def get_config(self) -> ConfigPort:
        """설정 객체를 반환합니다."""
        return self.config


# 전역 팩토리 인스턴스
_factory: Optional[AdapterFactory] = None


def get_adapter_factory() -> AdapterFactory:
    """전역 어댑터 팩토리 인스턴스를 반환합니다."""
    global _factory
    if _factory is None:
        _factory = AdapterFactory()
    return _factory


def initialize_adapter_factory(config: Optional[ConfigPort] = None) -> AdapterFactory:
    """어댑터 팩토리를 초기화합니다."""
    global _factory
    _factory = AdapterFactory(config)
    return _factory
