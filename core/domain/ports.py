"""
포트 인터페이스 정의

클린 아키텍처의 핵심으로, Core 레이어와 외부 어댑터 간의 계약을 정의합니다.
모든 포트는 추상 기본 클래스(ABC)로 정의되어 구현을 강제합니다.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .entities import Account, DomainInfo, Message, SessionSnapshot


PushEventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class MailboxClientPort(ABC):
    """원격 메일함 API 클라이언트 포트

    상태를 갖지 않는 요청 함수 모음입니다. 캐싱하지 않습니다.
    """

    @abstractmethod
    async def list_domains(self) -> List[DomainInfo]:
        """사용 가능한 도메인 목록 조회 (인증 불필요)"""
        pass

    @abstractmethod
    async def create_account(self, address: str, password: str) -> Account:
        """계정 생성"""
        pass

    @abstractmethod
    async def get_token(self, address: str, password: str) -> str:
        """자격 증명을 토큰으로 교환"""
        pass

    @abstractmethod
    async def get_account(self, token: str) -> Account:
        """인증된 계정 정보 조회"""
        pass

    @abstractmethod
    async def list_messages(self, token: str, page: int = 1) -> List[Message]:
        """메시지 목록 조회"""
        pass

    @abstractmethod
    async def get_message(self, token: str, message_id: str) -> Message:
        """특정 메시지 전체 조회"""
        pass

    @abstractmethod
    async def mark_message_seen(self, token: str, message_id: str) -> None:
        """메시지 읽음 처리"""
        pass

    @abstractmethod
    async def delete_message(self, token: str, message_id: str) -> None:
        """메시지 삭제"""
        pass

    @abstractmethod
    async def delete_account(self, token: str, account_id: str) -> None:
        """계정 삭제"""
        pass


class PushSubscriptionPort(ABC):
    """푸시 구독 포트

    전송 방식(스트리밍 연결 또는 폴링 전용)과 무관한 구독 기능입니다.
    """

    @abstractmethod
    async def open(
        self,
        topic: str,
        on_event: PushEventHandler,
        token: Optional[str] = None,
    ) -> None:
        """구독을 열고 연결이 끊길 때까지 이벤트를 전달합니다."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """열린 구독을 닫습니다. 멱등입니다."""
        pass


class SessionStorePort(ABC):
    """세션 스냅샷 저장소 포트

    어떤 메서드도 예외를 던지지 않아야 합니다.
    """

    @abstractmethod
    async def load(self) -> SessionSnapshot:
        """스냅샷 조회 (없거나 손상되면 빈 스냅샷)"""
        pass

    @abstractmethod
    async def save(self, snapshot: SessionSnapshot) -> bool:
        """스냅샷 저장"""
        pass

    @abstractmethod
    async def clear(self) -> bool:
        """스냅샷 삭제"""
        pass


class EncryptionServicePort(ABC):
    """암호화 서비스 포트"""

    @abstractmethod
    async def encrypt(self, data: str) -> str:
        """데이터 암호화"""
        pass

    @abstractmethod
    async def decrypt(self, encrypted_data: str) -> str:
        """데이터 복호화"""
        pass


class LoggerPort(ABC):
    """로거 포트"""

    @abstractmethod
    def info(self, message: str, **kwargs) -> None:
        """정보 로그"""
        pass

    @abstractmethod
    def warning(self, message: str, **kwargs) -> None:
        """경고 로그"""
        pass

    @abstractmethod
    def error(self, message: str, **kwargs) -> None:
        """오류 로그"""
        pass

    @abstractmethod
    def debug(self, message: str, **kwargs) -> None:
        """디버그 로그"""
        pass


class ConfigPort(ABC):
    """설정 포트"""

    # 환경 설정
    @abstractmethod
    def get_environment(self) -> str:
        """환경 조회 (development, production, testing)"""
        pass

    @abstractmethod
    def is_debug(self) -> bool:
        """디버그 모드 여부"""
        pass

    # 데이터베이스 설정
    @abstractmethod
    def get_database_url(self) -> str:
        """데이터베이스 URL 조회"""
        pass

    # 보안 설정
    @abstractmethod
    def get_encryption_key(self) -> str:
        """암호화 키 조회"""
        pass

    @abstractmethod
    def should_persist_password(self) -> bool:
        """비밀번호 저장 여부"""
        pass

    @abstractmethod
    def get_session_namespace(self) -> str:
        """세션 스냅샷 네임스페이스 조회"""
        pass

    # 원격 메일함 API 설정
    @abstractmethod
    def get_mail_api_base_url(self) -> str:
        """메일함 API 베이스 URL 조회"""
        pass

    @abstractmethod
    def get_mercure_hub_url(self) -> str:
        """푸시 허브 URL 조회"""
        pass

    @abstractmethod
    def get_http_timeout(self) -> float:
        """HTTP 타임아웃(초) 조회"""
        pass

    # 동기화 설정
    @abstractmethod
    def get_poll_interval_seconds(self) -> float:
        """폴링 간격(초) 조회"""
        pass

    @abstractmethod
    def get_account_refresh_interval_seconds(self) -> float:
        """계정 정보 갱신 간격(초) 조회"""
        pass

    @abstractmethod
    def is_push_enabled(self) -> bool:
        """푸시 채널 사용 여부"""
        pass

    @abstractmethod
    def get_push_retry_config(self) -> dict:
        """푸시 재연결 설정 조회"""
        pass

    # 로깅 설정
    @abstractmethod
    def get_log_level(self) -> str:
        """로그 레벨 조회"""
        pass

    @abstractmethod
    def get_log_format(self) -> str:
        """로그 포맷 조회"""
        pass

    # 웹 서버 설정
    @abstractmethod
    def get_web_host(self) -> str:
        """웹 서버 호스트 조회"""
        pass

    @abstractmethod
    def get_web_port(self) -> int:
        """웹 서버 포트 조회"""
        pass

    @abstractmethod
    def get_web_workers(self) -> int:
        """웹 서버 워커 수 조회"""
        pass
