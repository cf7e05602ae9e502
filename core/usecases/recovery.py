"""
오류 복구 / 재시도 정책

백그라운드 동기화에서 발생한 오류의 처리 방식과
푸시 채널 재연결 간격을 한곳에서 결정합니다.
"""

from enum import Enum
from typing import Optional

from ..domain.entities import SessionOrigin
from ..domain.errors import (
    CredentialInvalidError,
    MailboxApiError,
    NetworkError,
    StreamError,
)


class RecoveryAction(str, Enum):
    """오류 처리 방식"""
    RECOVER_CREDENTIAL = "recover_credential"
    RETRY = "retry"
    LOG = "log"


class ReconnectPolicy:
    """상한이 있는 지수 백오프 정책"""

    def __init__(
        self,
        base_delay: float = 5.0,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        max_attempts: int = 0,
    ):
        if base_delay < 0 or max_delay < base_delay:
            raise ValueError("재연결 지연 설정이 올바르지 않습니다")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, retry_config: dict) -> "ReconnectPolicy":
        return cls(
            base_delay=retry_config.get("base_delay", 5.0),
            max_delay=retry_config.get("max_delay", 60.0),
            max_attempts=retry_config.get("max_attempts", 0),
        )

    def is_exhausted(self, attempt: int) -> bool:
        return self.max_attempts > 0 and attempt > self.max_attempts

    def next_delay(self, attempt: int) -> Optional[float]:
        """
        재연결 대기 시간을 계산합니다.

        Args:
            attempt: 연속 실패 횟수 (1부터 시작)

        Returns:
            대기 시간(초), 재시도 한도를 넘으면 None
        """
        if self.is_exhausted(attempt):
            return None
        exponent = max(attempt - 1, 0)
        return min(self.base_delay * (self.multiplier ** exponent), self.max_delay)


class ErrorRecoveryPolicy:
    """오류 분류 규칙"""

    def classify(self, error: BaseException) -> RecoveryAction:
        if isinstance(error, CredentialInvalidError):
            return RecoveryAction.RECOVER_CREDENTIAL
        if isinstance(error, (NetworkError, StreamError, MailboxApiError)):
            return RecoveryAction.RETRY
        return RecoveryAction.LOG

    def should_auto_recover(self, origin: Optional[SessionOrigin]) -> bool:
        """토큰 무효화 시 새 주소를 자동 생성할지 결정합니다.

        명시적 로그인 세션은 자동 복구하지 않습니다.
        """
        return origin != SessionOrigin.LOGIN
