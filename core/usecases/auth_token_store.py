"""
인증 토큰 저장소

활성 세션의 자격 증명(토큰, 계정)을 보관하는 단일 진실 공급원입니다.
AccountSessionManager만 값을 변경하며, 나머지 구성 요소는 읽기만 합니다.
"""

from typing import Optional

from ..domain.entities import Account, SessionOrigin


class AuthTokenStore:
    """현재 세션의 자격 증명 보관소"""

    def __init__(self):
        self._account: Optional[Account] = None
        self._token: Optional[str] = None
        self._origin: Optional[SessionOrigin] = None

    @property
    def account(self) -> Optional[Account]:
        return self._account

    @property
    def account_id(self) -> Optional[str]:
        return self._account.id if self._account else None

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def origin(self) -> Optional[SessionOrigin]:
        return self._origin

    @property
    def is_authenticated(self) -> bool:
        return self._account is not None and self._token is not None

    def is_current(self, account_id: Optional[str]) -> bool:
        """요청 시점에 캡처한 계정이 아직 활성 계정인지 확인"""
        return account_id is not None and self.is_authenticated and self.account_id == account_id

    def install(self, account: Account, token: str, origin: SessionOrigin) -> None:
        self._account = account.model_copy(update={"token": token})
        self._token = token
        self._origin = origin

    def update_account(self, account: Account) -> None:
        """같은 계정의 정보(할당량, 사용량 등)를 갱신합니다."""
        if self._account is None or account.id != self._account.id:
            return
        self._account = account.model_copy(update={"token": self._token})

    def invalidate(self) -> None:
        """토큰을 즉시 무효 처리합니다. 계정 정보는 참고용으로 유지됩니다."""
        self._token = None

    def clear(self) -> None:
        self._account = None
        self._token = None
        self._origin = None
