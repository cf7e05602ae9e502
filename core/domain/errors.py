"""
도메인 오류 정의

세션 엔진이 호출자에게 전달하거나 내부적으로 분기하는 오류 종류입니다.
"""

from typing import Optional


class MailEngineError(Exception):
    """세션 엔진 오류의 기본 클래스"""


class ValidationError(MailEngineError):
    """로컬 입력 검증 실패 (네트워크 호출 전에 발생)"""


class AuthenticationError(MailEngineError):
    """로그인 자격 증명 거부"""


class SessionExpiredError(MailEngineError):
    """명시적 로그인 세션의 토큰이 무효화됨"""


class AccountCreationError(MailEngineError):
    """계정 생성 실패 (사용 가능한 도메인 없음, 생성 요청 거부 등)"""


class AddressTakenError(AccountCreationError):
    """이미 사용 중인 주소"""

    def __init__(self, address: str):
        super().__init__(f"이미 사용 중인 주소입니다: {address}")
        self.address = address


class NetworkError(MailEngineError):
    """전송 계층 실패"""


class StreamError(MailEngineError):
    """푸시 채널 실패"""


class CredentialInvalidError(MailEngineError):
    """인증된 요청에 대해 원격 API가 401을 반환함"""


class MailboxApiError(MailEngineError):
    """예상하지 못한 원격 API 응답"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
