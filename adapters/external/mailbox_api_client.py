"""
메일함 API 클라이언트 어댑터

임시 메일함 REST API(mail.tm 호환)와의 통신을 담당하는 어댑터입니다.
상태를 갖지 않으며, 응답을 도메인 엔티티로 변환해 반환합니다.
"""

from typing import List, Optional

import httpx

from core.domain.entities import Account, DomainInfo, Message
from core.domain.errors import (
    AccountCreationError,
    AddressTakenError,
    AuthenticationError,
    CredentialInvalidError,
    MailboxApiError,
    NetworkError,
)
from core.domain.ports import LoggerPort, MailboxClientPort


COLLECTION_KEY = "hydra:member"
ERROR_DESCRIPTION_KEY = "hydra:description"


class MailTmApiClientAdapter(MailboxClientPort):
    """mail.tm 호환 메일함 API 클라이언트 어댑터"""

    def __init__(
        self,
        logger: LoggerPort,
        base_url: str = "https://api.mail.tm",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = logger
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _headers(self, token: Optional[str] = None) -> dict:
        headers = {"Accept": "application/ld+json, application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(self, method: str, path: str, action: str, **kwargs) -> httpx.Response:
        """요청을 보내고 전송 계층 오류를 NetworkError로 변환합니다."""
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                return await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            error_msg = f"{action} 실패 (네트워크): {type(e).__name__}: {str(e)}"
            self.logger.error(error_msg)
            raise NetworkError(error_msg) from e

    def _raise_for_status(self, response: httpx.Response, action: str, authenticated: bool = True) -> None:
        if response.is_success:
            return

        error_msg = f"{action} 실패: {response.status_code} - {response.text}"
        if response.status_code == 401 and authenticated:
            self.logger.warning(error_msg)
            raise CredentialInvalidError(error_msg)

        self.logger.error(error_msg)
        raise MailboxApiError(error_msg, status_code=response.status_code)

    @staticmethod
    def _members(payload) -> list:
        if isinstance(payload, list):
            return payload
        return payload.get(COLLECTION_KEY, [])

    @staticmethod
    def _error_description(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text
        if isinstance(payload, dict):
            return payload.get(ERROR_DESCRIPTION_KEY) or payload.get("detail") or response.text
        return response.text

    async def list_domains(self) -> List[DomainInfo]:
        """사용 가능한 도메인 목록을 조회합니다."""
        self.logger.debug("도메인 목록 조회")

        response = await self._send("GET", "/domains", "도메인 목록 조회", headers=self._headers())
        self._raise_for_status(response, "도메인 목록 조회", authenticated=False)

        domains = [DomainInfo.model_validate(item) for item in self._members(response.json())]
        self.logger.debug(f"도메인 목록 조회 성공: {len(domains)}개")
        return domains

    async def create_account(self, address: str, password: str) -> Account:
        """계정을 생성합니다."""
        self.logger.debug(f"계정 생성: address={address}")

        response = await self._send(
            "POST",
            "/accounts",
            "계정 생성",
            headers=self._headers(),
            json={"address": address, "password": password},
        )

        if response.status_code == 422 and "already used" in response.text:
            self.logger.warning(f"이미 사용 중인 주소: {address}")
            raise AddressTakenError(address)

        if not response.is_success:
            description = self._error_description(response)
            error_msg = f"계정 생성 실패: {response.status_code} - {description}"
            self.logger.error(error_msg)
            raise AccountCreationError(error_msg)

        account = Account.model_validate(response.json())
        self.logger.debug(f"계정 생성 성공: account_id={account.id}")
        return account

    async def get_token(self, address: str, password: str) -> str:
        """자격 증명을 토큰으로 교환합니다."""
        self.logger.debug(f"토큰 발급: address={address}")

        response = await self._send(
            "POST",
            "/token",
            "토큰 발급",
            headers=self._headers(),
            json={"address": address, "password": password},
        )

        if response.status_code == 401:
            self.logger.warning(f"자격 증명 거부: {address}")
            raise AuthenticationError(f"메일 주소 또는 비밀번호가 올바르지 않습니다: {address}")
        self._raise_for_status(response, "토큰 발급", authenticated=False)

        token = response.json().get("token")
        if not token:
            raise MailboxApiError("토큰 발급 응답에 토큰이 없습니다", status_code=response.status_code)

        self.logger.debug("토큰 발급 성공")
        return token

    async def get_account(self, token: str) -> Account:
        """인증된 계정 정보를 조회합니다."""
        self.logger.debug("계정 정보 조회")

        response = await self._send("GET", "/me", "계정 정보 조회", headers=self._headers(token))
        self._raise_for_status(response, "계정 정보 조회")

        account = Account.model_validate(response.json())
        self.logger.debug(f"계정 정보 조회 성공: {account.address}")
        return account

    async def list_messages(self, token: str, page: int = 1) -> List[Message]:
        """메시지 목록을 조회합니다."""
        self.logger.debug(f"메시지 목록 조회: page={page}")

        response = await self._send(
            "GET",
            "/messages",
            "메시지 목록 조회",
            headers=self._headers(token),
            params={"page": page},
        )
        self._raise_for_status(response, "메시지 목록 조회")

        messages = [Message.model_validate(item) for item in self._members(response.json())]
        self.logger.debug(f"메시지 목록 조회 성공: {len(messages)}개 메시지")
        return messages

    async def get_message(self, token: str, message_id: str) -> Message:
        """특정 메시지를 조회합니다."""
        self.logger.debug(f"메시지 조회: message_id={message_id}")

        response = await self._send(
            "GET",
            f"/messages/{message_id}",
            "메시지 조회",
            headers=self._headers(token),
        )
        self._raise_for_status(response, "메시지 조회")

        message = Message.model_validate(response.json())
        self.logger.debug(f"메시지 조회 성공: {message.subject or 'N/A'}")
        return message

    async def mark_message_seen(self, token: str, message_id: str) -> None:
        """메시지를 읽음으로 표시합니다."""
        self.logger.debug(f"메시지 읽음 처리: message_id={message_id}")

        headers = self._headers(token)
        headers["Content-Type"] = "application/merge-patch+json"

        response = await self._send(
            "PATCH",
            f"/messages/{message_id}",
            "메시지 읽음 처리",
            headers=headers,
            content=b'{"seen": true}',
        )
        self._raise_for_status(response, "메시지 읽음 처리")
        self.logger.debug("메시지 읽음 처리 성공")

    async def delete_message(self, token: str, message_id: str) -> None:
        """메시지를 삭제합니다."""
        self.logger.debug(f"메시지 삭제: message_id={message_id}")

        response = await self._send(
            "DELETE",
            f"/messages/{message_id}",
            "메시지 삭제",
            headers=self._headers(token),
        )
        self._raise_for_status(response, "메시지 삭제")
        self.logger.debug("메시지 삭제 성공")

    async def delete_account(self, token: str, account_id: str) -> None:
        """계정을 삭제합니다."""
        self.logger.debug(f"계정 삭제: account_id={account_id}")

        response = await self._send(
            "DELETE",
            f"/accounts/{account_id}",
            "계정 삭제",
            headers=self._headers(token),
        )
        self._raise_for_status(response, "계정 삭제")
        self.logger.debug("계정 삭제 성공")
