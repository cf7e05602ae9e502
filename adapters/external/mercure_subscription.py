"""
푸시 구독 어댑터

- MercureSubscriptionAdapter: Mercure 허브의 server-sent events 스트림을 구독합니다.
- PollingOnlySubscription: 푸시 채널을 쓰지 않을 때의 구현으로,
  메시지 전달은 폴링 루프에 맡기고 close될 때까지 대기만 합니다.
"""

import asyncio
import json
from typing import List, Optional

import httpx

from core.domain.errors import CredentialInvalidError, StreamError
from core.domain.ports import LoggerPort, PushEventHandler, PushSubscriptionPort


class MercureSubscriptionAdapter(PushSubscriptionPort):
    """Mercure SSE 구독 어댑터"""

    def __init__(
        self,
        logger: LoggerPort,
        hub_url: str = "https://mercure.mail.tm/.well-known/mercure",
        connect_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = logger
        self.hub_url = hub_url
        # 스트림은 이벤트 사이에 오래 조용할 수 있으므로 읽기 타임아웃 없음
        self.timeout = httpx.Timeout(connect_timeout, read=None)
        self.transport = transport
        self._response: Optional[httpx.Response] = None

    @property
    def is_open(self) -> bool:
        return self._response is not None

    async def open(
        self,
        topic: str,
        on_event: PushEventHandler,
        token: Optional[str] = None,
    ) -> None:
        """
        스트림이 끊길 때까지 이벤트를 전달합니다.

        Raises:
            CredentialInvalidError: 허브가 401을 반환한 경우
            StreamError: 연결 실패 또는 스트림 종료
        """
        headers = {"Accept": "text/event-stream"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.logger.debug(f"푸시 채널 연결: topic={topic}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                async with client.stream("GET", self.hub_url, params={"topic": topic}, headers=headers) as response:
                    if response.status_code == 401:
                        raise CredentialInvalidError(f"푸시 채널 인증 실패: {topic}")
                    if response.status_code != 200:
                        await response.aread()
                        raise StreamError(f"푸시 채널 연결 실패: {response.status_code} - {response.text}")

                    self._response = response
                    self.logger.info(f"푸시 채널 연결됨: topic={topic}")
                    await self._consume(response, on_event)
        except httpx.HTTPError as e:
            raise StreamError(f"푸시 채널 오류: {type(e).__name__}: {str(e)}") from e
        finally:
            self._response = None

        raise StreamError(f"푸시 채널 스트림 종료: topic={topic}")

    async def _consume(self, response: httpx.Response, on_event: PushEventHandler) -> None:
        data_lines: List[str] = []
        async for line in response.aiter_lines():
            if line == "":
                if data_lines:
                    await self._dispatch("\n".join(data_lines), on_event)
                    data_lines = []
                continue
            if line.startswith(":"):
                # 주석 (keep-alive)
                continue

            field, _, value = line.partition(":")
            if field == "data":
                data_lines.append(value[1:] if value.startswith(" ") else value)

        if data_lines:
            await self._dispatch("\n".join(data_lines), on_event)

    async def _dispatch(self, data: str, on_event: PushEventHandler) -> None:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            self.logger.warning(f"푸시 이벤트 파싱 실패: {str(e)}")
            return

        if not isinstance(payload, dict):
            self.logger.warning(f"푸시 이벤트 형식 오류: {type(payload).__name__}")
            return

        await on_event(payload)

    async def close(self) -> None:
        """열린 스트림을 닫습니다."""
        response = self._response
        self._response = None
        if response is not None:
            await response.aclose()
            self.logger.debug("푸시 채널 종료")


class PollingOnlySubscription(PushSubscriptionPort):
    """폴링 전용 구독 (푸시 전송 없음)"""

    def __init__(self, logger: LoggerPort):
        self.logger = logger
        self._closed: Optional[asyncio.Event] = None

    async def open(
        self,
        topic: str,
        on_event: PushEventHandler,
        token: Optional[str] = None,
    ) -> None:
        self.logger.debug(f"푸시 채널 없음, 폴링으로 대체: topic={topic}")
        self._closed = asyncio.Event()
        await self._closed.wait()

    async def close(self) -> None:
        if self._closed is not None:
            self._closed.set()
            self._closed = None
