"""
메시지 캐시

활성 계정의 메시지를 메모리에 보관합니다.
중복 제거와 정렬(최신순)을 책임지며, 실제로 상태가 바뀐 경우에만
구독자에게 알립니다.
"""

from typing import Callable, Dict, List, Optional

from ..domain.entities import Message
from ..domain.ports import LoggerPort


MessageListener = Callable[[List[Message]], None]


class MessageCache:
    """활성 계정의 메시지 캐시"""

    def __init__(self, logger: LoggerPort):
        self.logger = logger
        self._account_id: Optional[str] = None
        self._messages: Dict[str, Message] = {}
        self._listeners: List[MessageListener] = []

    @property
    def account_id(self) -> Optional[str]:
        return self._account_id

    @property
    def messages(self) -> List[Message]:
        """최신순으로 정렬된 메시지 목록"""
        return sorted(self._messages.values(), key=Message.sort_key, reverse=True)

    @property
    def unseen_count(self) -> int:
        return sum(1 for message in self._messages.values() if not message.seen)

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: str) -> Optional[Message]:
        return self._messages.get(message_id)

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        """변경 알림을 구독합니다. 구독 해제 함수를 반환합니다."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self, account_id: str) -> None:
        """새 계정에 바인딩하고 기존 메시지를 모두 버립니다."""
        had_messages = bool(self._messages)
        self._account_id = account_id
        self._messages = {}
        self.logger.debug(f"메시지 캐시 초기화: account_id={account_id}")
        if had_messages:
            self._notify()

    def clear(self) -> None:
        had_messages = bool(self._messages)
        self._account_id = None
        self._messages = {}
        if had_messages:
            self._notify()

    def merge(self, incoming: List[Message]) -> List[Message]:
        """
        수신한 메시지를 캐시에 병합합니다.

        Args:
            incoming: 폴링 또는 푸시로 받은 메시지 목록

        Returns:
            병합 후 최신순 메시지 목록
        """
        changed = False
        for message in incoming:
            if not self._belongs_to_account(message):
                self.logger.debug(f"다른 계정의 메시지 무시: {message.id}")
                continue

            existing = self._messages.get(message.id)
            merged = message if existing is None else self._reconcile(existing, message)
            if existing is None or merged != existing:
                self._messages[message.id] = merged
                changed = True

        if changed:
            self._notify()
        return self.messages

    def upsert_detail(self, message: Message) -> Optional[Message]:
        """전체 본문 조회 결과를 병합합니다."""
        self.merge([message])
        return self._messages.get(message.id)

    def mark_seen(self, message_id: str) -> bool:
        """
        로컬 읽음 플래그를 낙관적으로 설정합니다.

        Returns:
            상태가 바뀌었으면 True
        """
        message = self._messages.get(message_id)
        if message is None or message.seen:
            return False

        self._messages[message_id] = message.model_copy(update={"seen": True})
        self._notify()
        return True

    def remove(self, message_id: str) -> bool:
        if self._messages.pop(message_id, None) is None:
            return False
        self._notify()
        return True

    def _belongs_to_account(self, message: Message) -> bool:
        if message.account_id is None or self._account_id is None:
            return True
        return message.account_id == self._account_id

    def _reconcile(self, existing: Message, incoming: Message) -> Message:
        """같은 ID의 두 레코드를 조정합니다."""
        # 더 오래된 레코드는 메타데이터를 덮어쓰지 않음
        base = existing if existing.is_newer_than(incoming) else incoming

        update = {"seen": existing.seen or incoming.seen}
        if not base.has_body():
            # 목록 조회 결과에는 본문이 없으므로 이전 상세 조회 결과를 보존
            detail = existing if existing.has_body() else incoming
            update.update(text=detail.text, html=detail.html)
        if not base.attachments and existing.attachments:
            update["attachments"] = existing.attachments

        return base.model_copy(update=update)

    def _notify(self) -> None:
        snapshot = self.messages
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                self.logger.error(f"메시지 캐시 구독자 알림 실패: {str(e)}")
