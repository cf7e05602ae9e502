"""
도메인 엔티티 정의

임시 메일함 세션 엔진의 핵심 개념을 나타내는 엔티티들을 정의합니다.
모든 엔티티는 Pydantic 모델을 기반으로 하며, 원격 메일함 API의
camelCase 필드명은 alias로 매핑됩니다.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """시간대 정보가 없는 시간을 UTC로 간주합니다."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionOrigin(str, Enum):
    """세션 생성 경로"""
    GENERATED = "generated"
    CUSTOM = "custom"
    LOGIN = "login"


class SessionState(str, Enum):
    """세션 상태"""
    UNINITIALIZED = "uninitialized"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"


class ApiModel(BaseModel):
    """원격 API 응답과 매핑되는 모델의 기본 클래스"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DomainInfo(ApiModel):
    """주소 생성에 사용할 수 있는 도메인"""

    id: str = Field(default="", description="도메인 ID")
    domain: str = Field(..., description="도메인 이름")
    is_active: bool = Field(default=True, alias="isActive", description="활성 여부")
    is_private: bool = Field(default=False, alias="isPrivate", description="비공개 여부")

    def is_available(self) -> bool:
        """공개 주소 생성에 사용할 수 있는지 확인"""
        return self.is_active and not self.is_private


class Account(ApiModel):
    """임시 메일 계정 엔티티"""

    id: str = Field(..., description="계정 고유 ID")
    address: str = Field(..., description="메일 주소")
    token: Optional[str] = Field(None, description="인증 토큰")
    password: Optional[str] = Field(None, description="계정 비밀번호")
    quota: int = Field(default=0, description="할당량 (바이트)")
    used: int = Field(default=0, description="사용량 (바이트)")
    is_disabled: bool = Field(default=False, alias="isDisabled", description="비활성화 여부")
    is_deleted: bool = Field(default=False, alias="isDeleted", description="삭제 여부")
    created_at: Optional[datetime] = Field(None, alias="createdAt", description="생성 시간")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt", description="수정 시간")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v):
        """메일 주소 형식 검증"""
        if "@" not in v:
            raise ValueError("유효한 메일 주소가 아닙니다")
        return v.lower()

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timezone(cls, v):
        return _as_utc(v)

    @property
    def username(self) -> str:
        return self.address.split("@", 1)[0]

    @property
    def domain(self) -> str:
        return self.address.split("@", 1)[1]

    def is_usable(self) -> bool:
        """세션으로 사용할 수 있는 계정인지 확인"""
        return not (self.is_disabled or self.is_deleted)


class EmailAddress(ApiModel):
    """발신자/수신자 주소"""

    address: str = Field(..., description="메일 주소")
    name: Optional[str] = Field(None, description="표시 이름")


class Attachment(ApiModel):
    """첨부파일 메타데이터 (원본 바이트는 포함하지 않음)"""

    id: str = Field(..., description="첨부파일 ID")
    filename: str = Field(default="", description="파일 이름")
    content_type: str = Field(default="application/octet-stream", alias="contentType", description="콘텐츠 타입")
    disposition: Optional[str] = Field(None, description="첨부 방식")
    size: int = Field(default=0, description="크기 (바이트)")
    download_url: str = Field(default="", alias="downloadUrl", description="다운로드 경로")


class Message(ApiModel):
    """메일 메시지 엔티티"""

    id: str = Field(..., description="메시지 ID")
    account_id: Optional[str] = Field(None, alias="accountId", description="계정 ID")
    sender: Optional[EmailAddress] = Field(None, alias="from", description="발신자")
    recipients: List[EmailAddress] = Field(default_factory=list, alias="to", description="수신자 목록")
    subject: str = Field(default="", description="메일 제목")
    intro: str = Field(default="", description="본문 미리보기")
    seen: bool = Field(default=False, description="읽음 여부")
    has_attachments: bool = Field(default=False, alias="hasAttachments", description="첨부파일 여부")
    size: int = Field(default=0, description="크기 (바이트)")
    created_at: Optional[datetime] = Field(None, alias="createdAt", description="수신 시간")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt", description="수정 시간")
    text: Optional[str] = Field(None, description="텍스트 본문")
    html: List[str] = Field(default_factory=list, description="HTML 본문 조각")
    attachments: List[Attachment] = Field(default_factory=list, description="첨부파일 목록")

    @field_validator("subject", "intro", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @field_validator("account_id", mode="before")
    @classmethod
    def strip_account_iri(cls, v):
        """'/accounts/{id}' 형태의 IRI를 계정 ID로 변환"""
        if isinstance(v, str) and "/" in v:
            return v.rstrip("/").rsplit("/", 1)[-1]
        return v

    @field_validator("html", mode="before")
    @classmethod
    def wrap_html(cls, v):
        """단일 문자열 HTML 본문을 목록으로 변환"""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timezone(cls, v):
        return _as_utc(v)

    def has_body(self) -> bool:
        """전체 본문이 조회되었는지 확인"""
        return self.text is not None or bool(self.html)

    def is_newer_than(self, other: "Message") -> bool:
        """다른 레코드보다 엄격하게 최신인지 확인"""
        if self.updated_at is None:
            return False
        if other.updated_at is None:
            return True
        return self.updated_at > other.updated_at

    def sort_key(self) -> tuple:
        created = self.created_at.timestamp() if self.created_at else 0.0
        return (created, self.id)


class SessionSnapshot(BaseModel):
    """세션 재개에 필요한 최소 상태

    메시지 본문과 첨부파일은 포함하지 않습니다.
    """

    model_config = ConfigDict(extra="ignore")

    address: Optional[str] = None
    token: Optional[str] = None
    account_id: Optional[str] = None
    password: Optional[str] = None
    quota: Optional[int] = None
    used: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    origin: Optional[SessionOrigin] = None

    @classmethod
    def empty(cls) -> "SessionSnapshot":
        return cls()

    @classmethod
    def from_account(
        cls,
        account: Account,
        token: str,
        origin: SessionOrigin,
        password: Optional[str] = None,
    ) -> "SessionSnapshot":
        return cls(
            address=account.address,
            token=token,
            account_id=account.id,
            password=password,
            quota=account.quota,
            used=account.used,
            created_at=account.created_at,
            updated_at=account.updated_at,
            origin=origin,
        )

    def is_empty(self) -> bool:
        return not any(value is not None for value in self.model_dump().values())

    def is_resumable(self) -> bool:
        """토큰 검증을 시도할 만큼 정보가 있는지 확인"""
        return bool(self.address and self.token and self.account_id)


class SessionView(BaseModel):
    """UI 계층이 관찰하는 세션 상태"""

    address: str = ""
    account_id: Optional[str] = None
    messages: List[Message] = Field(default_factory=list)
    loading: bool = False
    refreshing: bool = False
    quota: int = 0
    used: int = 0
    state: SessionState = SessionState.UNINITIALIZED
    origin: Optional[SessionOrigin] = None
    last_error: Optional[str] = None

    @property
    def unseen_count(self) -> int:
        return sum(1 for message in self.messages if not message.seen)
