"""
FastAPI 세션 라우터

AccountSessionManager의 작업을 HTTP API로 노출합니다.
세션 관리자는 앱 시작 시 생성되어 app.state에 보관됩니다.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from core.domain.entities import DomainInfo, Message, SessionView
from core.domain.errors import (
    AccountCreationError,
    AddressTakenError,
    AuthenticationError,
    MailboxApiError,
    MailEngineError,
    NetworkError,
    SessionExpiredError,
    ValidationError,
)
from core.usecases.account_session import AccountSessionManager
from adapters.logger import create_logger

router = APIRouter(prefix="/session", tags=["session"])
logger = create_logger("session_router")


class CustomEmailRequest(BaseModel):
    """사용자 지정 주소 생성 요청"""
    username: str = Field(..., description="주소의 사용자 이름 부분")
    domain: str = Field(..., description="도메인")
    password: str = Field(..., description="비밀번호 (8자 이상)")


class LoginRequest(BaseModel):
    """로그인 요청"""
    address: str = Field(..., description="메일 주소")
    password: str = Field(..., description="비밀번호")


class SeenResponse(BaseModel):
    message_id: str
    changed: bool


def get_session_manager(request: Request) -> AccountSessionManager:
    """앱 상태에 보관된 세션 관리자를 반환합니다."""
    manager = getattr(request.app.state, "session_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="세션 엔진이 초기화되지 않았습니다")
    return manager


def _to_http_error(error: MailEngineError) -> HTTPException:
    """엔진 오류를 HTTP 상태 코드로 변환합니다."""
    if isinstance(error, ValidationError):
        status_code = 400
    elif isinstance(error, (AuthenticationError, SessionExpiredError)):
        status_code = 401
    elif isinstance(error, AddressTakenError):
        status_code = 409
    elif isinstance(error, (AccountCreationError, NetworkError, MailboxApiError)):
        status_code = 502
    else:
        status_code = 500

    logger.warning(f"세션 요청 실패: {type(error).__name__}: {str(error)}")
    return HTTPException(status_code=status_code, detail=str(error))


@router.get("", response_model=SessionView)
async def get_session(manager: AccountSessionManager = Depends(get_session_manager)):
    """현재 세션 상태를 조회합니다."""
    return manager.view()


@router.post("/generate", response_model=SessionView)
async def generate_email(manager: AccountSessionManager = Depends(get_session_manager)):
    """새 임시 주소를 생성합니다."""
    try:
        return await manager.generate_new_email()
    except MailEngineError as e:
        raise _to_http_error(e)


@router.post("/custom", response_model=SessionView)
async def create_custom_email(
    body: CustomEmailRequest,
    manager: AccountSessionManager = Depends(get_session_manager),
):
    """사용자 지정 주소로 계정을 생성합니다."""
    try:
        return await manager.create_custom_email(body.username, body.domain, body.password)
    except MailEngineError as e:
        raise _to_http_error(e)


@router.post("/login", response_model=SessionView)
async def login(
    body: LoginRequest,
    manager: AccountSessionManager = Depends(get_session_manager),
):
    """기존 계정으로 로그인합니다."""
    try:
        return await manager.login_with_credentials(body.address, body.password)
    except MailEngineError as e:
        raise _to_http_error(e)


@router.delete("", response_model=SessionView)
async def delete_account(manager: AccountSessionManager = Depends(get_session_manager)):
    """현재 계정을 삭제하고 새 임시 주소를 생성합니다."""
    try:
        return await manager.delete_account()
    except MailEngineError as e:
        raise _to_http_error(e)


@router.post("/refresh", response_model=SessionView)
async def refresh_inbox(manager: AccountSessionManager = Depends(get_session_manager)):
    """받은편지함을 새로고침합니다."""
    try:
        return await manager.refresh_inbox()
    except MailEngineError as e:
        raise _to_http_error(e)


@router.get("/messages/{message_id}", response_model=Message)
async def get_message(
    message_id: str,
    manager: AccountSessionManager = Depends(get_session_manager),
):
    """메시지 전체 본문을 조회합니다."""
    try:
        message = await manager.get_message(message_id)
    except MailEngineError as e:
        raise _to_http_error(e)

    if message is None:
        raise HTTPException(status_code=404, detail="메시지를 찾을 수 없습니다")
    return message


@router.post("/messages/{message_id}/seen", response_model=SeenResponse)
async def mark_seen(
    message_id: str,
    manager: AccountSessionManager = Depends(get_session_manager),
):
    """메시지를 읽음으로 표시합니다."""
    try:
        changed = await manager.mark_seen(message_id)
    except MailEngineError as e:
        raise _to_http_error(e)
    return SeenResponse(message_id=message_id, changed=changed)


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: str,
    manager: AccountSessionManager = Depends(get_session_manager),
):
    """메시지를 삭제합니다."""
    try:
        await manager.delete_message(message_id)
    except MailEngineError as e:
        raise _to_http_error(e)


@router.get("/domains", response_model=List[DomainInfo])
async def list_domains(manager: AccountSessionManager = Depends(get_session_manager)):
    """사용 가능한 도메인 목록을 조회합니다."""
    try:
        return await manager.list_domains()
    except MailEngineError as e:
        raise _to_http_error(e)
