"""
FastAPI 웹 서버

임시 메일함 세션 엔진을 위한 HTTP 인터페이스를 제공합니다.
"""

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.domain.errors import MailEngineError
from adapters.web.session_routes import router as session_router
from adapters.factory import initialize_adapter_factory
from adapters.logger import create_logger
from config.adapters import get_config

# FastAPI 앱 생성
app = FastAPI(
    title="임시 메일함 세션 서비스",
    description="임시 메일 주소 생성, 로그인, 받은편지함 동기화를 위한 API",
    version="1.0.0",
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 프로덕션에서는 특정 도메인만 허용
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 로거 설정
logger = create_logger("web_server")

# 라우터 등록
app.include_router(session_router)


@app.on_event("startup")
async def startup_event():
    """서버 시작 시 실행되는 이벤트"""
    logger.info("FastAPI 웹 서버 시작")

    config = get_config()
    factory = initialize_adapter_factory(config)
    manager = factory.create_session_manager()

    app.state.factory = factory
    app.state.session_manager = manager

    logger.info(f"환경: {config.get_environment()}")
    logger.info(f"메일 API: {config.get_mail_api_base_url()}")

    # 저장된 세션 재개 또는 새 주소 생성
    try:
        view = await manager.initialize()
    except MailEngineError as e:
        logger.error(f"세션 초기화 실패, POST /session/generate로 재시도 가능: {str(e)}")
        return
    logger.info(f"웹 서버 준비 완료: {view.address or '세션 없음'}")


@app.on_event("shutdown")
async def shutdown_event():
    """서버 종료 시 실행되는 이벤트"""
    logger.info("FastAPI 웹 서버 종료")

    factory = getattr(app.state, "factory", None)
    if factory is not None:
        await factory.close()
    app.state.session_manager = None


if __name__ == "__main__":
    # 설정 로드
    config = get_config()

    # 서버 실행 (reload 모드에서는 단일 워커)
    uvicorn.run(
        "web_server:app",
        host=config.get_web_host(),
        port=config.get_web_port(),
        reload=config.is_debug(),
        workers=None if config.is_debug() else config.get_web_workers(),
        log_level=config.get_log_level().lower(),
    )
