"""
설정 어댑터

pydantic-settings 기반 설정 클래스와 환경별 설정 선택 팩토리입니다.
"""

import os
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.ports import ConfigPort


class BaseConfig(BaseSettings, ConfigPort):
    """기본 설정 클래스"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # 환경 설정
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    # 세션 스냅샷 저장소
    database_url: str = Field(default="sqlite+aiosqlite:///./tempmail.db")
    session_namespace: str = Field(default="mail-storage")

    # 암호화 설정
    encryption_key: str = Field(...)
    persist_password: bool = Field(default=True)

    # 원격 메일함 API 설정
    mail_api_base_url: str = Field(default="https://api.mail.tm")
    mercure_hub_url: str = Field(default="https://mercure.mail.tm/.well-known/mercure")
    http_timeout_seconds: float = Field(default=30.0)

    # 동기화 설정
    poll_interval_seconds: float = Field(default=5.0)
    account_refresh_interval_seconds: float = Field(default=60.0)
    push_enabled: bool = Field(default=True)
    push_retry_base_delay_seconds: float = Field(default=5.0)
    push_retry_max_delay_seconds: float = Field(default=60.0)
    push_retry_max_attempts: int = Field(default=0)  # 0이면 무제한

    # 로깅 설정
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # 웹 서버 설정
    web_host: str = Field(default="0.0.0.0")
    web_port: int = Field(default=5000)
    web_workers: int = Field(default=1, description="1만 허용 (세션은 프로세스당 하나)")

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(cls, v):
        """암호화 키 검증"""
        if len(v) < 32:
            # 32바이트 미만이면 패딩
            v = v.ljust(32, '0')
        elif len(v) > 32:
            # 32바이트 초과면 자르기
            v = v[:32]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """로그 레벨 검증"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"로그 레벨은 {valid_levels} 중 하나여야 합니다")
        return v.upper()

    @field_validator("poll_interval_seconds")
    @classmethod
    def validate_poll_interval(cls, v):
        if v <= 0:
            raise ValueError("폴링 간격은 0보다 커야 합니다")
        return v

    @field_validator("push_retry_max_delay_seconds")
    @classmethod
    def validate_retry_delay(cls, v, info):
        base = info.data.get("push_retry_base_delay_seconds", 0)
        if v < base:
            raise ValueError("최대 재연결 지연은 기본 지연보다 작을 수 없습니다")
        return v

    @field_validator("web_workers")
    @classmethod
    def validate_web_workers(cls, v):
        """웹 워커 수 검증 (세션은 프로세스당 하나)"""
        if v != 1:
            raise ValueError("웹 워커 수는 1이어야 합니다")
        return v

    # ConfigPort 인터페이스 구현
    def get_environment(self) -> str:
        return self.environment

    def is_debug(self) -> bool:
        return self.debug

    def get_database_url(self) -> str:
        return self.database_url

    def get_encryption_key(self) -> str:
        return self.encryption_key

    def should_persist_password(self) -> bool:
        return self.persist_password

    def get_session_namespace(self) -> str:
        return self.session_namespace

    def get_mail_api_base_url(self) -> str:
        return self.mail_api_base_url.rstrip("/")

    def get_mercure_hub_url(self) -> str:
        return self.mercure_hub_url

    def get_http_timeout(self) -> float:
        return self.http_timeout_seconds

    def get_poll_interval_seconds(self) -> float:
        return self.poll_interval_seconds

    def get_account_refresh_interval_seconds(self) -> float:
        return self.account_refresh_interval_seconds

    def is_push_enabled(self) -> bool:
        return self.push_enabled

    def get_push_retry_config(self) -> dict:
        """푸시 재연결 설정 조회"""
        return {
            "base_delay": self.push_retry_base_delay_seconds,
            "max_delay": self.push_retry_max_delay_seconds,
            "max_attempts": self.push_retry_max_attempts,
        }

    def get_log_level(self) -> str:
        return self.log_level

    def get_log_format(self) -> str:
        return self.log_format

    def get_web_host(self) -> str:
        return self.web_host

    def get_web_port(self) -> int:
        return self.web_port

    def get_web_workers(self) -> int:
        return self.web_workers


class DevelopmentConfig(BaseConfig):
    """개발 환경 설정"""

    environment: str = "development"
    debug: bool = True
    log_level: str = "DEBUG"

    # 개발용 더미 값 (실제 사용 시 .env 파일에서 설정)
    encryption_key: str = Field(default="dev_encryption_key_32_bytes_long")


class ProductionConfig(BaseConfig):
    """운영 환경 설정"""

    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"

    @field_validator("encryption_key")
    @classmethod
    def validate_production_secrets(cls, v):
        """운영 환경에서는 실제 암호화 키가 필수"""
        if not v or v.startswith(("dev_", "test_")):
            raise ValueError("운영 환경에서는 실제 암호화 키가 필요합니다")
        return v


class TestingConfig(BaseConfig):
    """테스트 환경 설정"""

    environment: str = "testing"
    debug: bool = True
    log_level: str = "WARNING"

    database_url: str = Field(default="sqlite+aiosqlite:///:memory:")
    encryption_key: str = "test_encryption_key_32_bytes_long"
    push_enabled: bool = False
    poll_interval_seconds: float = 0.05
    account_refresh_interval_seconds: float = 0.0


class ConfigAdapter:
    """설정 어댑터 팩토리"""

    @staticmethod
    def create_config() -> ConfigPort:
        """환경에 따른 설정 객체를 생성합니다."""
        environment = os.getenv("ENVIRONMENT", "development").lower()

        if environment == "production":
            return ProductionConfig()
        elif environment == "testing":
            return TestingConfig()
        else:
            return DevelopmentConfig()


# 전역 설정 인스턴스
_config: Optional[ConfigPort] = None


def get_config() -> ConfigPort:
    """전역 설정 인스턴스를 반환합니다."""
    global _config
    if _config is None:
        _config = ConfigAdapter.create_config()
    return _config


def initialize_config() -> ConfigPort:
    """설정을 초기화합니다."""
    global _config
    _config = ConfigAdapter.create_config()
    return _config
