"""
SQLAlchemy 데이터베이스 모델

세션 스냅샷을 저장하는 테이블 모델을 정의합니다.
스냅샷은 네임스페이스별 단일 레코드이며, 본문은 JSON 문자열로 저장합니다.
"""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class SessionSnapshotModel(Base):
    """세션 스냅샷 테이블 모델"""

    __tablename__ = "session_snapshots"

    namespace = Column(String(100), primary_key=True)
    payload = Column(Text, nullable=False)  # 토큰/비밀번호는 암호화된 값
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
