"""
세션 스냅샷 Repository 어댑터

Core 레이어의 SessionStorePort를 구현하는 SQLAlchemy 기반 어댑터입니다.
재시작 후 세션을 재개하는 데 필요한 최소 상태만 저장하며,
어떤 경우에도 예외를 던지지 않습니다.
"""

import json
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select

from core.domain.entities import SessionSnapshot
from core.domain.ports import EncryptionServicePort, LoggerPort, SessionStorePort
from adapters.external.encryption_service import DecryptionError
from .database import DatabaseAdapter
from .models import SessionSnapshotModel


SECRET_FIELDS = ("token", "password")


class SessionSnapshotRepositoryAdapter(SessionStorePort):
    """세션 스냅샷 Repository 어댑터"""

    def __init__(
        self,
        database: DatabaseAdapter,
        encryption_service: EncryptionServicePort,
        logger: LoggerPort,
        namespace: str = "mail-storage",
        persist_password: bool = True,
    ):
        self.database = database
        self.encryption_service = encryption_service
        self.logger = logger
        self.namespace = namespace
        self.persist_password = persist_password
        self._schema_ready = False

    async def _ensure_schema(self) -> None:
        if not self.database.is_initialized:
            await self.database.initialize()
        if not self._schema_ready:
            await self.database.create_tables()
            self._schema_ready = True

    async def load(self) -> SessionSnapshot:
        """저장된 스냅샷을 조회합니다. 없거나 손상되었으면 빈 스냅샷을 반환합니다."""
        try:
            await self._ensure_schema()
            async with self.database.get_session() as session:
                stmt = select(SessionSnapshotModel).where(SessionSnapshotModel.namespace == self.namespace)
                result = await session.execute(stmt)
                model = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError, RuntimeError) as e:
            self.logger.error(f"세션 스냅샷 조회 실패: {self.namespace}, 오류: {str(e)}")
            return SessionSnapshot.empty()

        if model is None:
            self.logger.debug(f"저장된 세션 스냅샷 없음: {self.namespace}")
            return SessionSnapshot.empty()

        return await self._decode(model.payload)

    async def save(self, snapshot: SessionSnapshot) -> bool:
        """스냅샷을 저장합니다."""
        try:
            payload = await self._encode(snapshot)
            await self._ensure_schema()
            async with self.database.get_session() as session:
                stmt = select(SessionSnapshotModel).where(SessionSnapshotModel.namespace == self.namespace)
                result = await session.execute(stmt)
                model = result.scalar_one_or_none()

                if model:
                    model.payload = payload
                else:
                    session.add(SessionSnapshotModel(namespace=self.namespace, payload=payload))

                await session.commit()
        except (SQLAlchemyError, OSError, RuntimeError, TypeError, ValueError) as e:
            self.logger.error(f"세션 스냅샷 저장 실패: {self.namespace}, 오류: {str(e)}")
            return False

        self.logger.debug(f"세션 스냅샷 저장 성공: {self.namespace}")
        return True

    async def clear(self) -> bool:
        """스냅샷을 삭제합니다."""
        try:
            await self._ensure_schema()
            async with self.database.get_session() as session:
                stmt = delete(SessionSnapshotModel).where(SessionSnapshotModel.namespace == self.namespace)
                await session.execute(stmt)
                await session.commit()
        except (SQLAlchemyError, OSError, RuntimeError) as e:
            self.logger.error(f"세션 스냅샷 삭제 실패: {self.namespace}, 오류: {str(e)}")
            return False

        self.logger.debug(f"세션 스냅샷 삭제 성공: {self.namespace}")
        return True

    async def _encode(self, snapshot: SessionSnapshot) -> str:
        data = snapshot.model_dump(mode="json", exclude_none=True)
        if not self.persist_password:
            data.pop("password", None)

        for field in SECRET_FIELDS:
            if data.get(field):
                data[field] = await self.encryption_service.encrypt(data[field])

        return json.dumps(data, ensure_ascii=False)

    async def _decode(self, payload: str) -> SessionSnapshot:
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, TypeError) as e:
            self.logger.warning(f"세션 스냅샷 파싱 실패: {str(e)}")
            return SessionSnapshot.empty()

        if not isinstance(data, dict):
            self.logger.warning("세션 스냅샷 형식 오류")
            return SessionSnapshot.empty()

        for field in SECRET_FIELDS:
            data[field] = await self._decrypt_field(data.get(field), field)

        try:
            return SessionSnapshot.model_validate(data)
        except PydanticValidationError as e:
            self.logger.warning(f"세션 스냅샷 검증 실패: {str(e)}")
            return SessionSnapshot.empty()

    async def _decrypt_field(self, value, field: str) -> Optional[str]:
        """복호화할 수 없는 필드는 없는 값으로 취급합니다."""
        if not value or not isinstance(value, str):
            return None
        try:
            return await self.encryption_service.decrypt(value)
        except DecryptionError:
            self.logger.warning(f"세션 스냅샷 필드 복호화 실패: {field}")
            return None
