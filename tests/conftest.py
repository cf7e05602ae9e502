"""
pytest 공용 fixture

가짜 포트 구현으로 세션 엔진 구성요소를 조립합니다.
"""

import os

os.environ.setdefault("ENVIRONMENT", "testing")

import pytest
import pytest_asyncio

from core.usecases.account_session import AccountSessionManager
from core.usecases.auth_token_store import AuthTokenStore
from core.usecases.inbox_sync import InboxSynchronizer
from core.usecases.message_cache import MessageCache
from core.usecases.recovery import ReconnectPolicy
from tests.fakes import FakeMailboxClient, FakeSessionStore, FakeSubscription, RecordingLogger


@pytest.fixture
def logger():
    return RecordingLogger()


@pytest.fixture
def mailbox():
    return FakeMailboxClient()


@pytest.fixture
def store():
    return FakeSessionStore()


@pytest.fixture
def subscription():
    return FakeSubscription()


@pytest.fixture
def token_store():
    return AuthTokenStore()


@pytest.fixture
def cache(logger):
    return MessageCache(logger)


@pytest_asyncio.fixture
async def synchronizer(mailbox, subscription, token_store, cache, logger):
    sync = InboxSynchronizer(
        mailbox_client=mailbox,
        subscription=subscription,
        token_store=token_store,
        message_cache=cache,
        logger=logger,
        poll_interval=3600,
        push_enabled=False,
        reconnect_policy=ReconnectPolicy(base_delay=0.01, max_delay=0.02),
    )
    yield sync
    await sync.stop()


@pytest_asyncio.fixture
async def manager(mailbox, store, synchronizer, token_store, cache, logger):
    session_manager = AccountSessionManager(
        mailbox_client=mailbox,
        session_store=store,
        synchronizer=synchronizer,
        token_store=token_store,
        message_cache=cache,
        logger=logger,
        account_refresh_interval=0,
    )
    yield session_manager
    await session_manager.close()
