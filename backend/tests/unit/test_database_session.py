"""
Unit tests for the request session lifecycle.

The session factory is patched, so no database is needed.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.infrastructure.db.database import after_commit, get_session


class _SessionContext:

    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc_info):
        return False


@pytest.fixture
def session():
    session = MagicMock()
    session.info = {}
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def db_manager(session):
    manager = MagicMock()
    manager.session_factory = MagicMock(return_value=_SessionContext(session))
    with patch("app.infrastructure.db.database.get_db_manager", return_value=manager):
        yield manager


class TestAfterCommit:

    @pytest.mark.asyncio
    async def test_callbacks_run_after_commit(self, db_manager, session):
        commits_seen = []
        sessions = get_session()
        yielded = await sessions.__anext__()
        after_commit(yielded, lambda: commits_seen.append(session.commit.await_count))

        with pytest.raises(StopAsyncIteration):
            await sessions.__anext__()

        assert commits_seen == [1]
        assert session.info == {}

    @pytest.mark.asyncio
    async def test_callbacks_dropped_on_rollback(self, db_manager, session):
        called = []
        sessions = get_session()
        yielded = await sessions.__anext__()
        after_commit(yielded, lambda: called.append(True))

        with pytest.raises(RuntimeError):
            await sessions.athrow(RuntimeError("handler failed"))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()
        assert called == []
