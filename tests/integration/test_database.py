"""Engine and session lifecycle."""

import pytest
from sqlalchemy import text

from wakawars.database import close_db, get_engine, get_session, get_session_factory, init_db


class TestDatabaseLifecycle:
    @pytest.mark.asyncio
    async def test_init_session_close(self, tmp_path):
        await init_db(f"sqlite+aiosqlite:///{tmp_path / 'lifecycle.db'}")
        try:
            assert get_engine().dialect.name == "sqlite"
            assert get_session_factory() is not None
            async for session in get_session():
                result = await session.execute(text("SELECT 1"))
                assert result.scalar_one() == 1
        finally:
            await close_db()

        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session_factory()
