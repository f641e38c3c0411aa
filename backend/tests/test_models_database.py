"""
Tests for geosync.models.database — engine construction, the get_db
session dependency, and the startup helpers.
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from geosync.config import Settings


def _begin_ctx(conn):
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=conn)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


# ═══════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════
class TestBuildEngine:
    def test_statement_timeout_from_settings(self):
        from geosync.models.database import build_engine

        cfg = Settings(_env_file=None, query_timeout_s=2.5)
        with patch("geosync.models.database.create_async_engine") as create:
            build_engine(cfg)

        url = create.call_args[0][0]
        kwargs = create.call_args[1]
        assert url == cfg.database_url
        assert kwargs["connect_args"]["timeout"] == 2.5
        assert kwargs["connect_args"]["server_settings"] == {"statement_timeout": "2500"}
        assert kwargs["pool_pre_ping"] is True

    def test_module_engine_uses_asyncpg(self):
        from geosync.models.database import engine
        assert engine.url.drivername == "postgresql+asyncpg"

    def test_features_table_registered(self):
        from geosync.models.database import Base
        import geosync.models.feature  # noqa: F401
        assert "features" in Base.metadata.tables

    def test_gist_index_declared(self):
        from geosync.models.feature import Feature
        indexes = {ix.name: ix for ix in Feature.__table__.indexes}
        assert indexes["idx_features_geom_gist"].dialect_options["postgresql"]["using"] == "gist"


# ═══════════════════════════════════════════════════════════════════
# get_db
# ═══════════════════════════════════════════════════════════════════
class TestGetDb:
    @pytest.mark.asyncio
    async def test_session_closed_without_commit(self):
        session = AsyncMock()
        with patch("geosync.models.database.async_session_factory", return_value=session):
            from geosync.models.database import get_db

            gen = get_db()
            assert await gen.__anext__() is session
            with pytest.raises(StopAsyncIteration):
                await gen.__anext__()

        session.close.assert_awaited_once()
        session.commit.assert_not_awaited()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [SQLAlchemyError("deadlock"), RuntimeError("bug")])
    async def test_error_rolls_back_and_propagates(self, error):
        session = AsyncMock()
        with patch("geosync.models.database.async_session_factory", return_value=session):
            from geosync.models.database import get_db

            gen = get_db()
            await gen.__anext__()
            with pytest.raises(type(error)):
                await gen.athrow(error)

        session.rollback.assert_awaited_once()
        session.close.assert_awaited_once()


# ═══════════════════════════════════════════════════════════════════
# Startup helpers
# ═══════════════════════════════════════════════════════════════════
class TestStartupHelpers:
    @pytest.mark.asyncio
    async def test_check_postgis_returns_version(self):
        result = MagicMock()
        result.scalar.return_value = "3.4 USE_GEOS=1 USE_PROJ=1"
        conn = AsyncMock()
        conn.execute.return_value = result

        with patch("geosync.models.database.engine") as mock_engine:
            mock_engine.begin.return_value = _begin_ctx(conn)
            from geosync.models.database import check_postgis
            version = await check_postgis()

        assert version.startswith("3.4")
        assert "PostGIS_Version" in str(conn.execute.call_args[0][0])

    @pytest.mark.asyncio
    async def test_init_models_runs_create_all(self):
        conn = MagicMock()
        conn.run_sync = AsyncMock()

        with patch("geosync.models.database.engine") as mock_engine:
            mock_engine.begin.return_value = _begin_ctx(conn)
            from geosync.models.database import init_models
            await init_models()

        from geosync.models.database import Base
        conn.run_sync.assert_awaited_once_with(Base.metadata.create_all)
