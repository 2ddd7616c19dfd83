"""Tests for the engine options picked from the database URL."""

from sqlalchemy.pool import StaticPool

from civicmap.database import config


class TestEngineOptions:
    def test_postgres_gets_sized_checked_pool(self) -> None:
        options = config.engine_options("postgresql+asyncpg://u:p@db:5432/civic_issue_map")
        assert options["pool_pre_ping"] is True
        assert options["pool_size"] == config.DB_POOL_SIZE
        assert options["max_overflow"] == config.DB_MAX_OVERFLOW
        assert "poolclass" not in options

    def test_in_memory_sqlite_shares_one_connection(self) -> None:
        for url in ("sqlite://", "sqlite+aiosqlite://", "sqlite:///:memory:"):
            options = config.engine_options(url)
            assert options["poolclass"] is StaticPool
            assert options["connect_args"] == {"check_same_thread": False}

    def test_file_sqlite_keeps_default_pool(self) -> None:
        options = config.engine_options("sqlite+aiosqlite:///./civic.db")
        assert "poolclass" not in options
        assert "pool_size" not in options

    def test_module_engines_built_from_environment(self) -> None:
        # the test run points both URLs at in-memory SQLite
        assert isinstance(config.engine.pool, StaticPool)
        assert isinstance(config.sync_engine.pool, StaticPool)
