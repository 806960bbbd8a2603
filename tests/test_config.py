"""
Tests for settings, engine configuration and structured logging.
"""

import json
import logging
import sys

from shared.config.logging import DevelopmentFormatter, StructuredFormatter, get_logger
from shared.config.settings import Settings
from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    get_operation_id,
    operation_scope,
)
from shared.infrastructure.db import _engine_kwargs


def make_record(msg="Entity saved", level=logging.INFO, exc_info=None, **data):
    record = logging.LogRecord("data_core.repository", level, __file__, 10, msg, (), exc_info)
    record.extra_data = data or None
    return record


class TestSettings:
    def test_defaults_point_at_sqlite(self):
        config = Settings()

        assert config.is_sqlite
        assert config.validate_production_settings() == []

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("DATA_CORE_DATABASE_URL", "postgresql+psycopg://db/core")
        monkeypatch.setenv("DATA_CORE_DB_POOL_SIZE", "4")

        config = Settings()

        assert config.database_url == "postgresql+psycopg://db/core"
        assert config.db_pool_size == 4
        assert not config.is_sqlite

    def test_production_rejects_development_values(self):
        config = Settings(environment="production", debug=True, sql_echo=True)

        errors = config.validate_production_settings()

        assert len(errors) == 3

    def test_production_with_server_store_passes(self):
        config = Settings(
            environment="production",
            debug=False,
            database_url="postgresql+psycopg://db/core",
        )

        assert config.validate_production_settings() == []


class TestEngineKwargs:
    def test_sqlite_skips_pool_settings(self):
        kwargs = _engine_kwargs(Settings(database_url="sqlite+aiosqlite:///:memory:"))

        assert "pool_size" not in kwargs
        assert kwargs["pool_pre_ping"] is True

    def test_server_store_gets_pool_settings(self):
        config = Settings(database_url="postgresql+psycopg://db/core", db_pool_size=1, db_pool_recycle=60)

        kwargs = _engine_kwargs(config)

        assert kwargs["pool_size"] == 1
        assert kwargs["pool_recycle"] == 60
        assert kwargs["max_overflow"] == config.db_max_overflow


class TestStructuredLogger:
    def test_keyword_arguments_become_extra_data(self, caplog):
        logger = get_logger("data_core.test_config")

        logger.warning("Sort key rejected", entity="Clinic", key="nickname")

        (record,) = [r for r in caplog.records if r.name == "data_core.test_config"]
        assert record.extra_data == {"entity": "Clinic", "key": "nickname"}

    def test_error_keeps_exception_info(self, caplog):
        logger = get_logger("data_core.test_config")

        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("Save failed", exc_info=True, entity_id=3)

        (record,) = [r for r in caplog.records if r.name == "data_core.test_config"]
        assert record.exc_info[0] is ValueError
        assert record.extra_data == {"entity_id": 3}


class TestFormatters:
    def test_json_output_carries_operation_id_and_data(self):
        record = make_record(entity_type="Patient")
        with operation_scope("op-123"):
            CorrelationIdFilter().filter(record)

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["operation_id"] == "op-123"
        assert payload["data"] == {"entity_type": "Patient"}
        assert payload["level"] == "INFO"
        assert payload["message"] == "Entity saved"

    def test_json_output_without_operation(self):
        record = make_record()
        CorrelationIdFilter().filter(record)

        payload = json.loads(StructuredFormatter().format(record))

        assert "operation_id" not in payload
        assert "data" not in payload

    def test_json_output_includes_exception(self):
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            record = make_record("Flush failed", level=logging.ERROR, exc_info=sys.exc_info())

        payload = json.loads(StructuredFormatter().format(record))

        assert "RuntimeError: disk full" in payload["exception"]

    def test_development_output_lists_fields(self):
        record = make_record(layer="GenericRepository", method="get_all")
        CorrelationIdFilter().filter(record)

        line = DevelopmentFormatter().format(record)

        assert "layer=GenericRepository" in line
        assert "method=get_all" in line
        assert "Entity saved" in line


class TestOperationScope:
    def test_scope_sets_and_restores(self):
        assert get_operation_id() == ""

        with operation_scope() as outer:
            assert get_operation_id() == outer
            with operation_scope("inner") as inner:
                assert get_operation_id() == inner == "inner"
            assert get_operation_id() == outer

        assert get_operation_id() == ""


class TestSetupLogging:
    def test_development_uses_readable_formatter(self, monkeypatch):
        from shared.config import logging as logging_config

        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        monkeypatch.setattr(logging_config.settings, "environment", "development")
        try:
            logging_config.setup_logging()

            (handler,) = root.handlers
            assert isinstance(handler.formatter, DevelopmentFormatter)
            assert any(isinstance(f, CorrelationIdFilter) for f in handler.filters)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_production_uses_json_formatter(self, monkeypatch):
        from shared.config import logging as logging_config

        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        monkeypatch.setattr(logging_config.settings, "environment", "production")
        try:
            logging_config.setup_logging()

            (handler,) = root.handlers
            assert isinstance(handler.formatter, StructuredFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestCallerContext:
    def test_system_caller(self):
        from data_core.services import SYSTEM_CALLER, CallerContext

        assert SYSTEM_CALLER.is_system
        assert not CallerContext(tenant_id=1, actor_id=100, role_id=2).is_system
