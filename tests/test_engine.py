"""
Tests for engine construction and session_scope.

Verifies:
- create_engine_for_url builds a usable engine for the configured backend
- init_engine_from_url installs the module-level engine and factory
- session_scope commits on success and rolls back on error
"""

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from dreistrom_kernel.db.engine import (
    create_engine_for_url,
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)
from dreistrom_kernel.models.sequence import InvoiceSequenceCounter


@pytest.fixture
def standalone_engine(database_url):
    engine = create_engine_for_url(database_url, lock_timeout_ms=250)
    drop_tables(engine)
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


class TestCreateEngineForUrl:

    def test_round_trip(self, standalone_engine):
        factory = sessionmaker(bind=standalone_engine, expire_on_commit=False)

        with session_scope(factory) as session:
            session.add(InvoiceSequenceCounter(stream="FREIBERUF", fiscal_year=2026, last_value=7))

        with session_scope(factory) as session:
            stored = session.execute(select(InvoiceSequenceCounter.last_value)).scalar_one()
        assert stored == 7

    def test_rollback_on_error(self, standalone_engine):
        factory = sessionmaker(bind=standalone_engine, expire_on_commit=False)

        with pytest.raises(RuntimeError):
            with session_scope(factory) as session:
                session.add(InvoiceSequenceCounter(stream="GEWERBE", fiscal_year=2026, last_value=3))
                session.flush()
                raise RuntimeError("abort")

        with session_scope(factory) as session:
            assert session.execute(select(InvoiceSequenceCounter)).first() is None

    def test_backend_detection(self, standalone_engine, database_url):
        assert is_postgres(standalone_engine) == database_url.startswith("postgresql")


class TestInitEngine:

    def test_installs_module_engine(self, database_url):
        engine = init_engine_from_url(database_url, lock_timeout_ms=250)
        try:
            assert get_engine() is engine
            assert get_session_factory().kw["bind"] is engine
        finally:
            reset_engine()

    def test_uninitialized_engine_raises(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
