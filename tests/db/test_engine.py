"""Tests for the module-level engine lifecycle and session_scope."""

import pytest
from sqlalchemy import select

from payroll_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from payroll_kernel.models.sequence import SequenceCounter


@pytest.fixture
def initialized_engine():
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


def _counter_names() -> list[str]:
    session = get_session()
    try:
        return list(session.execute(select(SequenceCounter.name)).scalars())
    finally:
        session.close()


class TestEngineLifecycle:

    def test_uninitialized_engine_raises(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()

    def test_init_sets_module_engine(self, initialized_engine):
        assert get_engine() is initialized_engine
        assert initialized_engine.dialect.name == "sqlite"

    def test_reset_clears_engine(self, initialized_engine):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()


class TestSessionScope:

    def test_commits_on_success(self, initialized_engine):
        with session_scope() as session:
            session.add(SequenceCounter(name="payroll_batch", current_value=0))

        assert _counter_names() == ["payroll_batch"]

    def test_rolls_back_on_error(self, initialized_engine):
        with pytest.raises(RuntimeError, match="boom"):
            with session_scope() as session:
                session.add(SequenceCounter(name="payroll_batch", current_value=0))
                session.flush()
                raise RuntimeError("boom")

        assert _counter_names() == []
