"""Tests for AuditSelector paging and filtering."""

from datetime import UTC, datetime

import pytest

from payroll_kernel.domain.calculation import PayrollCalculationRequest
from payroll_kernel.models.audit_trail import AuditAction
from payroll_kernel.selectors.audit_selector import MAX_PAGE_SIZE, AuditSelector

ACTOR_ID = 100
APPROVER_ID = 200


@pytest.fixture
def populated(session, record_service, deterministic_clock):
    """Three monthly records for employee 7, the first one approved later."""
    records = []
    for month in (1, 2, 3):
        records.append(
            record_service.create_record(
                PayrollCalculationRequest.for_month(7, 2025, month), ACTOR_ID
            )
        )
        deterministic_clock.advance(60)
    record_service.approve_record(records[0].id, APPROVER_ID)
    return records


@pytest.fixture
def selector(session):
    return AuditSelector(session)


class TestQuery:

    def test_newest_first(self, selector, populated):
        page = selector.query()

        assert page.total == 4
        assert page.items[0].action is AuditAction.RECORD_APPROVED
        seqs = [e.seq for e in page.items]
        assert seqs == sorted(seqs, reverse=True)

    def test_filter_by_record(self, selector, populated):
        page = selector.query(payroll_record_id=populated[0].id)

        assert page.total == 2
        assert {e.action for e in page.items} == {
            AuditAction.RECORD_CALCULATED,
            AuditAction.RECORD_APPROVED,
        }

    def test_filter_by_action_string(self, selector, populated):
        page = selector.query(action="record_calculated")
        assert page.total == 3

    def test_filter_by_employee(self, selector, populated):
        assert selector.query(employee_id=7).total == 4
        assert selector.query(employee_id=8).total == 0

    def test_filter_by_time(self, selector, populated):
        start = datetime(2025, 1, 31, 12, 1, tzinfo=UTC)
        end = datetime(2025, 1, 31, 12, 1, 30, tzinfo=UTC)
        page = selector.query(start=start, end=end)

        assert page.total == 1
        assert page.items[0].payroll_record_id == populated[1].id

    def test_paging(self, selector, populated):
        first = selector.query(page=1, page_size=3)
        second = selector.query(page=2, page_size=3)

        assert len(first.items) == 3
        assert first.has_next
        assert len(second.items) == 1
        assert not second.has_next
        assert {e.id for e in first.items}.isdisjoint(e.id for e in second.items)

    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0), (1, MAX_PAGE_SIZE + 1)])
    def test_invalid_paging(self, selector, page, page_size):
        with pytest.raises(ValueError):
            selector.query(page=page, page_size=page_size)


class TestForRecord:

    def test_history_oldest_first(self, selector, populated):
        history = selector.for_record(str(populated[0].id))

        assert [e.action for e in history] == [
            AuditAction.RECORD_CALCULATED,
            AuditAction.RECORD_APPROVED,
        ]
        assert history[0].user_id == ACTOR_ID
        assert history[1].user_id == APPROVER_ID

    def test_unknown_record_has_no_history(self, selector, populated):
        from uuid import uuid4

        assert selector.for_record(uuid4()) == []
