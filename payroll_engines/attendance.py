"""
Attendance summarization.

Turns raw attendance facts into the day counts and overtime hours a payroll
calculation reads.  Pure functions; the context builder supplies the
records.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from payroll_kernel.domain.calculation import ZERO, AttendanceRecord, AttendanceStatus

# date.weekday(): Saturday=5, Sunday=6
WEEKEND_DAYS: frozenset[int] = frozenset({5, 6})


@dataclass(frozen=True)
class AttendanceSummary:
    """Counts for one employee over one period."""

    working_days: int
    actual_working_days: int
    absent_days: int
    leave_days: int
    overtime_hours: Decimal


def count_working_days(start: date, end: date) -> int:
    """Calendar days in [start, end] that are not Saturday or Sunday."""
    days = 0
    current = start
    while current <= end:
        if current.weekday() not in WEEKEND_DAYS:
            days += 1
        current += timedelta(days=1)
    return days


def summarize_attendance(
    records: Iterable[AttendanceRecord],
    start: date,
    end: date,
) -> AttendanceSummary:
    """
    Count attendance by status within [start, end].

    Only PRESENT counts as worked.  LATE, HALF_DAY and ON_BREAK count toward
    none of worked, absent or leave.  Records outside the range are ignored.
    """
    present = absent = leave = 0
    overtime = ZERO
    for record in records:
        if not start <= record.date <= end:
            continue
        status = AttendanceStatus(record.status)
        if status is AttendanceStatus.PRESENT:
            present += 1
        elif status is AttendanceStatus.ABSENT:
            absent += 1
        elif status is AttendanceStatus.ON_LEAVE:
            leave += 1
        overtime += record.overtime_duration

    return AttendanceSummary(
        working_days=count_working_days(start, end),
        actual_working_days=present,
        absent_days=absent,
        leave_days=leave,
        overtime_hours=overtime,
    )
