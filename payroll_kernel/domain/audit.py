"""Read-side audit trail shapes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID

T = TypeVar("T")


@dataclass(frozen=True)
class AuditEntryDTO:
    """One audit trail entry as seen by readers."""

    id: UUID
    seq: int
    payroll_record_id: UUID
    employee_id: int
    correction_id: UUID | None
    action: Any  # AuditAction; models import would cycle
    description: str
    user_id: int
    occurred_at: datetime
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    reason: str | None
    hash: str


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paged query."""

    items: tuple[T, ...]
    page: int
    page_size: int
    total: int

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total
