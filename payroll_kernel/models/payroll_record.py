"""
Module: payroll_kernel.models.payroll_record
Responsibility: ORM persistence for one employee's payroll for one month.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - One record per (employee_id, year, month): UNIQUE constraint
      uq_payroll_record_period, backed by a service-level pre-check.
    - gross/net consistency is maintained by the services that write these
      columns; every write goes through PayrollSnapshot.recomputed() or
      PayrollCalculationResult.build().
    - ``version`` is the SQLAlchemy version counter: a stale UPDATE raises
      StaleDataError, translated by services to ConcurrentModificationError.

Failure modes:
    - IntegrityError on duplicate period INSERT.
    - ImmutabilityViolationError on DELETE (db/immutability.py).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, BigInteger, Date, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase


class PayrollRecord(TrackedBase):
    """
    Persisted payroll calculation for (employee_id, year, month).

    Contract:
        Created once with status ``calculated``; optionally moved to
        ``approved``; afterwards changed only by processing an approved
        error correction.

    Guarantees:
        - Monetary columns are exact Decimals.
        - Breakdown columns hold {name: decimal-string} JSON objects.
    """

    __tablename__ = "payroll_records"

    __table_args__ = (
        UniqueConstraint("employee_id", "year", "month", name="uq_payroll_record_period"),
        Index("idx_payroll_record_branch_period", "branch_id", "year", "month"),
        Index("idx_payroll_record_status", "status"),
    )

    employee_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    branch_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    organization_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_allowances: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    allowance_breakdown: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    deduction_breakdown: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    custom_calculations: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    calculation_errors: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    approved_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def snapshot(self):
        from payroll_kernel.domain.record import PayrollSnapshot

        return PayrollSnapshot(
            basic_salary=self.basic_salary,
            overtime_amount=self.overtime_amount,
            total_allowances=self.total_allowances,
            total_deductions=self.total_deductions,
            gross_salary=self.gross_salary,
            net_salary=self.net_salary,
            currency=self.currency,
            exchange_rate=self.exchange_rate,
            allowance_breakdown={k: Decimal(v) for k, v in self.allowance_breakdown.items()},
            deduction_breakdown={k: Decimal(v) for k, v in self.deduction_breakdown.items()},
        )

    def apply_snapshot(self, snapshot, updated_by_id: int) -> None:
        """Overwrite the monetary columns from a (balanced) snapshot."""
        data = snapshot.to_dict()
        self.basic_salary = snapshot.basic_salary
        self.overtime_amount = snapshot.overtime_amount
        self.total_allowances = snapshot.total_allowances
        self.total_deductions = snapshot.total_deductions
        self.gross_salary = snapshot.gross_salary
        self.net_salary = snapshot.net_salary
        # Reassign, never mutate: JSON columns track changes by identity
        self.allowance_breakdown = data["allowance_breakdown"]
        self.deduction_breakdown = data["deduction_breakdown"]
        self.updated_by_id = updated_by_id

    def to_dto(self):
        from payroll_kernel.domain.record import PayrollRecordDTO, PayrollRecordStatus

        return PayrollRecordDTO(
            id=self.id,
            employee_id=self.employee_id,
            branch_id=self.branch_id,
            year=self.year,
            month=self.month,
            period_start=self.period_start,
            period_end=self.period_end,
            status=PayrollRecordStatus(self.status),
            snapshot=self.snapshot(),
            custom_calculations={k: Decimal(v) for k, v in self.custom_calculations.items()},
            overtime_hours=self.overtime_hours,
            errors=tuple(self.calculation_errors),
            calculated_by=self.created_by_id,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            approval_notes=self.approval_notes,
            version=self.version,
        )

    @classmethod
    def from_result(
        cls,
        result,
        *,
        branch_id: int,
        organization_id: int,
        year: int,
        month: int,
        period_start: date,
        period_end: date,
        status: str,
        created_by_id: int,
    ) -> "PayrollRecord":
        return cls(
            employee_id=result.employee_id,
            branch_id=branch_id,
            organization_id=organization_id,
            year=year,
            month=month,
            period_start=period_start,
            period_end=period_end,
            basic_salary=result.basic_salary,
            overtime_hours=result.overtime_hours,
            overtime_amount=result.overtime_amount,
            total_allowances=result.total_allowances,
            total_deductions=result.total_deductions,
            gross_salary=result.gross_salary,
            net_salary=result.net_salary,
            currency=result.currency,
            exchange_rate=result.exchange_rate,
            allowance_breakdown={k: str(v) for k, v in result.allowance_breakdown.items()},
            deduction_breakdown={k: str(v) for k, v in result.deduction_breakdown.items()},
            custom_calculations={k: str(v) for k, v in result.custom_calculations.items()},
            calculation_errors=list(result.errors),
            status=status,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<PayrollRecord employee={self.employee_id} "
            f"{self.year}-{self.month:02d} net={self.net_salary} ({self.status})>"
        )
