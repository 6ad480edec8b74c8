"""
Payroll formula definitions.

A formula is a named, typed rule.  Its declared ``formula_type`` alone
decides where its value lands in a calculation result; the sign of the value
never does.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FormulaType(str, Enum):
    """Closed set of formula kinds."""

    ALLOWANCE = "allowance"
    DEDUCTION = "deduction"
    TAX = "tax"
    CUSTOM = "custom"


@dataclass(frozen=True)
class PayrollFormula:
    """
    One configured payroll rule.

    Lower ``priority`` evaluates first.  Scope fields left as ``None`` match
    every employee.
    """

    name: str
    formula_type: FormulaType
    expression: str
    priority: int = 100
    is_active: bool = True
    organization_id: int | None = None
    branch_id: int | None = None
    department: str | None = None
    designation: str | None = None
    description: str = ""

    def applies_to(
        self,
        *,
        organization_id: int,
        branch_id: int,
        department: str | None,
        designation: str | None,
    ) -> bool:
        if self.organization_id is not None and self.organization_id != organization_id:
            return False
        if self.branch_id is not None and self.branch_id != branch_id:
            return False
        if self.department and (department or "").casefold() != self.department.casefold():
            return False
        if self.designation and (designation or "").casefold() != self.designation.casefold():
            return False
        return True
