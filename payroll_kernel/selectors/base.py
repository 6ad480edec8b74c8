"""
Module: payroll_kernel.selectors.base
Responsibility: Base class for read-only query selectors over payroll data.
Architecture position: Kernel > Selectors.  May import from db/base.py,
    models/ and domain/ DTOs.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, flush, commit or delete.
    - Selectors return frozen DTOs, never ORM instances.
    - The caller owns the session and its transaction scope.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from payroll_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Base for all selectors.

    Non-goals:
        - Defines no queries; subclasses implement them.
    """

    def __init__(self, session: Session):
        self.session = session
