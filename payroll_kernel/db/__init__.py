"""Database layer: declarative base, engine/session management, immutability."""

from payroll_kernel.db.base import Base, DecimalString, TrackedBase, UUIDString
from payroll_kernel.db.engine import (
    create_engine_for_url,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from payroll_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)

__all__ = [
    "Base",
    "DecimalString",
    "TrackedBase",
    "UUIDString",
    "create_engine_for_url",
    "create_tables",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
    "register_immutability_listeners",
    "unregister_immutability_listeners",
]
