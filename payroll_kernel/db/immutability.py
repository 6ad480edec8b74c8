"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The payroll audit trail must be append-only, and a correction that reached a
terminal state (processed, rejected, cancelled) is a closed record of what
was decided.  SQLAlchemy fires events before UPDATE/DELETE operations reach
the database; the listeners registered here check those rules and abort the
flush:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                  | When Immutable                  | Why
------------------------|---------------------------------|----------------------------
PayrollAuditEntry       | ALWAYS (from creation)          | Audit trail is append-only
PayrollErrorCorrection  | After a terminal status flushed | Decisions are final
PayrollRecord           | Never deleted                   | Records are corrected, not removed

===============================================================================
USAGE
===============================================================================

    from payroll_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from payroll_kernel.exceptions import ImmutabilityViolationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Audit metadata that may change without touching decided content
_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type, entity_id=entity_id, reason=reason
    )


def _check_audit_entry_immutability(mapper, connection, target):
    """Prevent any updates to PayrollAuditEntry rows."""
    raise _blocked(
        "PayrollAuditEntry",
        str(target.id),
        "UPDATE",
        "Audit entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    """Prevent deletion of PayrollAuditEntry rows."""
    raise _blocked(
        "PayrollAuditEntry",
        str(target.id),
        "DELETE",
        "Audit entries cannot be deleted",
    )


def _check_correction_immutability(mapper, connection, target):
    """
    Prevent updates to a correction whose stored status is terminal.

    The transition INTO a terminal status is allowed; anything after it is not.
    """
    from payroll_kernel.domain.correction import (
        TERMINAL_CORRECTION_STATUSES,
        CorrectionStatus,
    )

    status_history = get_history(target, "status")
    if status_history.deleted:
        stored_status = status_history.deleted[0]
    elif status_history.unchanged:
        stored_status = status_history.unchanged[0]
    else:
        return

    stored_status = CorrectionStatus(stored_status)
    if stored_status not in TERMINAL_CORRECTION_STATUSES:
        return

    changed = {
        attr.key
        for attr in mapper.column_attrs
        if attr.key not in _METADATA_FIELDS and get_history(target, attr.key).has_changes()
    }
    # The version counter is bumped by the mapper itself.
    changed.discard("version")
    if not changed:
        return

    raise _blocked(
        "PayrollErrorCorrection",
        str(target.id),
        "UPDATE",
        f"Correction is {stored_status.value} and cannot be modified "
        f"(fields: {', '.join(sorted(changed))})",
    )


def _check_correction_delete(mapper, connection, target):
    """Corrections are part of the record's history and are never deleted."""
    raise _blocked(
        "PayrollErrorCorrection",
        str(target.id),
        "DELETE",
        "Error corrections cannot be deleted",
    )


def _check_payroll_record_delete(mapper, connection, target):
    """Payroll records are mutated only through corrections, never deleted."""
    raise _blocked(
        "PayrollRecord",
        str(target.id),
        "DELETE",
        "Payroll records cannot be deleted",
    )


def _listeners():
    from payroll_kernel.models.audit_trail import PayrollAuditEntry
    from payroll_kernel.models.error_correction import PayrollErrorCorrection
    from payroll_kernel.models.payroll_record import PayrollRecord

    return [
        (PayrollAuditEntry, "before_update", _check_audit_entry_immutability),
        (PayrollAuditEntry, "before_delete", _check_audit_entry_delete),
        (PayrollErrorCorrection, "before_update", _check_correction_immutability),
        (PayrollErrorCorrection, "before_delete", _check_correction_delete),
        (PayrollRecord, "before_delete", _check_payroll_record_delete),
    ]


def register_immutability_listeners():
    """Register all immutability enforcement event listeners (idempotent)."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate immutability
    rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
