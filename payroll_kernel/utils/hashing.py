"""
Deterministic hashing utilities.

All hashing in the payroll kernel must be deterministic and reproducible.
This module provides the canonical hashing functions used by the audit trail.
"""

import hashlib
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def normalize_timestamp(value: datetime) -> str:
    """
    Render a timestamp identically whether or not the driver kept tzinfo.

    Aware values are converted to UTC first; the result never carries an
    offset.  SQLite hands back naive datetimes for timezone-aware columns.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # 3200 and 3200.00 hash the same
        return str(obj.normalize())
    if isinstance(obj, datetime):
        return normalize_timestamp(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    - Keys are sorted alphabetically
    - No whitespace
    - Consistent handling of Decimal, datetime, UUID and enums
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Compute the hex SHA-256 of a payload's canonical JSON."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_audit_entry(
    seq: int,
    action: str,
    payroll_record_id: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute the chained hash for an audit entry.

    The hash covers the sequence number, the action, the record, the payload
    hash and the previous entry's hash, creating a tamper-evident chain.
    """
    components = [
        str(seq),
        action,
        str(payroll_record_id),
        payload_hash,
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
