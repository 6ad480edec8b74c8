"""Utility modules for the payroll kernel."""

from payroll_kernel.utils.hashing import (
    canonicalize_json,
    hash_audit_entry,
    hash_payload,
    normalize_timestamp,
)

__all__ = [
    "canonicalize_json",
    "hash_audit_entry",
    "hash_payload",
    "normalize_timestamp",
]
