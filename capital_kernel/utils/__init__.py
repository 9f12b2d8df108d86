"""Utility modules for the capital kernel."""

from capital_kernel.utils.hashing import canonicalize_json, hash_payload
from capital_kernel.utils.timestamps import to_utc, truncate_to_second

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "to_utc",
    "truncate_to_second",
]
