"""Error memory: signature hashing, fix learning and execution logging."""

from .error_store import ErrorMemoryStore
from .signatures import classify_error, normalize, signature_hash

__all__ = [
    "ErrorMemoryStore",
    "classify_error",
    "normalize",
    "signature_hash",
]
