"""Error text normalization, signature hashing and classification."""

from __future__ import annotations

import hashlib
import re
from typing import Optional

SIGNATURE_LENGTH = 16

_WHITESPACE_RE = re.compile(r"\s+")

# Checked in order; the first match wins.
ERROR_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("undefined_reference", re.compile(r"undefined reference to ['\"`]?(.+?)['\"`]?(?:$|\s)", re.I)),
    ("not_declared", re.compile(r"'(.+?)' was not declared", re.I)),
    ("multiple_definition", re.compile(r"multiple definition of ['\"`]?(.+?)['\"`]?(?:$|\s)", re.I)),
    ("sync_failure", re.compile(r"stk500\w*_getsync|not in sync", re.I)),
    ("port_not_found", re.compile(r"port.*not found|no such file or directory.*(?:tty|com)", re.I)),
    ("permission_denied", re.compile(r"permission denied|access (?:is )?denied", re.I)),
    ("timeout", re.compile(r"timeout|timed out", re.I)),
    ("upload_error", re.compile(r"upload.*error|avrdude:.*error", re.I)),
    ("compilation_error", re.compile(r"error:.*", re.I)),
)

UNKNOWN_ERROR_TYPE = "unknown"


def normalize(text: Optional[str]) -> str:
    """Lower-case, collapse whitespace runs to one space and trim."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text.lower()).strip()


def signature_hash(text: Optional[str]) -> str:
    """First 16 hex chars of sha256 over the normalized text.

    Texts that differ only in case or whitespace share a signature.
    """
    digest = hashlib.sha256(normalize(text).encode("utf-8")).hexdigest()
    return digest[:SIGNATURE_LENGTH]


def is_signature_hash(value: Optional[str]) -> bool:
    """True if value looks like a signature produced by signature_hash()."""
    return bool(value) and len(value) == SIGNATURE_LENGTH and all(
        c in "0123456789abcdef" for c in value
    )


def classify_error(text: Optional[str]) -> str:
    """Return the error category of a compiler/uploader message."""
    if not text:
        return UNKNOWN_ERROR_TYPE
    for error_type, pattern in ERROR_PATTERNS:
        if pattern.search(text):
            return error_type
    return UNKNOWN_ERROR_TYPE


def looks_like_error(line: str) -> bool:
    """Heuristic used when scanning serial output for error lines."""
    return classify_error(line) != UNKNOWN_ERROR_TYPE or bool(
        re.search(r"\b(?:error|fail(?:ed|ure)?|exception|panic|guru meditation)\b", line, re.I)
    )
