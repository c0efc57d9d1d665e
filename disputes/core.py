"""Core primitives for the dispute record.

This module provides the foundational utilities used throughout the package:
- Cryptographic hashing (SHA-256)
- Canonical JSON serialization (JCS/RFC8785 subset)
- base64url helpers for byte fields on the wire
- Millisecond-precision UTC timestamps
- YAML/JSON loading with consistent encoding

Design principles:
- Pure functions where possible
- No global mutable state
- Explicit error handling
"""

from __future__ import annotations

import base64
import hashlib
import json
import pathlib
import re
from datetime import datetime, timezone
from typing import Any, Optional

import yaml

# Package root, computed once at module load
PACKAGE_ROOT = pathlib.Path(__file__).resolve().parent

_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,6})?(Z|[+-]\d{2}:\d{2})$")


def sha256_bytes(data: bytes) -> str:
    """Compute SHA-256 hash of bytes, returning lowercase hex string."""
    return hashlib.sha256(data).hexdigest()


def sha256_digest(data: bytes) -> bytes:
    """Compute raw SHA-256 digest of bytes."""
    return hashlib.sha256(data).digest()


def load_yaml(path: pathlib.Path) -> Any:
    """Load YAML file with UTF-8 encoding."""
    return yaml.safe_load(pathlib.Path(path).read_text(encoding="utf-8"))


def load_json(path: pathlib.Path) -> Any:
    """Load JSON file with UTF-8 encoding."""
    return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize object to canonical JSON bytes (JCS/RFC8785 subset).

    Properties:
    - Keys sorted lexicographically
    - No whitespace
    - UTF-8 encoded
    - Floats rejected (use strings/ints for amounts)

    Two peers encoding the same dispute produce the same bytes, which is
    what lets digests and signatures line up across versions.
    """
    def _reject_floats(o: Any, path: str = "") -> None:
        if isinstance(o, float):
            raise ValueError(f"Float not allowed in canonical JSON at {path}")
        if isinstance(o, dict):
            for k, v in o.items():
                _reject_floats(v, f"{path}.{k}")
        if isinstance(o, (list, tuple)):
            for i, v in enumerate(o):
                _reject_floats(v, f"{path}[{i}]")

    _reject_floats(obj)
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def canonical_json_text(obj: Any) -> str:
    """Canonical JSON as text."""
    return canonical_json_bytes(obj).decode("utf-8")


def b64url_encode(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    pad = "=" * ((4 - len(s) % 4) % 4)
    return base64.urlsafe_b64decode((s + pad).encode("ascii"))


def encode_optional_bytes(b: Optional[bytes]) -> Optional[str]:
    return None if b is None else b64url_encode(b)


def decode_optional_bytes(s: Optional[str]) -> Optional[bytes]:
    return None if s is None else b64url_decode(s)


# Timestamp utilities

def truncate_to_millis(dt: datetime) -> datetime:
    """Normalize a datetime to UTC with millisecond precision.

    Naive datetimes are taken to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def now_utc_millis() -> datetime:
    """Current UTC time truncated to milliseconds."""
    return truncate_to_millis(datetime.now(timezone.utc))


def format_timestamp(dt: datetime) -> str:
    """Format as RFC 3339 with milliseconds and a Z suffix."""
    dt = truncate_to_millis(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(timestamp: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Raises ValueError on anything that is not RFC 3339, including instants
    that fall outside the datetime range once shifted to UTC.
    """
    if not isinstance(timestamp, str) or not _TIMESTAMP_RE.match(timestamp):
        raise ValueError(f"Invalid RFC 3339 timestamp: {timestamp!r}")
    # Handle Z suffix
    s = timestamp.replace("Z", "+00:00")
    try:
        return truncate_to_millis(datetime.fromisoformat(s))
    except OverflowError as e:
        raise ValueError(f"Timestamp out of range: {timestamp!r}") from e


# Field type checks for decoded payloads

def require_bool(value: Any, name: str) -> bool:
    """Return ``value`` if it is a JSON boolean, else raise TypeError."""
    if not isinstance(value, bool):
        raise TypeError(f"{name} must be a boolean, got {type(value).__name__}")
    return value


def require_int(value: Any, name: str) -> int:
    """Return ``value`` if it is a JSON integer (booleans excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    return value


def require_str(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string, got {type(value).__name__}")
    return value


def optional_str(value: Any, name: str) -> Optional[str]:
    return None if value is None else require_str(value, name)
