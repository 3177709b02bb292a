from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path


_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def rfc3339_now() -> str:
    return datetime.now(tz=timezone.utc).isoformat().replace("+00:00", "Z")


def today_iso() -> str:
    return datetime.now(tz=timezone.utc).date().isoformat()


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp.{os.getpid()}")
    tmp_path.write_text(content, encoding="utf-8")
    tmp_path.replace(path)


def atomic_write_json(path: Path, data: object) -> None:
    atomic_write_text(path, json.dumps(data, indent=2, sort_keys=True) + "\n")


def new_ulid(*, timestamp_ms: int | None = None) -> str:
    """
    Generate a ULID: 26 Crockford base32 chars, 48-bit ms timestamp + 80 random bits.

    Only uppercase letters and digits, so the result is always a valid ``[id:...]`` token.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    if not (0 <= timestamp_ms < (1 << 48)):
        raise ValueError("timestamp_ms out of range for ULID")

    value = (timestamp_ms << 80) | int.from_bytes(os.urandom(10), "big")
    chars: list[str] = []
    for _ in range(26):
        chars.append(_CROCKFORD32[value & 31])
        value >>= 5
    return "".join(reversed(chars))
