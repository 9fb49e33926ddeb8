"""
Opaque resume tokens for forward-only correlation paging.

A cursor names the last correlation a page returned. Correlations with a
START are ordered by their earliest START descending; those without one
follow them, ordered by correlation id. A cursor with no ``start_ms``
therefore points into that trailing segment.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from engine.errors import InvalidFilterError

CURSOR_VERSION = 2

SortKey = Tuple[int, int, str]


def sort_key(start_ms: Optional[int], correlation_id: str) -> SortKey:
    """Ascending key for start time descending, then correlation id ascending.

    Correlations without a START rank after every correlation that has one.
    """
    if start_ms is None:
        return (1, 0, correlation_id)
    return (0, -int(start_ms), correlation_id)


def fingerprint(canonical_filter: str) -> str:
    return hashlib.sha256(canonical_filter.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class Cursor:
    start_ms: Optional[int]
    correlation_id: str
    anchor_ms: int
    fingerprint: str

    @property
    def sort_key(self) -> SortKey:
        return sort_key(self.start_ms, self.correlation_id)

    @property
    def in_started_segment(self) -> bool:
        return self.start_ms is not None


def encode_cursor(cursor: Cursor) -> str:
    payload = {
        "v": CURSOR_VERSION,
        "s": cursor.start_ms,
        "k": cursor.correlation_id,
        "a": cursor.anchor_ms,
        "f": cursor.fingerprint,
    }
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def decode_cursor(token: str) -> Cursor:
    try:
        padded = token + "=" * (-len(token) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode()).decode())
    except (ValueError, TypeError) as exc:
        raise InvalidFilterError("Malformed lastKey") from exc

    if not isinstance(payload, dict) or payload.get("v") != CURSOR_VERSION:
        raise InvalidFilterError("Malformed lastKey")
    start_ms = payload.get("s")
    correlation_id = payload.get("k")
    anchor_ms = payload.get("a")
    fp = payload.get("f")
    if not (start_ms is None or _is_int(start_ms)):
        raise InvalidFilterError("Malformed lastKey")
    if not isinstance(correlation_id, str) or not correlation_id:
        raise InvalidFilterError("Malformed lastKey")
    if not _is_int(anchor_ms) or not isinstance(fp, str):
        raise InvalidFilterError("Malformed lastKey")
    return Cursor(
        start_ms=start_ms,
        correlation_id=correlation_id,
        anchor_ms=anchor_ms,
        fingerprint=fp,
    )
