"""
Relative time range parsing ("15m", "24h", "7d").

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import re
from typing import Tuple

from engine.errors import InvalidFilterError

_RANGE_RE = re.compile(r"^(\d+)([smhd])$")

UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_time_range(value: str) -> int:
    """Return the length of ``value`` in seconds.

    Only ``<integer><unit>`` with unit in s, m, h, d is accepted; anything else,
    including a zero length, raises :class:`InvalidFilterError`.
    """
    match = _RANGE_RE.match(str(value or "").strip().lower())
    if not match:
        raise InvalidFilterError(f"Invalid time range {value!r}: expected <integer><s|m|h|d>")
    seconds = int(match.group(1)) * UNIT_SECONDS[match.group(2)]
    if seconds <= 0:
        raise InvalidFilterError(f"Invalid time range {value!r}: must be positive")
    return seconds


def window_ms(time_range: str, now_ms: int) -> Tuple[int, int]:
    return now_ms - parse_time_range(time_range) * 1000, now_ms
