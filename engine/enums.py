"""
Enumerations for trace points and correlation lifecycle states.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from enum import Enum


class TracePoint(str, Enum):
    start = "START"
    end = "END"
    exception = "EXCEPTION"


class LifecycleStatus(str, Enum):
    failed = "failed"
    success = "success"
    in_progress = "in_progress"
    unknown = "unknown"

    @property
    def code(self) -> int:
        # numeric codes shared with the dashboard and the store-side scripts
        return _CODES[self]

    @classmethod
    def from_code(cls, code: int) -> LifecycleStatus:
        for status, value in _CODES.items():
            if value == code:
                return status
        raise ValueError(f"Unknown status code: {code!r}")

    @classmethod
    def parse(cls, raw: object) -> LifecycleStatus:
        if isinstance(raw, LifecycleStatus):
            return raw
        if isinstance(raw, bool):
            raise ValueError(f"Invalid status: {raw!r}")
        if isinstance(raw, int):
            return cls.from_code(raw)
        text = str(raw).strip().lower().replace("-", "_")
        if text.isdigit():
            return cls.from_code(int(text))
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Invalid status: {raw!r}") from None


_CODES = {
    LifecycleStatus.failed: 0,
    LifecycleStatus.success: 1,
    LifecycleStatus.in_progress: 2,
    LifecycleStatus.unknown: 3,
}
