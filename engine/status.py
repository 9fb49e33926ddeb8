"""
Lifecycle status derivation for correlations.

A correlation is judged from how many START, END and EXCEPTION events it
carries relative to the number of distinct applications that took part:

1. any EXCEPTION                         -> failed
2. no application breakdown              -> unknown
3. START and END from every application  -> success
4. at least one START                    -> in_progress
5. otherwise                             -> unknown

The same rule is rendered as a Painless script so the store can evaluate it
inside the aggregation; both paths must select the same correlations.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Iterable, List, Optional, TypeVar

from engine.enums import LifecycleStatus

END_BEFORE_START = "end_before_start"

T = TypeVar("T")


def derive_status(has_start: int, has_end: int, has_exception: int, app_count: int) -> LifecycleStatus:
    if has_exception > 0:
        return LifecycleStatus.failed
    if app_count <= 0:
        return LifecycleStatus.unknown
    if has_start >= app_count and has_end >= app_count:
        return LifecycleStatus.success
    if has_start > 0:
        return LifecycleStatus.in_progress
    return LifecycleStatus.unknown


def elapsed_ms(
    start_ms: Optional[int],
    end_ms: Optional[int],
    has_start: int,
    has_end: int,
) -> Optional[int]:
    if start_ms is None or end_ms is None or has_start <= 0 or has_end <= 0:
        return None
    if end_ms < start_ms:
        return None
    return int(end_ms - start_ms)


def end_precedes_start(start_ms: Optional[int], end_ms: Optional[int]) -> bool:
    return start_ms is not None and end_ms is not None and end_ms < start_ms


def status_script() -> str:
    """Painless body of the ``overall_status`` bucket_script."""
    failed = LifecycleStatus.failed.code
    success = LifecycleStatus.success.code
    in_progress = LifecycleStatus.in_progress.code
    unknown = LifecycleStatus.unknown.code
    return (
        f"if (params.exception > 0) {{ return {failed}; }} "
        f"if (params.apps == 0) {{ return {unknown}; }} "
        f"if (params.start >= params.apps && params.end >= params.apps) {{ return {success}; }} "
        f"if (params.start > 0) {{ return {in_progress}; }} "
        f"return {unknown};"
    )


def status_selector_script(status: LifecycleStatus) -> str:
    return f"params.status == {status.code}"


def filter_by_status(items: Iterable[T], status: Optional[LifecycleStatus]) -> List[T]:
    if status is None:
        return list(items)
    return [item for item in items if getattr(item, "status") == status]
