"""
Centralized exception handling decorator for API route functions.

The :func:`handle_exceptions` decorator wraps an endpoint handler and turns
domain errors into :class:`fastapi.HTTPException` responses:

* :class:`InvalidFilterError` becomes a ``400`` with the validation message.
* :class:`StoreUnavailable` and :class:`StoreTimeout` become ``503``; any other
  :class:`StoreError` (auth, rejected query) becomes ``500``.  Only the
  error's short public message is returned, the full detail is logged.
* Anything else becomes a ``500``.

HTTPExceptions raised by the handler are propagated untouched.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar, cast

from fastapi import HTTPException

from datasources.exceptions import StoreError, StoreTimeout, StoreUnavailable
from engine.errors import InvalidFilterError

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def to_http_exception(exc: Exception, where: str = "") -> HTTPException:
    if isinstance(exc, InvalidFilterError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, StoreError):
        log.error("%s: store error (%s): %s", where, exc.kind, exc)
        status_code = 503 if isinstance(exc, (StoreUnavailable, StoreTimeout)) else 500
        return HTTPException(status_code=status_code, detail=exc.public_message)
    log.exception("%s: unhandled error", where, exc_info=exc)
    return HTTPException(status_code=500, detail="Internal Server Error")


def handle_exceptions(func: F) -> F:
    """Decorator that converts uncaught exceptions from an async handler to HTTP errors."""
    where = getattr(func, "__name__", "handler")

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as exc:
            raise to_http_exception(exc, where) from exc

    return cast(F, wrapper)
