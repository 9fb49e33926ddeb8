from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from config import settings
from engine.enums import LifecycleStatus
from engine.errors import InvalidFilterError
from engine.timerange import parse_time_range


class CorrelationFilter(BaseModel):
    """Validated filter and paging parameters for one correlation query."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    time_range: str = settings.default_time_range
    environment: Optional[str] = None
    application: Optional[str] = None
    interface_id: Optional[str] = None
    organization: Optional[str] = None
    domain: Optional[str] = None
    correlation_id: Optional[str] = None
    search: Optional[str] = None
    status: Optional[LifecycleStatus] = None
    page_size: int = settings.default_page_size
    last_key: Optional[str] = None

    @field_validator(
        "environment", "application", "interface_id", "organization",
        "domain", "correlation_id", "search", "last_key",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("time_range", mode="before")
    @classmethod
    def validate_time_range(cls, v: Any) -> str:
        text = str(v).strip().lower() if v is not None else ""
        if not text:
            return settings.default_time_range
        if parse_time_range(text) > settings.max_time_range_seconds:
            raise InvalidFilterError(f"Time range {text!r} exceeds the maximum of {settings.max_time_range_seconds}s")
        return text

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Any) -> Optional[LifecycleStatus]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return LifecycleStatus.parse(v)

    @field_validator("page_size", mode="before")
    @classmethod
    def validate_page_size(cls, v: Any) -> int:
        if v is None or (isinstance(v, str) and not v.strip()):
            return settings.default_page_size
        try:
            size = int(str(v).strip())
        except ValueError:
            raise InvalidFilterError(f"Invalid page size {v!r}") from None
        if size < 1 or size > settings.max_page_size:
            raise InvalidFilterError(f"Page size must be between 1 and {settings.max_page_size}")
        return size

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> CorrelationFilter:
        try:
            return cls.model_validate(dict(params))
        except ValidationError as exc:
            raise InvalidFilterError(_describe(exc)) from exc

    @property
    def time_range_seconds(self) -> int:
        return parse_time_range(self.time_range)

    def dimensions(self) -> Dict[str, Any]:
        """Everything that changes which correlations match, excluding paging."""
        return {
            "time_range": self.time_range,
            "environment": self.environment,
            "application": self.application,
            "interface_id": self.interface_id,
            "organization": self.organization,
            "domain": self.domain,
            "correlation_id": self.correlation_id,
            "search": self.search,
            "status": self.status.value if self.status else None,
        }

    def canonical(self) -> str:
        return json.dumps(self.dimensions(), sort_keys=True, separators=(",", ":"))


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "query"
        msg = str(err.get("msg", "invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        if err.get("type") == "extra_forbidden":
            msg = "unknown parameter"
        parts.append(f"{loc}: {msg}")
    return "; ".join(parts) or "invalid filter"
