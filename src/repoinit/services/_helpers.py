"""Shared service-layer helper functions."""

from __future__ import annotations

from typing import Any

from repoinit.domain.errors import RepoinitError
from repoinit.services.result import ServiceError, ServiceResult


def error_result(
    op: str,
    exc: RepoinitError,
    *,
    data: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> ServiceResult:
    """Turn a repoinit error into a failed ServiceResult."""
    return ServiceResult(
        ok=False,
        op=op,
        data=data or {},
        warnings=warnings or [],
        error=ServiceError(code=exc.code, message=exc.message, detail=_jsonable(exc.detail)),
    )


def _jsonable(detail: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` values and coerce tuples/sets so detail dumps cleanly."""
    cleaned: dict[str, Any] = {}
    for key, value in detail.items():
        if value is None:
            continue
        if isinstance(value, tuple | set | frozenset):
            value = sorted(value) if isinstance(value, set | frozenset) else list(value)
        cleaned[key] = value
    return cleaned
