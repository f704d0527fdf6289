"""ServiceResult and ServiceError — the contract between services and the CLI.

The mutation engine itself never raises for bad targets; it reports
"not applied". Services translate that into ``ok=False`` results with a
stable error code so callers can branch without parsing messages.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

NOT_FOUND = "NOT_FOUND"
REJECTED = "REJECTED"
INVALID_INPUT = "INVALID_INPUT"
IO_ERROR = "IO_ERROR"


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Return type for every service operation.

    Attributes:
        ok: Whether the operation was applied.
        op: Name of the operation (e.g. ``"add_node"``).
        data: Operation-specific payload.
        warnings: Non-fatal issues, such as repairs made while loading.
        error: Structured error if ``ok`` is False.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None

    @classmethod
    def failure(
        cls, op: str, code: str, message: str, **detail: Any
    ) -> ServiceResult:
        return cls(ok=False, op=op, error=ServiceError(code=code, message=message, detail=detail))
