"""Typed result of an engine or service operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from prompthash.errors import ErrorKind, Rejection


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation.

    error_kind is set on every failure so callers can branch on the
    category without parsing messages.
    """
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None

    @staticmethod
    def rejected(rejection: Rejection) -> ServiceResult:
        return ServiceResult(
            success=False,
            errors=[rejection.message],
            error_kind=rejection.kind,
        )
