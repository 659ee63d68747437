from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OperationResult:
    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> OperationResult:
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> OperationResult:
        return cls(success=False, error=error)
