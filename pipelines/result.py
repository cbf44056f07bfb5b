"""Explicit outcome type for the data-acquisition boundary.

Loaders and ingestors report *what kind* of outcome happened; only the API
layer decides which HTTP status that becomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ResultKind(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not-found"
    UPSTREAM_UNAVAILABLE = "upstream-unavailable"
    VALIDATION_ERROR = "validation-error"


@dataclass(frozen=True)
class AcquisitionResult(Generic[T]):
    kind: ResultKind
    value: T | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.SUCCESS

    @classmethod
    def success(cls, value: T) -> "AcquisitionResult[T]":
        return cls(ResultKind.SUCCESS, value=value)

    @classmethod
    def not_found(cls, detail: str) -> "AcquisitionResult[T]":
        return cls(ResultKind.NOT_FOUND, detail=detail)

    @classmethod
    def upstream_unavailable(cls, detail: str) -> "AcquisitionResult[T]":
        return cls(ResultKind.UPSTREAM_UNAVAILABLE, detail=detail)

    @classmethod
    def validation_error(cls, detail: str) -> "AcquisitionResult[T]":
        return cls(ResultKind.VALIDATION_ERROR, detail=detail)

    def unwrap(self) -> T:
        if not self.ok or self.value is None:
            raise ValueError(f"No value for {self.kind.value} result: {self.detail}")
        return self.value


__all__ = ["AcquisitionResult", "ResultKind"]
