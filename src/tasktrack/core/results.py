# src/tasktrack/core/results.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class MutationStatus(StrEnum):
    """
    Outcome of a store / tracker mutation.

    - ok:        applied in memory and (if configured) persisted
    - degraded:  applied in memory, persistence failed (kept anyway)
    - rejected:  validation / integrity failure, nothing changed
    - not_found: unknown id, nothing changed
    - noop:      nothing to do (e.g. stop while idle), nothing changed
    """

    OK = "ok"
    DEGRADED = "degraded"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    NOOP = "noop"


@dataclass(frozen=True, slots=True)
class MutationResult:
    status: MutationStatus
    message: str
    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status in (MutationStatus.OK, MutationStatus.DEGRADED)

    @property
    def changed(self) -> bool:
        return self.ok

    @property
    def persisted(self) -> bool:
        return self.status == MutationStatus.OK

    @classmethod
    def success(cls, message: str, value: Any = None) -> MutationResult:
        return cls(MutationStatus.OK, message, value)

    @classmethod
    def rejected(cls, message: str, error: Exception | None = None) -> MutationResult:
        return cls(MutationStatus.REJECTED, message, error=error)

    @classmethod
    def not_found(cls, message: str, error: Exception | None = None) -> MutationResult:
        return cls(MutationStatus.NOT_FOUND, message, error=error)

    @classmethod
    def noop(cls, message: str, value: Any = None) -> MutationResult:
        return cls(MutationStatus.NOOP, message, value)
