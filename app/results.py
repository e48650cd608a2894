"""
Tagged results returned by the Storage Gateway.

Every gateway operation answers with a StorageResult so callers can tell
"nothing matched" apart from "the store rejected the write" and
"the store failed".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Outcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass(frozen=True)
class StorageResult(Generic[T]):
    outcome: Outcome
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "StorageResult[T]":
        return cls(Outcome.OK, value=value)

    @classmethod
    def not_found(cls) -> "StorageResult[T]":
        return cls(Outcome.NOT_FOUND)

    @classmethod
    def conflict(cls, reason: str) -> "StorageResult[T]":
        """The store refused the write on a unique or foreign-key constraint."""
        return cls(Outcome.CONFLICT, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "StorageResult[T]":
        return cls(Outcome.FAILED, reason=reason)

    @property
    def is_success(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def is_not_found(self) -> bool:
        return self.outcome is Outcome.NOT_FOUND

    @property
    def is_conflict(self) -> bool:
        return self.outcome is Outcome.CONFLICT

    @property
    def is_failure(self) -> bool:
        return self.outcome is Outcome.FAILED
