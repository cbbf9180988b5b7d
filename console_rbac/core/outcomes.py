"""
Typed results returned by the authorization engine.

Engine operations never raise for a rejected request; they return an Outcome and the
route layer turns it into an HTTP response with raise_for_outcome().
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from fastapi import HTTPException, status

from console_rbac.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OutcomeKind(str, Enum):
    ALLOW = "allow"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INTERNAL_FAULT = "internal_fault"


STATUS_CODES = {
    OutcomeKind.ALLOW: status.HTTP_200_OK,
    OutcomeKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    OutcomeKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    OutcomeKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    OutcomeKind.CONFLICT: status.HTTP_409_CONFLICT,
    OutcomeKind.INTERNAL_FAULT: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class Outcome(Generic[T]):
    kind: OutcomeKind
    reason: str = ""
    value: Optional[T] = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.ALLOW

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    @classmethod
    def allow(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(OutcomeKind.ALLOW, value=value)

    @classmethod
    def not_found(cls, reason: str) -> "Outcome[T]":
        return cls(OutcomeKind.NOT_FOUND, reason)

    @classmethod
    def bad_request(cls, reason: str) -> "Outcome[T]":
        return cls(OutcomeKind.BAD_REQUEST, reason)

    @classmethod
    def forbidden(cls, reason: str) -> "Outcome[T]":
        return cls(OutcomeKind.FORBIDDEN, reason)

    @classmethod
    def conflict(cls, reason: str) -> "Outcome[T]":
        return cls(OutcomeKind.CONFLICT, reason)

    @classmethod
    def internal_fault(cls, reason: str) -> "Outcome[T]":
        # Catalog or hierarchy tables are inconsistent; operators need to see this.
        logger.error(f"Access control configuration fault: {reason}")
        return cls(OutcomeKind.INTERNAL_FAULT, reason)


def raise_for_outcome(outcome: Outcome[T]) -> Optional[T]:
    """Return the outcome's value, or raise the HTTPException matching its kind"""
    if outcome.ok:
        return outcome.value
    detail = outcome.reason
    if outcome.kind == OutcomeKind.INTERNAL_FAULT and settings.is_production:
        detail = "Internal server error"
    raise HTTPException(status_code=outcome.status_code, detail=detail)
