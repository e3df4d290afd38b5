"""Typed failures raised by the auction core.

Every error carries a ``kind`` (the coarse category callers branch on), a
``code`` (the specific rule that failed) and a human-readable ``reason`` that
can be shown to the user as-is.
"""
from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    STATE_CONFLICT = "STATE_CONFLICT"
    UNAUTHORIZED_PARTICIPANT = "UNAUTHORIZED_PARTICIPANT"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    MALFORMED_SCHEDULE = "MALFORMED_SCHEDULE"


class AuctionError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION
    code: str = "VALIDATION"
    default_reason: str = "Invalid request"

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.STORE_UNAVAILABLE

    def to_dict(self) -> dict:
        return {"detail": self.reason, "code": self.code, "kind": self.kind.value}


class InvalidAmount(AuctionError):
    kind = ErrorKind.VALIDATION
    code = "INVALID_AMOUNT"
    default_reason = "Please enter a valid positive bid amount"


class EmptyReason(AuctionError):
    kind = ErrorKind.VALIDATION
    code = "EMPTY_REASON"
    default_reason = "A reason is required"


class InvalidInput(AuctionError):
    kind = ErrorKind.VALIDATION
    code = "VALIDATION"


class NotFound(AuctionError):
    kind = ErrorKind.NOT_FOUND
    code = "NOT_FOUND"
    default_reason = "Not found"


class NotLive(AuctionError):
    kind = ErrorKind.STATE_CONFLICT
    code = "NOT_LIVE"
    default_reason = "Auction is not currently live"


class NotEnded(AuctionError):
    kind = ErrorKind.STATE_CONFLICT
    code = "NOT_ENDED"
    default_reason = "Auction has not ended yet"


class InvalidTransition(AuctionError):
    kind = ErrorKind.STATE_CONFLICT
    code = "INVALID_TRANSITION"
    default_reason = "This action is not allowed in the current state"


class NotInvited(AuctionError):
    kind = ErrorKind.UNAUTHORIZED_PARTICIPANT
    code = "NOT_INVITED"
    default_reason = "You are not invited to this auction"


class StoreUnavailable(AuctionError):
    kind = ErrorKind.STORE_UNAVAILABLE
    code = "STORE_UNAVAILABLE"
    default_reason = "The auction data store is temporarily unavailable; please retry"


class MalformedSchedule(AuctionError):
    kind = ErrorKind.MALFORMED_SCHEDULE
    code = "MALFORMED_SCHEDULE"
    default_reason = "Auction schedule could not be read"
