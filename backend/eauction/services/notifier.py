"""Outbound outcome events. Delivery (email, SMS, ...) belongs to whoever implements Notifier."""
import logging
from typing import Protocol


logger = logging.getLogger(__name__)


class EventType:
    SHORTLISTED = "shortlisted"
    AWARDED = "awarded"
    NOT_AWARDED = "not_awarded"
    DISQUALIFIED = "disqualified"
    CANCELLED = "cancelled"


class Notifier(Protocol):
    def notify(self, event_type: str, payload: dict) -> None: ...


class LoggingNotifier:
    """Default notifier: records each event in the application log."""

    def notify(self, event_type: str, payload: dict) -> None:
        logger.info(
            "notify %s: auction=%s bidder=%s <%s> amount=%s reason=%s",
            event_type,
            payload.get("auction_code"),
            payload.get("bidder_id"),
            payload.get("bidder_email"),
            payload.get("amount"),
            payload.get("reason"),
        )


def build_payload(auction, bidder, amount=None, reason: str | None = None) -> dict:
    """Event payload: bidder contact reference, auction reference and outcome fields."""
    return {
        "auction_ref": auction.id,
        "auction_code": auction.auction_id,
        "auction_title": auction.title,
        "bidder_id": bidder.id if bidder is not None else None,
        "bidder_email": getattr(bidder, "email", None),
        "bidder_name": getattr(bidder, "name", None),
        "amount": str(amount) if amount is not None else None,
        "reason": reason,
    }
