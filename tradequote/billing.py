"""
Subscription state from payment provider events.

Events are delivered at least once and not necessarily in order. Each event
carries a ``created`` epoch timestamp; an event older than the newest one
already applied to a subscription is ignored, and a redelivered event
writes the same values again.

Event shape::

    {"id": "evt_...", "type": "customer.subscription.updated", "created": 1700000000,
     "data": {"object": {"customer": "cus_...", "status": "active", ...}}}
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from storage.repositories import subscriptions as subs_repo
from storage.repositories import users as users_repo

from .database import Subscription
from .errors import InvalidInput
from .logger import get_logger

logger = get_logger()

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


def _event_time(event: Dict[str, Any]) -> datetime:
    created = event.get("created")
    if isinstance(created, bool) or not isinstance(created, (int, float)):
        raise InvalidInput(f"Event {event.get('id')} has no valid 'created' timestamp")
    return datetime.fromtimestamp(created, tz=timezone.utc).replace(tzinfo=None)


def _is_stale(subscription: Optional[Subscription], event_at: datetime) -> bool:
    return (
        subscription is not None
        and subscription.last_event_at is not None
        and event_at < subscription.last_event_at
    )


def _checkout_completed(session, obj: Dict[str, Any], event_at: datetime) -> bool:
    metadata = obj.get("metadata") or {}
    user_id = metadata.get("userId") or metadata.get("user_id")
    customer_id = obj.get("customer")
    if not user_id or not customer_id:
        logger.warning("Checkout event without user or customer", customer=customer_id)
        return False
    if users_repo.get_profile(session, user_id) is None:
        logger.warning("Checkout event for unknown user", user_id=user_id)
        return False

    subscription = subs_repo.get_by_customer(session, customer_id, lock=True)
    if _is_stale(subscription, event_at):
        return False

    if subscription is None:
        subscription = subs_repo.insert_subscription(
            session,
            Subscription(user_id=user_id, customer_id=customer_id, status="active"),
        )
    subscription.user_id = user_id
    subscription.subscription_id = obj.get("subscription") or subscription.subscription_id
    subscription.status = "active"
    subscription.last_event_at = event_at
    users_repo.set_subscribed(session, user_id, True)
    return True


def _status_changed(session, obj: Dict[str, Any], event_at: datetime, status: str) -> bool:
    customer_id = obj.get("customer")
    subscription = subs_repo.get_by_customer(session, customer_id, lock=True) if customer_id else None
    if subscription is None:
        logger.warning("Subscription event for unknown customer", customer=customer_id)
        return False
    if _is_stale(subscription, event_at):
        return False

    subscription.status = status
    subscription.last_event_at = event_at
    users_repo.set_subscribed(session, subscription.user_id, status == "active")
    return True


def handle_subscription_event(session, event: Dict[str, Any]) -> bool:
    """
    Apply one provider event.

    Returns:
        True if the event changed stored state, False if it was ignored
        (unknown type, unknown customer or user, or older than state on file)

    Raises:
        InvalidInput: the event lacks a type or timestamp
    """
    event_type = event.get("type")
    if not event_type:
        raise InvalidInput("Event has no type")
    event_at = _event_time(event)
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == CHECKOUT_COMPLETED:
        applied = _checkout_completed(session, obj, event_at)
    elif event_type == SUBSCRIPTION_UPDATED:
        applied = _status_changed(session, obj, event_at, obj.get("status") or "unknown")
    elif event_type == SUBSCRIPTION_DELETED:
        applied = _status_changed(session, obj, event_at, "canceled")
    else:
        logger.info("Unhandled event type", event_type=event_type, event_id=event.get("id"))
        applied = False

    session.flush()
    logger.record_subscription_event(applied)
    logger.info(
        "Subscription event processed",
        event_id=event.get("id"),
        event_type=event_type,
        applied=applied,
    )
    return applied
