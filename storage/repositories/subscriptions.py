"""
Subscriptions Repository.

Responsibilities:
- Look up and upsert subscription rows keyed by provider customer id.

Non-Responsibilities:
- No event ordering decisions.
- No commits; the caller owns the transaction.
"""

from typing import Optional

from sqlalchemy import select

from tradequote.database import Subscription


def get_by_customer(session, customer_id: str, lock: bool = False) -> Optional[Subscription]:
    stmt = select(Subscription).where(Subscription.customer_id == customer_id)
    if lock:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalars().first()


def insert_subscription(session, subscription: Subscription) -> Subscription:
    session.add(subscription)
    session.flush()
    return subscription
