"""
Quotes Repository.

Responsibilities:
- Insert quotes and write back their classification.
- Query quotes by job and by professional.

Non-Responsibilities:
- No classification logic.
- No commits; the caller owns the transaction.

Invariant:
At most one quote per (job_id, pro_id); the database enforces it.
"""

from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from tradequote.database import Quote, QuoteStatus
from tradequote.errors import Conflict


def find_quote(session, job_id: str, pro_id: str) -> Optional[Quote]:
    stmt = select(Quote).where(Quote.job_id == job_id, Quote.pro_id == pro_id)
    return session.execute(stmt).scalars().first()


def insert_quote(session, quote: Quote) -> Quote:
    """
    Add a quote and flush it.

    Raises:
        Conflict: if a quote for the same (job, pro) pair already exists
    """
    try:
        with session.begin_nested():
            session.add(quote)
            session.flush()
    except IntegrityError as e:
        raise Conflict(
            f"Quote already exists for job {quote.job_id} from {quote.pro_id}"
        ) from e
    return quote


def update_quote_status(session, quote_id: str, status: QuoteStatus) -> None:
    quote = session.get(Quote, quote_id)
    quote.status = status


def update_quote_statuses(session, status_of: Dict[str, QuoteStatus]) -> None:
    """Bulk variant: write a status per quote id."""
    for quote_id, status in status_of.items():
        update_quote_status(session, quote_id, status)
    session.flush()


def list_quotes(session, job_id: Optional[str] = None, pro_id: Optional[str] = None) -> List[Quote]:
    filters = []
    if job_id:
        filters.append(Quote.job_id == job_id)
    if pro_id:
        filters.append(Quote.pro_id == pro_id)
    stmt = select(Quote).where(*filters).order_by(Quote.created_at.desc())
    return list(session.execute(stmt).scalars().all())


def count_quotes(session) -> int:
    return session.execute(select(func.count(Quote.id))).scalar_one()


def average_amount(session) -> float:
    value = session.execute(select(func.avg(Quote.amount))).scalar()
    return float(value) if value is not None else 0.0
