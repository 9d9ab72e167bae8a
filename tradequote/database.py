"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for users, jobs, quotes and subscriptions.
Every transaction on SQLite starts with BEGIN IMMEDIATE so that the
read-check-write sequence of a quote submission holds the write lock from
its first read.

Limitation of the SQLite backend: it has a single database-wide write lock,
so submissions for different jobs also queue behind each other. The job-row
lock taken by quote submission only narrows that to one job on stores with
row-level locking.
"""

import enum
import uuid
from contextlib import contextmanager
from datetime import datetime
from functools import lru_cache
from pathlib import Path

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()


def _new_id() -> str:
    return uuid.uuid4().hex


class Role(str, enum.Enum):
    USER = "USER"
    PRO = "PRO"
    ADMIN = "ADMIN"


class QuoteStatus(str, enum.Enum):
    LOWER = "LOWER"
    ABOUT_RIGHT = "ABOUT_RIGHT"
    HIGHER = "HIGHER"


class JobStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class User(Base):
    """Account and professional profile."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, nullable=False, unique=True)
    name = Column(String)
    role = Column(Enum(Role), nullable=False, default=Role.USER)
    is_subscribed = Column(Boolean, nullable=False, default=False)
    trust_score = Column(Integer, nullable=False, default=0)
    profile_completion = Column(Integer, nullable=False, default=0)

    company_name = Column(String)
    trade_category = Column(String)
    description = Column(Text)
    qualifications = Column(Text)
    insurance_doc = Column(String)  # document reference
    email_verified = Column(DateTime)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    jobs = relationship("Job", back_populates="user")
    quotes = relationship("Quote", back_populates="pro")


class Job(Base):
    """Job posting seeking quotes."""

    __tablename__ = "jobs"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)
    location = Column(String, nullable=False)
    budget = Column(Float)
    average_quote = Column(Float)  # derived; replaced on every quote insert
    status = Column(Enum(JobStatus), nullable=False, default=JobStatus.ACTIVE)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    user = relationship("User", back_populates="jobs")
    quotes = relationship(
        "Quote",
        back_populates="job",
        cascade="all, delete",
        order_by="Quote.created_at.desc()",
    )


class Quote(Base):
    """A professional's priced offer against a job."""

    __tablename__ = "quotes"
    __table_args__ = (UniqueConstraint("job_id", "pro_id", name="uq_quotes_job_pro"),)

    id = Column(String, primary_key=True, default=_new_id)
    job_id = Column(String, ForeignKey("jobs.id"), nullable=False, index=True)
    pro_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    comment = Column(Text)
    status = Column(Enum(QuoteStatus), nullable=False, default=QuoteStatus.ABOUT_RIGHT)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    job = relationship("Job", back_populates="quotes")
    pro = relationship("User", back_populates="quotes")


class Subscription(Base):
    """Billing subscription mirrored from payment provider events."""

    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    customer_id = Column(String, nullable=False, unique=True)
    subscription_id = Column(String)
    status = Column(String, nullable=False)
    last_event_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


@lru_cache(maxsize=None)
def get_engine(db_path: Path):
    """
    Return the engine for a SQLite file, creating it once per path.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy engine
    """
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"timeout": 15, "check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy's "begin" event issue BEGIN itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(get_engine(db_path))


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=get_engine(db_path), expire_on_commit=False)
    return Session()


@contextmanager
def session_scope(db_path: Path):
    """
    Provide a transactional scope around a series of operations.

    Commits on success, rolls back everything on any exception.
    """
    session = get_session(db_path)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
