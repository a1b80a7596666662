"""
Invoice Store

SQLAlchemy tables backing fiscal invoice numbering, plus engine and session
helpers. PostgreSQL in production; SQLite works for local runs and tests.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Generator

from sqlalchemy import BigInteger, Date, DateTime, Integer, String, UniqueConstraint, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class InvoiceCounter(Base):
    """
    Monthly invoice counter.

    One row per (year, month). The row is locked by an in-place UPDATE
    while a number is allocated; MAX(number)+1 is never used.
    """

    __tablename__ = "invoice_counters"
    __table_args__ = (UniqueConstraint("year", "month", name="uq_invoice_counters_year_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class FiscalInvoiceRecord(Base):
    """A permanently numbered invoice. At most one per (seller, period)."""

    __tablename__ = "fiscal_invoices"
    __table_args__ = (UniqueConstraint("seller_id", "period", name="uq_fiscal_invoices_seller_period"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    seller_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    period: Mapped[str] = mapped_column(String(7), nullable=False, index=True)  # YYYY-MM
    invoice_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


def init_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the invoice store."""
    kwargs = {"echo": echo, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # Sessions are handed between threads by the pool; wait on locked files
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(database_url, **kwargs)
    logger.info(f"Invoice store engine initialized ({engine.dialect.name})")
    return engine


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(engine)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Transactional scope: commit on success, rollback and re-raise on error.

    Usage:
        with session_scope(factory) as session:
            session.add(record)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("Invoice store transaction rolled back", exc_info=True)
        raise
    finally:
        session.close()
