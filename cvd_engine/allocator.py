"""
Fiscal Invoice Allocator

Assigns each (seller, period) one permanent invoice number of the form
``FA YYYY MM 00000001``, with immutable issue and due dates.

Generate-or-get is atomic per key:
- inside one process, a lock picked from a fixed stripe by the (seller,
  period) key serializes concurrent requests;
- across processes, the unique constraint on (seller_id, period) rejects the
  losing insert, whose transaction rolls back (returning its counter value)
  before the winner's record is re-read and returned.

Every store failure, on any operation, raises InvoiceAllocationError. There
is no fallback numbering.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .db import FiscalInvoiceRecord, InvoiceCounter, create_tables, init_engine, make_session_factory, session_scope
from .exceptions import InvoiceAllocationError
from .models import FiscalInvoice, InvoiceAllocation, InvoiceNumberPreview, Period

logger = logging.getLogger(__name__)

# Keys sharing a stripe only serialize; the set of locks never grows
LOCK_STRIPES = 64
_key_locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _lock_for(key: tuple[int, str]) -> threading.Lock:
    return _key_locks[hash(key) % LOCK_STRIPES]


def _to_invoice(record: FiscalInvoiceRecord) -> FiscalInvoice:
    return FiscalInvoice(
        seller_id=record.seller_id,
        period=record.period,
        invoice_number=record.invoice_number,
        issue_date=record.issue_date,
        due_date=record.due_date,
    )


class FiscalInvoiceAllocator:
    """Generate-or-get for permanent fiscal invoice numbers."""

    NUMBER_PREFIX = "FA"
    SEQUENCE_WIDTH = 8
    DEFAULT_DUE_DAYS = 30

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        due_days: int = DEFAULT_DUE_DAYS,
        clock: Callable[[], datetime] | None = None,
        schema_engine: Engine | None = None,
    ):
        self._session_factory = session_factory
        self.due_days = due_days
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Tables are created on this engine at first store access
        self._schema_engine = schema_engine
        self._schema_lock = threading.Lock()

    @classmethod
    def from_url(cls, database_url: str, due_days: int = DEFAULT_DUE_DAYS, **kwargs) -> "FiscalInvoiceAllocator":
        """Allocator on a new engine. Nothing connects until the store is first used."""
        engine = init_engine(database_url)
        return cls(make_session_factory(engine), due_days=due_days, schema_engine=engine, **kwargs)

    @classmethod
    def format_number(cls, period: Period, sequence: int) -> str:
        return f"{cls.NUMBER_PREFIX} {period.year:04d} {period.month:02d} {sequence:0{cls.SEQUENCE_WIDTH}d}"

    @contextmanager
    def _store(self, action: str, seller_id: int | None = None, period: Period | None = None):
        """Run store work, turning any SQLAlchemy failure into InvoiceAllocationError."""
        try:
            self._ensure_schema()
            yield
        except SQLAlchemyError as e:
            parts = []
            if seller_id is not None:
                parts.append(f"seller {seller_id}")
            if period is not None:
                parts.append(f"period {period}")
            target = f" ({', '.join(parts)})" if parts else ""
            logger.error(f"Invoice store failed during {action}{target}: {e}")
            raise InvoiceAllocationError(
                f"Invoice store unavailable during {action}{target}",
                seller_id=seller_id,
                period=str(period) if period is not None else None,
            ) from e

    def _ensure_schema(self) -> None:
        if self._schema_engine is None:
            return
        with self._schema_lock:
            if self._schema_engine is not None:
                create_tables(self._schema_engine)
                self._schema_engine = None

    def generate_or_get(self, seller_id: int, period) -> InvoiceAllocation:
        """
        Return the invoice of (seller, period), allocating it on first call.

        Idempotent: the first call returns is_existing=False, every later call
        returns the same number with is_existing=True.

        Raises:
            InvoiceAllocationError: the store failed; retrying is safe.
        """
        period = Period.parse(period)
        key = (seller_id, str(period))

        with _lock_for(key), self._store("allocation", seller_id, period):
            existing = self._find(seller_id, period)
            if existing is not None:
                logger.info(f"Invoice {existing.invoice_number} already issued for seller {seller_id}, {period}")
                return InvoiceAllocation.from_invoice(existing, is_existing=True)

            try:
                invoice = self._allocate(seller_id, period)
            except IntegrityError:
                # Another process inserted the same key first
                logger.warning(f"Invoice race lost for seller {seller_id}, {period}; returning winner")
                existing = self._find(seller_id, period)
                if existing is None:
                    raise
                return InvoiceAllocation.from_invoice(existing, is_existing=True)

        logger.info(f"Invoice {invoice.invoice_number} issued for seller {seller_id}, {period}")
        return InvoiceAllocation.from_invoice(invoice, is_existing=False)

    def get(self, seller_id: int, period) -> FiscalInvoice | None:
        period = Period.parse(period)
        with self._store("lookup", seller_id, period):
            return self._find(seller_id, period)

    def preview_next_number(self, period) -> InvoiceNumberPreview:
        """Next number for the period without consuming it."""
        period = Period.parse(period)
        with self._store("number preview", period=period):
            with session_scope(self._session_factory) as session:
                current = session.execute(
                    select(InvoiceCounter.current_value).where(
                        InvoiceCounter.year == period.year, InvoiceCounter.month == period.month
                    )
                ).scalar_one_or_none()
        return InvoiceNumberPreview(
            invoice_number=self.format_number(period, (current or 0) + 1),
            period=str(period),
        )

    def is_number_available(self, invoice_number: str) -> bool:
        with self._store(f"availability check of {invoice_number}"):
            with session_scope(self._session_factory) as session:
                found = session.execute(
                    select(FiscalInvoiceRecord.id).where(FiscalInvoiceRecord.invoice_number == invoice_number)
                ).first()
        return found is None

    def list_for_period(self, period) -> list[FiscalInvoice]:
        """All invoices of a period, newest number first."""
        period = Period.parse(period)
        with self._store("listing", period=period):
            with session_scope(self._session_factory) as session:
                records = session.execute(
                    select(FiscalInvoiceRecord)
                    .where(FiscalInvoiceRecord.period == str(period))
                    .order_by(FiscalInvoiceRecord.invoice_number.desc())
                ).scalars().all()
                return [_to_invoice(r) for r in records]

    def _find(self, seller_id: int, period: Period) -> FiscalInvoice | None:
        with session_scope(self._session_factory) as session:
            record = session.execute(
                select(FiscalInvoiceRecord).where(
                    FiscalInvoiceRecord.seller_id == seller_id,
                    FiscalInvoiceRecord.period == str(period),
                )
            ).scalar_one_or_none()
            return _to_invoice(record) if record is not None else None

    def _allocate(self, seller_id: int, period: Period) -> FiscalInvoice:
        """Consume the next number and persist the invoice in one transaction."""
        self._ensure_counter(period)
        issue_date = self._clock().date()
        with session_scope(self._session_factory) as session:
            sequence = self._next_sequence(session, period)
            record = FiscalInvoiceRecord(
                seller_id=seller_id,
                period=str(period),
                invoice_number=self.format_number(period, sequence),
                issue_date=issue_date,
                due_date=issue_date + timedelta(days=self.due_days),
            )
            session.add(record)
            session.flush()
            return _to_invoice(record)

    def _ensure_counter(self, period: Period) -> None:
        """Create the month's counter row at zero if it does not exist yet."""
        try:
            with session_scope(self._session_factory) as session:
                found = session.execute(
                    select(InvoiceCounter.id).where(
                        InvoiceCounter.year == period.year, InvoiceCounter.month == period.month
                    )
                ).first()
                if found is None:
                    session.add(InvoiceCounter(year=period.year, month=period.month, current_value=0))
        except IntegrityError:
            logger.debug(f"Invoice counter for {period} created concurrently")

    def _next_sequence(self, session: Session, period: Period) -> int:
        """
        Increment the period's counter in place.

        The UPDATE holds the counter row lock until the caller's transaction
        ends, so the number is consumed only if the invoice is persisted.
        """
        match = (InvoiceCounter.year == period.year, InvoiceCounter.month == period.month)
        session.execute(
            update(InvoiceCounter)
            .where(*match)
            .values(current_value=InvoiceCounter.current_value + 1)
            .execution_options(synchronize_session=False)
        )
        return session.execute(select(InvoiceCounter.current_value).where(*match)).scalar_one()
