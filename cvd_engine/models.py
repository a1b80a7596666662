"""
Domain Models for the CVD Commission Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values use Decimal for precision.
"""

import calendar
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from .exceptions import InvalidSaleEventError

_ISO_PERIOD = re.compile(r"^(\d{4})-(\d{1,2})$")
_SLASH_PERIOD = re.compile(r"^(\d{1,2})/(\d{4})$")


def parse_date(value) -> date:
    """Accept a date, a datetime, or an ISO string (date or datetime)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    raise InvalidSaleEventError(f"Invalid installation date: {value!r}")


# =============================================================================
# INPUT MODELS
# =============================================================================


@dataclass(frozen=True, order=True)
class Period:
    """A billing period: one calendar month."""

    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise InvalidSaleEventError(f"Invalid period month: {self.month}")
        if self.year < 1:
            raise InvalidSaleEventError(f"Invalid period year: {self.year}")

    @classmethod
    def parse(cls, value) -> "Period":
        """Parse 'YYYY-MM' or the legacy 'M/YYYY' form."""
        if isinstance(value, Period):
            return value
        text = str(value).strip()
        match = _ISO_PERIOD.match(text)
        if match:
            return cls(year=int(match.group(1)), month=int(match.group(2)))
        match = _SLASH_PERIOD.match(text)
        if match:
            return cls(year=int(match.group(2)), month=int(match.group(1)))
        raise InvalidSaleEventError(f"Invalid period: {value!r}. Expected 'YYYY-MM' or 'M/YYYY'")

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def contains(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class SaleEvent:
    """An installed sale. Immutable once commission has been computed against it."""

    sale_id: int
    seller_id: int
    client_given_name: str
    client_family_name: str
    product_id: str
    installation_date: date
    points: int | None = None  # None = take the catalog weight

    @property
    def client_name(self) -> str:
        return f"{(self.client_given_name or '').strip()} {(self.client_family_name or '').strip()}".strip()

    @classmethod
    def from_dict(cls, data: dict, seller_id: int | None = None) -> "SaleEvent":
        # Accept both snake_case keys and the client-record column names
        try:
            sale_id = data.get("sale_id", data.get("id"))
            owner = data.get("seller_id", data.get("vendeurId", seller_id))
            points = data.get("points")
            return cls(
                sale_id=int(sale_id),
                seller_id=int(owner),
                client_given_name=data.get("client_given_name", data.get("prenom")) or "",
                client_family_name=data.get("client_family_name", data.get("nom")) or "",
                product_id=data.get("product_id", data.get("produit")) or "",
                installation_date=parse_date(data.get("installation_date", data.get("dateInstallation"))),
                points=int(points) if points is not None else None,
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, InvalidSaleEventError):
                raise
            raise InvalidSaleEventError(
                f"Malformed sale event: {e}", sale_id=data.get("sale_id", data.get("id"))
            ) from e


# =============================================================================
# OUTPUT / RESULT MODELS
# =============================================================================


@dataclass(frozen=True)
class CommissionLedgerLine:
    """One computed line per sale event, zero-commission lines included."""

    sale_event_id: int
    product_id: str
    client_name: str
    points: int
    tier_at_crossing: int
    points_cumulative_after: int
    commission_amount: Decimal
    crossed: bool = False


@dataclass
class CommissionStatement:
    """Fiscal result of a palier computation for one seller and period."""

    seller_id: int
    period: Period
    lines: list[CommissionLedgerLine] = field(default_factory=list)
    total_points: int = 0
    final_tier: int = 1
    rungs_reached: list[int] = field(default_factory=list)

    is_estimate = False

    @property
    def total_commission(self) -> Decimal:
        """Always the sum of line amounts, never recomputed from totals."""
        return sum((line.commission_amount for line in self.lines), Decimal("0"))

    @property
    def installations_count(self) -> int:
        return len(self.lines)

    @property
    def commission_per_tier(self) -> dict[int, Decimal]:
        per_tier: dict[int, Decimal] = {}
        for line in self.lines:
            if line.crossed:
                per_tier[line.tier_at_crossing] = (
                    per_tier.get(line.tier_at_crossing, Decimal("0")) + line.commission_amount
                )
        return per_tier


@dataclass
class CommissionEstimate:
    """
    Preview result. Never a fiscal document.

    Produced by the estimate calculator when real per-sale data is incomplete
    or missing; the processor refuses to allocate an invoice number for it.
    """

    seller_id: int
    period: Period
    basis: str
    total_points: int = 0
    total_commission: Decimal = Decimal("0")
    final_tier: int = 1
    lines: list[CommissionLedgerLine] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    is_estimate: bool = field(default=True, init=False)


@dataclass(frozen=True)
class FiscalInvoice:
    """A permanently numbered invoice for one (seller, period)."""

    seller_id: int
    period: str
    invoice_number: str
    issue_date: date
    due_date: date


@dataclass(frozen=True)
class InvoiceAllocation:
    """Answer of generate_or_get."""

    invoice_number: str
    issue_date: date
    due_date: date
    is_existing: bool

    @classmethod
    def from_invoice(cls, invoice: FiscalInvoice, is_existing: bool) -> "InvoiceAllocation":
        return cls(
            invoice_number=invoice.invoice_number,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            is_existing=is_existing,
        )


@dataclass(frozen=True)
class InvoiceNumberPreview:
    """Next number for a period, not consumed. Must never be printed on an invoice."""

    invoice_number: str
    period: str
    is_preview: bool = field(default=True, init=False)
