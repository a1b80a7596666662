"""
Commission Processor - Main Orchestrator

Coordinates the CVD pipeline for the HTTP entry points:
1. Parse the batch (seller, period, sales)
2. Compute the fiscal statement (hard stop on any error)
3. Allocate or fetch the fiscal invoice number
4. Build renderer output

Estimates run through a separate path and can never reach step 3.
"""

import logging
from typing import Any, Dict

from .allocator import FiscalInvoiceAllocator
from .calculators import EstimateCalculator, PalierCommissionCalculator
from .config import Settings
from .exceptions import EstimateNotAllowedError, InvalidSaleEventError, InvoiceAllocationError
from .models import CommissionStatement, Period, SaleEvent
from .output import OutputBuilder
from .schedule import DEFAULT_SCHEDULE, CommissionSchedule

logger = logging.getLogger(__name__)


class CommissionProcessor:
    """Entry point used by the Flask app and the Lambda handler."""

    def __init__(
        self,
        schedule: CommissionSchedule = DEFAULT_SCHEDULE,
        allocator: FiscalInvoiceAllocator | None = None,
    ):
        self.schedule = schedule
        self.calculator = PalierCommissionCalculator(schedule)
        self.estimator = EstimateCalculator(schedule)
        self.allocator = allocator
        self.output_builder = OutputBuilder()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CommissionProcessor":
        # The store is only touched by invoice operations; compute and estimate never need it
        allocator = FiscalInvoiceAllocator.from_url(settings.database_url, due_days=settings.invoice_due_days)
        return cls(schedule=settings.load_schedule(), allocator=allocator)

    def compute(self, seller_id: int, period, sale_events: list[SaleEvent]) -> CommissionStatement:
        return self.calculator.compute(seller_id, period, sale_events)

    def issue_invoice(self, result):
        """
        Allocate (or fetch) the invoice for a computed statement.

        Only a CommissionStatement is accepted; estimates are refused.
        """
        if not isinstance(result, CommissionStatement) or result.is_estimate:
            raise EstimateNotAllowedError("An estimate cannot be used to issue a fiscal invoice")
        if self.allocator is None:
            raise InvoiceAllocationError("Invoice store is not configured")
        return self.allocator.generate_or_get(result.seller_id, result.period)

    # -------------------------------------------------------------------------
    # Dictionary API
    # -------------------------------------------------------------------------

    def compute_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        seller_id, period, events = self._parse_batch(data)
        statement = self.compute(seller_id, period, events)
        return self.output_builder.build_statement(statement)

    def estimate_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Estimate from sales when given, otherwise from totals."""
        if "ventes" in data or "sales" in data:
            seller_id, period, events = self._parse_batch(data)
            estimate = self.estimator.estimate_from_sales(seller_id, period, events)
        else:
            seller_id, period = self._parse_key(data)
            total_points = data.get("pointsTotal", data.get("total_points"))
            if total_points is None:
                raise InvalidSaleEventError("pointsTotal is required for a totals-only estimate")
            estimate = self.estimator.estimate_from_totals(
                seller_id,
                period,
                int(total_points),
                int(data.get("nombreInstallations", data.get("installations", 0))),
            )
        return self.output_builder.build_estimate(estimate)

    def invoice_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fiscal path: compute the statement, then generate or get the invoice.

        Any computation error blocks issuance before a number is consumed.
        """
        seller_id, period, events = self._parse_batch(data)
        statement = self.compute(seller_id, period, events)
        allocation = self.issue_invoice(statement)
        logger.info(
            f"Invoice {allocation.invoice_number} ready for seller {seller_id}, {period} "
            f"({'existing' if allocation.is_existing else 'new'})"
        )
        return {
            "facture": self.output_builder.build_allocation(allocation),
            "commission": self.output_builder.build_statement(statement),
        }

    def preview_number_from_period(self, period) -> Dict[str, Any]:
        if self.allocator is None:
            raise InvoiceAllocationError("Invoice store is not configured")
        return self.output_builder.build_preview(self.allocator.preview_next_number(period))

    def tier_details(self, tier_index: int) -> Dict[str, Any]:
        return self.schedule.tier_details(tier_index)

    def _parse_key(self, data: Dict[str, Any]) -> tuple[int, Period]:
        seller = data.get("vendeurId", data.get("seller_id"))
        period = data.get("periode", data.get("period"))
        if seller is None or period is None:
            raise InvalidSaleEventError("vendeurId and periode are required")
        try:
            seller_id = int(seller)
        except (TypeError, ValueError):
            raise InvalidSaleEventError(f"Invalid vendeurId: {seller!r}")
        return seller_id, Period.parse(period)

    def _parse_batch(self, data: Dict[str, Any]) -> tuple[int, Period, list[SaleEvent]]:
        seller_id, period = self._parse_key(data)
        raw_sales = data.get("ventes", data.get("sales"))
        if not isinstance(raw_sales, list):
            raise InvalidSaleEventError("ventes must be a list of sales")
        events = [SaleEvent.from_dict(sale, seller_id=seller_id) for sale in raw_sales]
        return seller_id, period, events
