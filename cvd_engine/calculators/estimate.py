"""
Estimate Calculator

Preview-only commission figures for dashboards and simulations. Results are
CommissionEstimate objects, never CommissionStatement, and cannot be used to
issue an invoice.
"""

import logging
from decimal import Decimal

from ..models import CommissionEstimate, CommissionLedgerLine, Period, SaleEvent
from ..schedule import DEFAULT_SCHEDULE, CommissionSchedule
from .palier import chronological, quantize_money

logger = logging.getLogger(__name__)

ANONYMOUS_CLIENT = "(client non renseigné)"


class EstimateCalculator:
    """Lenient counterpart of PalierCommissionCalculator."""

    # Legacy flat rung schedule, used when only totals are known
    FIRST_RUNG_AMOUNT = Decimal("60")
    NEXT_RUNG_AMOUNT = Decimal("50")

    def __init__(self, schedule: CommissionSchedule = DEFAULT_SCHEDULE):
        self.schedule = schedule

    def estimate_from_sales(self, seller_id: int, period, sale_events: list[SaleEvent]) -> CommissionEstimate:
        """
        Same rung rules as the fiscal path, but unknown products count for
        zero and anonymous clients are labelled instead of rejected.
        """
        period = Period.parse(period)
        estimate = CommissionEstimate(seller_id=seller_id, period=period, basis="sales")
        points_before = 0

        for event in chronological(sale_events):
            points = self.schedule.catalog.points_for_or_zero(event.product_id)
            if points == 0:
                estimate.warnings.append(
                    f"Sale {event.sale_id}: unknown product {event.product_id!r} counted as 0 points"
                )
            points_after = points_before + points
            tier = self.schedule.tier_for(points_after)
            crossed = self.schedule.rung(points_after) > self.schedule.rung(points_before)

            commission = Decimal("0")
            if crossed:
                tier_row = self.schedule.thresholds.get(tier)
                canonical = self.schedule.catalog.canonical(event.product_id)
                if tier_row is not None and canonical in tier_row.per_product_amount:
                    commission = quantize_money(tier_row.per_product_amount[canonical])
                else:
                    estimate.warnings.append(
                        f"Sale {event.sale_id}: no rate for {event.product_id!r} in tier {tier}"
                    )

            client = event.client_name
            if not event.client_given_name.strip() or not event.client_family_name.strip():
                estimate.warnings.append(f"Sale {event.sale_id}: incomplete client name")
                client = client or ANONYMOUS_CLIENT

            estimate.lines.append(
                CommissionLedgerLine(
                    sale_event_id=event.sale_id,
                    product_id=event.product_id,
                    client_name=client,
                    points=points,
                    tier_at_crossing=tier,
                    points_cumulative_after=points_after,
                    commission_amount=commission,
                    crossed=crossed,
                )
            )
            points_before = points_after

        estimate.total_points = points_before
        estimate.final_tier = self.schedule.tier_for(points_before)
        estimate.total_commission = sum((l.commission_amount for l in estimate.lines), Decimal("0"))

        if estimate.warnings:
            logger.warning(
                f"CVD estimate for seller {seller_id}, period {period} has {len(estimate.warnings)} warnings"
            )
        return estimate

    def estimate_from_totals(
        self, seller_id: int, period, total_points: int, installations: int = 0
    ) -> CommissionEstimate:
        """
        Totals-only fallback when no per-sale breakdown is available.

        First rung: 60 EUR, each further rung: 50 EUR. No sale lines are
        produced; nothing is invented about individual clients or products.
        """
        period = Period.parse(period)
        if total_points < 0:
            raise ValueError(f"total_points cannot be negative, got: {total_points}")

        rungs = self.schedule.rung(total_points)
        commission = Decimal("0")
        if rungs >= 1:
            commission = self.FIRST_RUNG_AMOUNT + (rungs - 1) * self.NEXT_RUNG_AMOUNT

        estimate = CommissionEstimate(
            seller_id=seller_id,
            period=period,
            basis="totals",
            total_points=total_points,
            total_commission=quantize_money(commission),
            final_tier=self.schedule.tier_for(total_points),
        )
        estimate.warnings.append(
            f"Estimated from totals only ({total_points} points, {installations} installations); "
            "not valid for invoicing"
        )
        logger.warning(f"Totals-only CVD estimate used for seller {seller_id}, period {period}")
        return estimate
