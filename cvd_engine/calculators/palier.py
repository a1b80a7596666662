"""
Palier Commission Calculator

Turns a seller's installed sales for one period into per-sale commission
lines. This is the fiscal path: every catalog gap or missing client name
aborts the whole computation.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from ..exceptions import UnknownProductError, UnknownTierProductError
from ..models import CommissionLedgerLine, CommissionStatement, Period, SaleEvent
from ..schedule import DEFAULT_SCHEDULE, CommissionSchedule
from ..validators import InputValidator

logger = logging.getLogger(__name__)


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def chronological(sale_events: list[SaleEvent]) -> list[SaleEvent]:
    """Installation date ascending, sale id breaking ties."""
    return sorted(sale_events, key=lambda e: (e.installation_date, e.sale_id))


class PalierCommissionCalculator:
    """
    Computes CVD commissions rung by rung.

    The result depends on processing order: a sale's commission depends on
    every sale installed before it in the period. Events are therefore always
    re-sorted by installation date (then sale id) before the fold, whatever
    order the caller supplied.

    Rules:
    - Each sale adds its catalog weight to a running total.
    - A rung is crossed when floor(after / 5) > floor(before / 5).
    - Only a crossing sale earns commission, priced from the tier reached
      *after* the sale and the sale's own product.
    - A sale crossing several rungs at once is paid once (one commission per
      crossing event, not per rung).
    """

    def __init__(self, schedule: CommissionSchedule = DEFAULT_SCHEDULE):
        self.schedule = schedule
        self.validator = InputValidator(schedule)

    def compute(self, seller_id: int, period, sale_events: list[SaleEvent]) -> CommissionStatement:
        """
        Compute the commission statement for one seller and period.

        Args:
            seller_id: Seller owning every event
            period: Period or 'YYYY-MM' string
            sale_events: Installed sales of the period, any order

        Returns:
            CommissionStatement with one line per event, in chronological order
        """
        period = Period.parse(period)
        self.validator.validate(seller_id, period, sale_events)

        statement = CommissionStatement(seller_id=seller_id, period=period)
        points_before = 0

        for event in chronological(sale_events):
            line = self._compute_line(event, points_before)
            if line.crossed:
                statement.rungs_reached.append(
                    self.schedule.rung(line.points_cumulative_after) * self.schedule.rung_size
                )
            statement.lines.append(line)
            points_before = line.points_cumulative_after

        statement.total_points = points_before
        statement.final_tier = self.schedule.tier_for(points_before)

        logger.info(
            f"CVD computed for seller {seller_id}, period {period}: "
            f"{len(statement.lines)} sales, {statement.total_points} points, "
            f"{statement.total_commission} EUR"
        )
        return statement

    def _compute_line(self, event: SaleEvent, points_before: int) -> CommissionLedgerLine:
        """Advance the running total by one sale and price it."""
        try:
            points = self.schedule.points_for(event.product_id)
        except UnknownProductError:
            logger.error(f"Unknown product {event.product_id!r} on sale {event.sale_id}")
            raise UnknownProductError(event.product_id, sale_id=event.sale_id, client=event.client_name)

        points_after = points_before + points
        tier = self.schedule.tier_for(points_after)
        crossed = self.schedule.rung(points_after) > self.schedule.rung(points_before)

        commission = Decimal("0")
        if crossed:
            try:
                commission = quantize_money(self.schedule.commission_amount(tier, event.product_id))
            except UnknownTierProductError as e:
                logger.error(f"No rate for {event.product_id!r} in tier {tier} (sale {event.sale_id})")
                raise UnknownTierProductError(
                    e.tier_index, e.product_id, sale_id=event.sale_id, client=event.client_name
                )

        return CommissionLedgerLine(
            sale_event_id=event.sale_id,
            product_id=self.schedule.catalog.canonical(event.product_id),
            client_name=event.client_name,
            points=points,
            tier_at_crossing=tier,
            points_cumulative_after=points_after,
            commission_amount=commission,
            crossed=crossed,
        )
