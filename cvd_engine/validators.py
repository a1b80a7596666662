"""
Input Validation for the CVD Commission Engine

Validates a batch of sale events before any commission is computed.
Raises CommissionError subclasses (all ValueErrors) naming the offending sale.
"""

import logging

from .exceptions import InvalidSaleEventError, MissingClientIdentityError, UnknownProductError
from .models import Period, SaleEvent
from .schedule import CommissionSchedule

logger = logging.getLogger(__name__)


class InputValidator:
    """Validates sale events according to fiscal and business rules."""

    def __init__(self, schedule: CommissionSchedule):
        self.schedule = schedule

    def validate(self, seller_id: int, period: Period, sale_events: list[SaleEvent]) -> None:
        """
        Run all validations. Raises on the first failure; the whole batch is rejected.
        """
        self._validate_seller(seller_id)

        seen_ids = set()
        for event in sale_events:
            if event.sale_id in seen_ids:
                raise InvalidSaleEventError(
                    f"Duplicate sale id in batch: {event.sale_id}", sale_id=event.sale_id
                )
            seen_ids.add(event.sale_id)

            self._validate_ownership(event, seller_id)
            self._validate_period(event, period)
            self._validate_points(event)
            self.validate_client_identity(event)

    def validate_client_identity(self, event: SaleEvent) -> None:
        """Fiscal hard stop: both client names must be present."""
        given = (event.client_given_name or "").strip()
        family = (event.client_family_name or "").strip()
        if not given or not family:
            logger.error(
                f"Fiscal hard stop: sale {event.sale_id} ({event.product_id}) has no complete client name"
            )
            raise MissingClientIdentityError(event.sale_id, event.product_id)

    def _validate_seller(self, seller_id: int) -> None:
        if not isinstance(seller_id, int) or isinstance(seller_id, bool) or seller_id <= 0:
            raise InvalidSaleEventError(f"seller_id must be a positive integer, got: {seller_id!r}")

    def _validate_ownership(self, event: SaleEvent, seller_id: int) -> None:
        if event.seller_id != seller_id:
            raise InvalidSaleEventError(
                f"Sale {event.sale_id} belongs to seller {event.seller_id}, not {seller_id}",
                sale_id=event.sale_id,
                client=event.client_name,
            )

    def _validate_period(self, event: SaleEvent, period: Period) -> None:
        if not period.contains(event.installation_date):
            raise InvalidSaleEventError(
                f"Sale {event.sale_id} was installed on {event.installation_date.isoformat()}, "
                f"outside period {period}",
                sale_id=event.sale_id,
                client=event.client_name,
            )

    def _validate_points(self, event: SaleEvent) -> None:
        """The catalog is authoritative; a supplied weight must agree with it."""
        if event.points is None:
            return
        try:
            expected = self.schedule.points_for(event.product_id)
        except UnknownProductError:
            raise UnknownProductError(event.product_id, sale_id=event.sale_id, client=event.client_name)
        if event.points != expected:
            raise InvalidSaleEventError(
                f"Sale {event.sale_id}: {event.product_id} is worth {expected} points, got {event.points}",
                sale_id=event.sale_id,
                client=event.client_name,
            )
