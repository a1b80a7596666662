"""
Unit Tests for Input Validation
"""

import pytest
from datetime import date
from cvd_engine.exceptions import InvalidSaleEventError, UnknownProductError
from cvd_engine.models import Period, SaleEvent
from cvd_engine.schedule import DEFAULT_SCHEDULE
from cvd_engine.validators import InputValidator

JUNE = Period(2025, 6)


def sale(sale_id=1, seller_id=7, product="Freebox Ultra", day=date(2025, 6, 5), points=None):
    return SaleEvent(sale_id, seller_id, "Jeanne", "Martin", product, day, points)


class TestInputValidator:

    @pytest.fixture
    def validator(self):
        return InputValidator(DEFAULT_SCHEDULE)

    def test_valid_batch(self, validator):
        validator.validate(7, JUNE, [sale(1), sale(2, product="Freebox Pop", points=4)])

    @pytest.mark.parametrize("seller_id", [0, -3, "7", None, True])
    def test_invalid_seller(self, validator, seller_id):
        with pytest.raises(InvalidSaleEventError):
            validator.validate(seller_id, JUNE, [])

    def test_sale_of_another_seller(self, validator):
        with pytest.raises(InvalidSaleEventError) as exc:
            validator.validate(7, JUNE, [sale(seller_id=8)])
        assert exc.value.sale_id == 1

    def test_duplicate_sale_ids(self, validator):
        with pytest.raises(InvalidSaleEventError, match="Duplicate"):
            validator.validate(7, JUNE, [sale(1), sale(1)])

    def test_installation_outside_period(self, validator):
        with pytest.raises(InvalidSaleEventError, match="outside period 2025-06"):
            validator.validate(7, JUNE, [sale(day=date(2025, 7, 1))])

    def test_supplied_points_must_match_catalog(self, validator):
        with pytest.raises(InvalidSaleEventError, match="worth 6 points"):
            validator.validate(7, JUNE, [sale(points=5)])

    def test_supplied_points_for_unknown_product(self, validator):
        with pytest.raises(UnknownProductError) as exc:
            validator.validate(7, JUNE, [sale(product="Freebox Delta", points=3)])
        assert exc.value.sale_id == 1


class TestPeriodParsing:

    @pytest.mark.parametrize("raw", ["2025-06", "2025-6", "6/2025", "06/2025"])
    def test_accepted_formats(self, raw):
        assert str(Period.parse(raw)) == "2025-06"

    @pytest.mark.parametrize("raw", ["juin 2025", "2025-13", "", "2025/06"])
    def test_rejected_formats(self, raw):
        with pytest.raises(InvalidSaleEventError):
            Period.parse(raw)

    def test_period_bounds(self):
        feb = Period(2024, 2)
        assert feb.last_day == date(2024, 2, 29)
        assert feb.contains(date(2024, 2, 1))
        assert not feb.contains(date(2024, 3, 1))


class TestSaleEventFromDict:

    def test_client_record_column_names(self):
        event = SaleEvent.from_dict(
            {"id": 12, "prenom": "Jeanne", "nom": "Martin", "produit": "5G",
             "dateInstallation": "2025-06-14T09:30:00Z"},
            seller_id=7,
        )

        assert event.sale_id == 12
        assert event.seller_id == 7
        assert event.client_name == "Jeanne Martin"
        assert event.installation_date == date(2025, 6, 14)
        assert event.points is None

    def test_missing_fields_become_empty_names(self):
        event = SaleEvent.from_dict(
            {"sale_id": 1, "product_id": "Freebox Pop", "installation_date": "2025-06-01"}, seller_id=7
        )
        assert event.client_given_name == ""
        assert event.client_family_name == ""

    def test_invalid_date(self):
        with pytest.raises(InvalidSaleEventError):
            SaleEvent.from_dict({"id": 1, "produit": "Freebox Pop", "dateInstallation": "yesterday"}, seller_id=7)

    def test_missing_id(self):
        with pytest.raises(InvalidSaleEventError):
            SaleEvent.from_dict({"produit": "Freebox Pop", "dateInstallation": "2025-06-01"}, seller_id=7)
