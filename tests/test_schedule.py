"""
Unit Tests for the Commission Schedule

Tests verify product weights, tier boundaries and the commission table.
"""

import pytest
from decimal import Decimal
from cvd_engine.exceptions import UnknownProductError, UnknownTierProductError
from cvd_engine.schedule import DEFAULT_SCHEDULE, CommissionSchedule


class TestProductPointCatalog:
    """Test product point weights."""

    @pytest.fixture
    def catalog(self):
        return DEFAULT_SCHEDULE.catalog

    @pytest.mark.parametrize("product,points", [
        ("Freebox Ultra", 6),
        ("Freebox Essentiel", 5),
        ("Freebox Pop", 4),
        ("Forfait 5G", 1),
    ])
    def test_known_products(self, catalog, product, points):
        assert catalog.points_for(product) == points

    def test_alias_resolves_to_canonical_product(self, catalog):
        """'5G' is the same product as 'Forfait 5G'."""
        assert catalog.points_for("5G") == 1
        assert catalog.canonical("5G") == "Forfait 5G"

    def test_unknown_product_fails(self, catalog):
        """Unknown products never default to 0 on the fiscal path."""
        with pytest.raises(UnknownProductError) as exc:
            catalog.points_for("Freebox Delta")
        assert exc.value.product_id == "Freebox Delta"

    def test_unknown_product_is_zero_in_preview_lookup(self, catalog):
        assert catalog.points_for_or_zero("Freebox Delta") == 0

    def test_max_weight_is_below_two_rungs(self, catalog):
        """With the default catalog a single sale can cross at most one rung."""
        assert catalog.max_weight < 2 * DEFAULT_SCHEDULE.rung_size


class TestTierThresholds:
    """Test cumulative point brackets."""

    @pytest.mark.parametrize("points,tier", [
        (0, 1),
        (1, 1),
        (25, 1),
        (26, 2),
        (50, 2),
        (51, 3),
        (100, 3),
        (101, 4),
        (500, 4),
    ])
    def test_boundaries_belong_to_lower_tier(self, points, tier):
        assert DEFAULT_SCHEDULE.tier_for(points) == tier


class TestCommissionTable:
    """Test per-tier, per-product commission amounts."""

    @pytest.mark.parametrize("tier,product,amount", [
        (1, "Freebox Ultra", "50"),
        (1, "Freebox Pop", "50"),
        (1, "Forfait 5G", "10"),
        (2, "Freebox Ultra", "80"),
        (2, "Freebox Essentiel", "70"),
        (2, "Freebox Pop", "60"),
        (3, "Freebox Ultra", "100"),
        (3, "Freebox Essentiel", "90"),
        (3, "Freebox Pop", "70"),
        (4, "Freebox Ultra", "120"),
        (4, "Freebox Essentiel", "100"),
        (4, "Freebox Pop", "90"),
        (4, "Forfait 5G", "10"),
    ])
    def test_official_rates(self, tier, product, amount):
        assert DEFAULT_SCHEDULE.commission_amount(tier, product) == Decimal(amount)

    def test_alias_priced_like_canonical_product(self):
        assert DEFAULT_SCHEDULE.commission_amount(3, "5G") == Decimal("10")

    def test_unknown_tier_fails(self):
        with pytest.raises(UnknownTierProductError):
            DEFAULT_SCHEDULE.commission_amount(5, "Freebox Ultra")

    def test_unknown_product_in_tier_fails(self):
        with pytest.raises(UnknownTierProductError) as exc:
            DEFAULT_SCHEDULE.thresholds.commission_amount(2, "Freebox Delta")
        assert exc.value.tier_index == 2


class TestTierDetails:
    """Test display details of a tier."""

    def test_tier_two_details(self):
        details = DEFAULT_SCHEDULE.tier_details(2)

        assert details["numero"] == 2
        assert details["nom"] == "Confirmé"
        assert details["pointsRequis"] == "26 - 50 points"
        assert details["baremeCommissions"]["Freebox Ultra"] == 80.0

    def test_open_ended_tier(self):
        assert DEFAULT_SCHEDULE.tier_details(4)["pointsRequis"] == "101 - ∞ points"

    def test_invalid_tier(self):
        with pytest.raises(ValueError):
            DEFAULT_SCHEDULE.tier_details(9)


class TestScheduleFromDict:
    """Test versioned schedules built from configuration."""

    def test_custom_schedule_is_independent_of_default(self):
        schedule = CommissionSchedule.from_dict({
            "version": "2026-01",
            "products": {"Box": 3},
            "tiers": [
                {"tier_index": 1, "min_points": 0, "max_points": 9, "per_product_amount": {"Box": 5}},
                {"tier_index": 2, "min_points": 10, "max_points": None, "per_product_amount": {"Box": "7.5"}},
            ],
        })

        assert schedule.version == "2026-01"
        assert schedule.tier_for(9) == 1
        assert schedule.tier_for(10) == 2
        assert schedule.commission_amount(2, "Box") == Decimal("7.5")
        assert DEFAULT_SCHEDULE.catalog.points_for_or_zero("Box") == 0
