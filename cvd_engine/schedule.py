"""
Commission Schedule

Static reference data for the CVD engine: product point weights, tier
brackets, and the per-tier commission amounts. A schedule is a plain value
passed into the calculators, so different fiscal periods can be computed
against different versions without touching module state.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from .exceptions import UnknownProductError, UnknownTierProductError

RUNG_SIZE = 5


@dataclass(frozen=True)
class ProductPointCatalog:
    """Maps a product identifier to its point weight."""

    weights: dict[str, int]
    aliases: dict[str, str] = field(default_factory=dict)

    def canonical(self, product_id: str) -> str:
        name = (product_id or "").strip()
        return self.aliases.get(name, name)

    def points_for(self, product_id: str) -> int:
        """Point weight of a product. Fiscal path: unknown products are fatal."""
        name = self.canonical(product_id)
        if name not in self.weights:
            raise UnknownProductError(product_id)
        return self.weights[name]

    def points_for_or_zero(self, product_id: str) -> int:
        """Preview/estimate only: unknown products weigh nothing."""
        return self.weights.get(self.canonical(product_id), 0)

    @property
    def max_weight(self) -> int:
        return max(self.weights.values(), default=0)


@dataclass(frozen=True)
class CommissionTier:
    """One cumulative-point bracket and its commission table."""

    tier_index: int
    min_points: int
    max_points: int | None  # None = open-ended
    per_product_amount: dict[str, Decimal]
    label: str = ""

    def contains(self, points: int) -> bool:
        if points < self.min_points:
            return False
        return self.max_points is None or points <= self.max_points

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionTier":
        upper = data.get("max_points")
        return cls(
            tier_index=int(data["tier_index"]),
            min_points=int(data["min_points"]),
            max_points=int(upper) if upper is not None else None,
            per_product_amount={
                name: Decimal(str(amount)) for name, amount in data["per_product_amount"].items()
            },
            label=data.get("label", ""),
        )


@dataclass(frozen=True)
class TierThresholdTable:
    """Maps cumulative points to a tier, and (tier, product) to an amount."""

    tiers: tuple[CommissionTier, ...]

    def tier_for(self, cumulative_points: int) -> int:
        """
        Tier in effect for a cumulative total.

        Boundaries are inclusive on the upper side of each bracket:
        25 -> 1, 26 -> 2, 50 -> 2, 51 -> 3, 100 -> 3, 101 -> 4.
        """
        for tier in self.tiers:
            if tier.contains(cumulative_points):
                return tier.tier_index
        # Below the first bracket (negative totals never occur in practice)
        return self.tiers[0].tier_index

    def get(self, tier_index: int) -> CommissionTier | None:
        for tier in self.tiers:
            if tier.tier_index == tier_index:
                return tier
        return None

    def commission_amount(self, tier_index: int, product_id: str) -> Decimal:
        tier = self.get(tier_index)
        if tier is None or product_id not in tier.per_product_amount:
            raise UnknownTierProductError(tier_index, product_id)
        return tier.per_product_amount[product_id]


@dataclass(frozen=True)
class CommissionSchedule:
    """A versioned, injectable commission configuration."""

    catalog: ProductPointCatalog
    thresholds: TierThresholdTable
    version: str = "default"
    rung_size: int = RUNG_SIZE

    def points_for(self, product_id: str) -> int:
        return self.catalog.points_for(product_id)

    def tier_for(self, cumulative_points: int) -> int:
        return self.thresholds.tier_for(cumulative_points)

    def commission_amount(self, tier_index: int, product_id: str) -> Decimal:
        return self.thresholds.commission_amount(tier_index, self.catalog.canonical(product_id))

    def rung(self, cumulative_points: int) -> int:
        return cumulative_points // self.rung_size

    def tier_details(self, tier_index: int) -> dict:
        """Bracket, label and commission table of one tier, for display."""
        tier = self.thresholds.get(tier_index)
        if tier is None:
            raise ValueError(f"Invalid tier: {tier_index}")
        upper = "∞" if tier.max_points is None else tier.max_points
        return {
            "numero": tier.tier_index,
            "nom": tier.label,
            "pointsRequis": f"{tier.min_points} - {upper} points",
            "baremeCommissions": {
                name: float(amount) for name, amount in tier.per_product_amount.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionSchedule":
        tiers = sorted(
            (CommissionTier.from_dict(t) for t in data["tiers"]),
            key=lambda t: t.min_points,
        )
        return cls(
            catalog=ProductPointCatalog(
                weights={name: int(w) for name, w in data["products"].items()},
                aliases=dict(data.get("aliases", {})),
            ),
            thresholds=TierThresholdTable(tiers=tuple(tiers)),
            version=str(data.get("version", "custom")),
            rung_size=int(data.get("rung_size", RUNG_SIZE)),
        )


# Official schedule (EUR), revised 2025-08-28
DEFAULT_SCHEDULE_DATA = {
    "version": "2025-08-28",
    "products": {
        "Freebox Ultra": 6,
        "Freebox Essentiel": 5,
        "Freebox Pop": 4,
        "Forfait 5G": 1,
    },
    "aliases": {"5G": "Forfait 5G"},
    "tiers": [
        {
            "tier_index": 1,
            "min_points": 0,
            "max_points": 25,
            "label": "Débutant",
            "per_product_amount": {
                "Freebox Ultra": "50", "Freebox Essentiel": "50", "Freebox Pop": "50", "Forfait 5G": "10",
            },
        },
        {
            "tier_index": 2,
            "min_points": 26,
            "max_points": 50,
            "label": "Confirmé",
            "per_product_amount": {
                "Freebox Ultra": "80", "Freebox Essentiel": "70", "Freebox Pop": "60", "Forfait 5G": "10",
            },
        },
        {
            "tier_index": 3,
            "min_points": 51,
            "max_points": 100,
            "label": "Expert",
            "per_product_amount": {
                "Freebox Ultra": "100", "Freebox Essentiel": "90", "Freebox Pop": "70", "Forfait 5G": "10",
            },
        },
        {
            "tier_index": 4,
            "min_points": 101,
            "max_points": None,
            "label": "Champion",
            "per_product_amount": {
                "Freebox Ultra": "120", "Freebox Essentiel": "100", "Freebox Pop": "90", "Forfait 5G": "10",
            },
        },
    ],
}

DEFAULT_SCHEDULE = CommissionSchedule.from_dict(DEFAULT_SCHEDULE_DATA)
