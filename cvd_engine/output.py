"""
Output Builder

Converts engine results into the JSON shapes expected by the invoice renderer.
Field names are a compatibility contract with the renderer; do not rename them
on one side only.
"""

from decimal import Decimal

from .models import (
    CommissionEstimate,
    CommissionLedgerLine,
    CommissionStatement,
    InvoiceAllocation,
    InvoiceNumberPreview,
)


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places."""
    return round(float(value), 2)


class OutputBuilder:
    """Builds renderer-facing dictionaries."""

    def build_line(self, line: CommissionLedgerLine) -> dict:
        return {
            "produit": line.product_id,
            "client": line.client_name,
            "points": line.points,
            "commission": to_money(line.commission_amount),
            "tranche": line.tier_at_crossing,
            "pointsCumules": line.points_cumulative_after,
        }

    def build_statement(self, statement: CommissionStatement) -> dict:
        """Fiscal statement: ordered lines and totals derived from them."""
        return {
            "vendeurId": statement.seller_id,
            "periode": str(statement.period),
            "ventes": [self.build_line(line) for line in statement.lines],
            "totalCommission": to_money(statement.total_commission),
            "pointsTotal": statement.total_points,
            "nombreInstallations": statement.installations_count,
            "trancheFinale": statement.final_tier,
            "paliersAtteints": list(statement.rungs_reached),
            "commissionsParTranche": {
                str(tier): to_money(amount) for tier, amount in sorted(statement.commission_per_tier.items())
            },
            "isEstimate": False,
        }

    def build_estimate(self, estimate: CommissionEstimate) -> dict:
        return {
            "vendeurId": estimate.seller_id,
            "periode": str(estimate.period),
            "ventes": [self.build_line(line) for line in estimate.lines],
            "totalCommission": to_money(estimate.total_commission),
            "pointsTotal": estimate.total_points,
            "trancheFinale": estimate.final_tier,
            "isEstimate": True,
            "basis": estimate.basis,
            "warnings": list(estimate.warnings),
        }

    def build_allocation(self, allocation: InvoiceAllocation) -> dict:
        return {
            "numeroFacture": allocation.invoice_number,
            "dateFacturation": allocation.issue_date.isoformat(),
            "dateEcheance": allocation.due_date.isoformat(),
            "isExisting": allocation.is_existing,
        }

    def build_preview(self, preview: InvoiceNumberPreview) -> dict:
        return {
            "numeroFacture": preview.invoice_number,
            "periode": preview.period,
            "isPreview": preview.is_preview,
        }
