"""
Integration Tests for the Commission Processor

Full pipeline from request dictionaries to renderer output, with the invoice
store on a temporary SQLite file.
"""

import pytest
from datetime import datetime, timezone

from cvd_engine import CommissionProcessor, FiscalInvoiceAllocator
from cvd_engine.config import Settings
from cvd_engine.db import create_tables, init_engine, make_session_factory
from cvd_engine.exceptions import (
    EstimateNotAllowedError,
    InvalidSaleEventError,
    InvoiceAllocationError,
    MissingClientIdentityError,
)
from cvd_engine.models import CommissionEstimate, Period


def june_batch(products, seller_id=7):
    return {
        "vendeurId": seller_id,
        "periode": "2025-06",
        "ventes": [
            {
                "id": i + 1,
                "prenom": f"Prenom{i + 1}",
                "nom": f"Nom{i + 1}",
                "produit": product,
                "dateInstallation": f"2025-06-{i + 1:02d}",
            }
            for i, product in enumerate(products)
        ],
    }


@pytest.fixture
def processor(tmp_path):
    engine = init_engine(f"sqlite:///{tmp_path / 'invoices.db'}")
    create_tables(engine)
    allocator = FiscalInvoiceAllocator(
        make_session_factory(engine),
        clock=lambda: datetime(2025, 7, 1, 9, 30, tzinfo=timezone.utc),
    )
    yield CommissionProcessor(allocator=allocator)
    engine.dispose()


class TestComputeFromDict:

    def test_statement_output(self, processor):
        result = processor.compute_from_dict(june_batch(["Freebox Ultra"] * 4 + ["5G"]))

        assert result["vendeurId"] == 7
        assert result["periode"] == "2025-06"
        assert result["totalCommission"] == 210.0
        assert result["pointsTotal"] == 25
        assert result["nombreInstallations"] == 5
        assert result["trancheFinale"] == 1
        assert result["paliersAtteints"] == [5, 10, 15, 20, 25]
        assert result["commissionsParTranche"] == {"1": 210.0}
        assert result["isEstimate"] is False

    def test_line_shape(self, processor):
        result = processor.compute_from_dict(june_batch(["Freebox Pop", "Freebox Ultra"]))

        assert result["ventes"][1] == {
            "produit": "Freebox Ultra",
            "client": "Prenom2 Nom2",
            "points": 6,
            "commission": 50.0,
            "tranche": 1,
            "pointsCumules": 10,
        }

    def test_snake_case_keys(self, processor):
        data = {
            "seller_id": 7,
            "period": "6/2025",
            "sales": [{
                "sale_id": 1, "client_given_name": "Jeanne", "client_family_name": "Martin",
                "product_id": "Freebox Essentiel", "installation_date": "2025-06-03",
            }],
        }
        assert processor.compute_from_dict(data)["totalCommission"] == 50.0

    def test_missing_key_fields(self, processor):
        with pytest.raises(InvalidSaleEventError):
            processor.compute_from_dict({"ventes": []})

    def test_ventes_must_be_list(self, processor):
        with pytest.raises(InvalidSaleEventError):
            processor.compute_from_dict({"vendeurId": 7, "periode": "2025-06", "ventes": "none"})


class TestEstimateFromDict:

    def test_estimate_from_sales_is_flagged(self, processor):
        data = june_batch(["Freebox Ultra"])
        data["ventes"][0]["prenom"] = ""
        data["ventes"][0]["nom"] = ""

        result = processor.estimate_from_dict(data)

        assert result["isEstimate"] is True
        assert result["basis"] == "sales"
        assert result["warnings"] == ["Sale 1: incomplete client name"]

    def test_estimate_from_totals(self, processor):
        result = processor.estimate_from_dict(
            {"vendeurId": 7, "periode": "2025-06", "pointsTotal": 12, "nombreInstallations": 3}
        )

        assert result["isEstimate"] is True
        assert result["basis"] == "totals"
        assert result["totalCommission"] == 110.0
        assert result["ventes"] == []

    def test_totals_estimate_requires_points(self, processor):
        with pytest.raises(InvalidSaleEventError):
            processor.estimate_from_dict({"vendeurId": 7, "periode": "2025-06"})


class TestInvoiceFromDict:

    def test_generate_then_get(self, processor):
        first = processor.invoice_from_dict(june_batch(["Freebox Ultra"]))
        second = processor.invoice_from_dict(june_batch(["Freebox Ultra"]))

        assert first["facture"] == {
            "numeroFacture": "FA 2025 06 00000001",
            "dateFacturation": "2025-07-01",
            "dateEcheance": "2025-07-31",
            "isExisting": False,
        }
        assert second["facture"]["numeroFacture"] == "FA 2025 06 00000001"
        assert second["facture"]["isExisting"] is True
        assert first["commission"]["totalCommission"] == 50.0

    def test_hard_stop_consumes_no_number(self, processor):
        data = june_batch(["Freebox Ultra", "Freebox Pop"])
        data["ventes"][1]["nom"] = ""

        with pytest.raises(MissingClientIdentityError):
            processor.invoice_from_dict(data)

        assert processor.allocator.get(7, "2025-06") is None
        assert processor.preview_number_from_period("2025-06")["numeroFacture"] == "FA 2025 06 00000001"

    def test_unknown_product_consumes_no_number(self, processor):
        with pytest.raises(ValueError):
            processor.invoice_from_dict(june_batch(["Freebox Delta"]))

        assert processor.allocator.get(7, "2025-06") is None


class TestIssueInvoice:

    def test_estimate_is_refused(self, processor):
        estimate = CommissionEstimate(seller_id=7, period=Period(2025, 6), basis="totals")

        with pytest.raises(EstimateNotAllowedError):
            processor.issue_invoice(estimate)
        assert processor.allocator.get(7, "2025-06") is None

    @pytest.mark.parametrize("result", [object(), {"seller_id": 7, "period": "2025-06"}, None])
    def test_other_objects_are_refused(self, processor, result):
        with pytest.raises(EstimateNotAllowedError):
            processor.issue_invoice(result)

    def test_statement_is_accepted(self, processor):
        statement = processor.compute(7, "2025-06", [])
        allocation = processor.issue_invoice(statement)

        assert allocation.invoice_number == "FA 2025 06 00000001"

    def test_no_store_configured(self):
        processor = CommissionProcessor()
        statement = processor.compute(7, "2025-06", [])

        with pytest.raises(InvoiceAllocationError):
            processor.issue_invoice(statement)


class TestFromSettings:

    def test_unreachable_store_does_not_block_compute(self, tmp_path):
        settings = Settings(database_url=f"sqlite:///{tmp_path / 'missing' / 'x.db'}")
        processor = CommissionProcessor.from_settings(settings)

        assert processor.compute_from_dict(june_batch(["Freebox Ultra"]))["totalCommission"] == 50.0
        with pytest.raises(InvoiceAllocationError):
            processor.invoice_from_dict(june_batch(["Freebox Ultra"]))

    def test_tables_created_on_first_invoice(self, tmp_path):
        processor = CommissionProcessor.from_settings(Settings(database_url=f"sqlite:///{tmp_path / 'x.db'}"))

        result = processor.invoice_from_dict(june_batch(["Freebox Ultra"]))
        assert result["facture"]["numeroFacture"] == "FA 2025 06 00000001"


class TestPreviewAndTiers:

    def test_preview_number_output(self, processor):
        assert processor.preview_number_from_period("6/2025") == {
            "numeroFacture": "FA 2025 06 00000001",
            "periode": "2025-06",
            "isPreview": True,
        }

    def test_tier_details(self, processor):
        assert processor.tier_details(3)["nom"] == "Expert"
