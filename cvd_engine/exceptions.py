"""
Error taxonomy for the CVD Commission Engine

Input and configuration errors subclass ValueError so every entry point can
treat them as validation failures. Each carries the sale and client that
triggered it, so a blocked invoice can say exactly why it was blocked.
"""


class CommissionError(ValueError):
    """Base class for errors that abort a commission computation."""

    code = "commission_error"

    def __init__(self, message: str, sale_id=None, client: str | None = None):
        super().__init__(message)
        self.message = message
        self.sale_id = sale_id
        self.client = client

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.sale_id is not None:
            payload["sale_id"] = self.sale_id
        if self.client:
            payload["client"] = self.client
        return payload


class UnknownProductError(CommissionError):
    """Product has no point weight in the catalog."""

    code = "unknown_product"

    def __init__(self, product_id: str, sale_id=None, client: str | None = None):
        super().__init__(f"Unknown product: {product_id!r}", sale_id=sale_id, client=client)
        self.product_id = product_id


class UnknownTierProductError(CommissionError):
    """No commission amount configured for a (tier, product) pair."""

    code = "unknown_tier_product"

    def __init__(self, tier_index: int, product_id: str, sale_id=None, client: str | None = None):
        super().__init__(
            f"No commission configured for product {product_id!r} in tier {tier_index}",
            sale_id=sale_id,
            client=client,
        )
        self.tier_index = tier_index
        self.product_id = product_id


class MissingClientIdentityError(CommissionError):
    """A sale has no client name and cannot appear on a fiscal invoice."""

    code = "missing_client_identity"

    def __init__(self, sale_id, product_id: str | None = None):
        super().__init__(
            f"Sale {sale_id} ({product_id or 'unknown product'}) has no client name; "
            "an invoice cannot reference an anonymous sale",
            sale_id=sale_id,
        )
        self.product_id = product_id


class InvalidSaleEventError(CommissionError):
    """Malformed or inconsistent sale event input."""

    code = "invalid_sale_event"


class EstimateNotAllowedError(CommissionError):
    """An estimate was handed to a path that produces fiscal documents."""

    code = "estimate_not_allowed"


class InvoiceAllocationError(RuntimeError):
    """The invoice store failed. Safe to retry: generate_or_get is idempotent."""

    retryable = True

    def __init__(self, message: str, seller_id: int | None = None, period: str | None = None):
        super().__init__(message)
        self.message = message
        self.seller_id = seller_id
        self.period = period

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": "invoice_allocation_failed",
            "retryable": self.retryable,
        }
