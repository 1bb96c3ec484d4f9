"""Invoice data models for draft extraction and computed totals.

The provider is asked for camelCase keys; the validator maps them onto
these snake_case models.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Largest accepted quantity or unit price
MAX_ITEM_VALUE = Decimal("1e12")


class _InvoiceModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class LineItem(_InvoiceModel):
    """One billable entry on an invoice."""

    description: str = Field(..., min_length=1, description="What was delivered")
    quantity: Decimal = Field(..., gt=0, le=MAX_ITEM_VALUE, description="Billed quantity")
    unit_price: Decimal = Field(..., ge=0, le=MAX_ITEM_VALUE, description="Price per unit")


class InvoiceDraft(_InvoiceModel):
    """Typed invoice draft produced by validation.

    Immutable: edits produce a new draft via ``model_copy(update=...)``.
    """

    client_name: str = Field(..., min_length=1, description="Customer name")
    client_address: str | None = Field(None, description="Customer address")
    items: tuple[LineItem, ...] = Field(..., min_length=1, description="Ordered line items")
    tax_rate_percent: Decimal = Field(
        Decimal("0"), ge=0, le=100, description="Tax rate as a percentage"
    )
    currency_code: str = Field("USD", min_length=3, max_length=3, description="ISO 4217 code")
    notes: str | None = Field(None, description="Free-form notes for the invoice")


class ComputedInvoice(InvoiceDraft):
    """Invoice draft with monetary totals.

    Either fully computed or not produced at all: line amounts must align
    with items one to one.
    """

    line_amounts: tuple[Decimal, ...] = Field(..., description="Rounded amount per line item")
    subtotal: Decimal = Field(..., description="Rounded sum of line amounts")
    tax_amount: Decimal = Field(..., description="Rounded tax on the subtotal")
    total: Decimal = Field(..., description="Subtotal plus tax")
    rounding_unit: Decimal = Field(Decimal("0.01"), gt=0, description="Currency minor unit")

    @model_validator(mode="after")
    def _check_alignment(self) -> "ComputedInvoice":
        if len(self.line_amounts) != len(self.items):
            raise ValueError(
                f"line_amounts has {len(self.line_amounts)} entries for {len(self.items)} items"
            )
        if self.total != self.subtotal + self.tax_amount:
            raise ValueError("total must equal subtotal + tax_amount")
        return self

    def to_draft(self) -> InvoiceDraft:
        """Return the draft portion of this invoice."""
        return InvoiceDraft.model_validate(
            self.model_dump(include=set(InvoiceDraft.model_fields))
        )
