"""Unit tests for invoice totals calculation."""

from decimal import Decimal

import pytest

from invoice_ai.extraction.schema import MAX_ITEM_VALUE, ComputedInvoice, InvoiceDraft, LineItem
from invoice_ai.pipeline.calculator import (
    compute_invoice,
    round_money,
    rounding_unit_for,
)
from invoice_ai.pipeline.errors import CalculationError, ErrorKind

CENT = Decimal("0.01")


def make_draft(*items: tuple[str, str, str], tax: str = "0") -> InvoiceDraft:
    return InvoiceDraft(
        client_name="Acme",
        items=tuple(
            LineItem(description=d, quantity=Decimal(q), unit_price=Decimal(p)) for d, q, p in items
        ),
        tax_rate_percent=Decimal(tax),
    )


def assert_invariants(invoice: ComputedInvoice) -> None:
    unit = invoice.rounding_unit
    assert len(invoice.items) == len(invoice.line_amounts)
    for item, amount in zip(invoice.items, invoice.line_amounts, strict=True):
        assert amount == round_money(item.quantity * item.unit_price, unit)
    assert invoice.subtotal == round_money(sum(invoice.line_amounts, Decimal(0)), unit)
    assert invoice.tax_amount == round_money(
        invoice.subtotal * invoice.tax_rate_percent / 100, unit
    )
    assert invoice.total == invoice.subtotal + invoice.tax_amount


def test_single_item_no_tax() -> None:
    invoice = compute_invoice(make_draft(("Logo design, 3 options, PNG+vector", "1", "120")))

    assert invoice.line_amounts == (Decimal("120.00"),)
    assert invoice.subtotal == Decimal("120.00")
    assert invoice.tax_amount == Decimal("0.00")
    assert invoice.total == Decimal("120.00")
    assert str(invoice.total) == "120.00"


def test_rounding_per_line_and_tax() -> None:
    invoice = compute_invoice(make_draft(("Consulting", "2", "19.995"), tax="18"))

    assert invoice.line_amounts == (Decimal("39.99"),)
    assert invoice.subtotal == Decimal("39.99")
    assert invoice.tax_amount == Decimal("7.20")
    assert invoice.total == Decimal("47.19")


def test_round_half_up_not_bankers() -> None:
    assert round_money(Decimal("0.125"), CENT) == Decimal("0.13")
    assert round_money(Decimal("0.135"), CENT) == Decimal("0.14")
    assert round_money(Decimal("2.5"), Decimal("1")) == Decimal("3")


def test_each_line_rounded_before_summing() -> None:
    # 3 x 0.005 rounds to 0.01 per line; deferred rounding would give 0.02
    invoice = compute_invoice(make_draft(*[("Item", "1", "0.005")] * 3))

    assert invoice.line_amounts == (Decimal("0.01"),) * 3
    assert invoice.subtotal == Decimal("0.03")


def test_zero_price_item() -> None:
    invoice = compute_invoice(make_draft(("Logo", "1", "120"), ("Free revision", "1", "0")))
    assert invoice.line_amounts == (Decimal("120.00"), Decimal("0.00"))
    assert invoice.total == Decimal("120.00")


@pytest.mark.parametrize(
    ("items", "tax"),
    [
        ([("A", "3", "33.333"), ("B", "0.5", "99.99")], "7.5"),
        ([("A", "1.333", "2.675"), ("B", "7", "0.015")], "19"),
        ([("A", "10", "1.005")], "100"),
        ([("A", "2", "0"), ("B", "1", "1234567.891")], "0"),
    ],
)
def test_invariants_hold(items: list[tuple[str, str, str]], tax: str) -> None:
    assert_invariants(compute_invoice(make_draft(*items, tax=tax)))


def test_deterministic_across_runs() -> None:
    draft = make_draft(("A", "3", "33.333"), ("B", "0.5", "99.99"), tax="7.5")
    first = compute_invoice(draft)

    for _ in range(5):
        again = compute_invoice(draft)
        assert again.model_dump_json() == first.model_dump_json()


def test_recompute_from_computed_draft_is_idempotent() -> None:
    invoice = compute_invoice(make_draft(("Consulting", "2", "19.995"), tax="18"))
    again = compute_invoice(invoice.to_draft())

    assert (again.line_amounts, again.subtotal, again.tax_amount, again.total) == (
        invoice.line_amounts,
        invoice.subtotal,
        invoice.tax_amount,
        invoice.total,
    )


def test_draft_is_not_modified() -> None:
    draft = make_draft(("Consulting", "2", "19.995"), tax="18")
    before = draft.model_dump()

    compute_invoice(draft)

    assert draft.model_dump() == before


def test_configurable_minor_unit() -> None:
    unit = rounding_unit_for(0)
    invoice = compute_invoice(make_draft(("A", "1", "10.5"), tax="10"), rounding_unit=unit)

    assert unit == Decimal("1")
    assert invoice.subtotal == Decimal("11")
    assert invoice.tax_amount == Decimal("1")
    assert invoice.total == Decimal("12")


def test_invalid_draft_raises_calculation_error() -> None:
    bad_item = LineItem.model_construct(
        description="Bad", quantity=Decimal("-1"), unit_price=Decimal("5")
    )
    draft = InvoiceDraft.model_construct(
        client_name="Acme",
        client_address=None,
        items=(bad_item,),
        tax_rate_percent=Decimal("0"),
        currency_code="USD",
        notes=None,
    )

    with pytest.raises(CalculationError) as exc_info:
        compute_invoice(draft)
    assert exc_info.value.kind is ErrorKind.CALCULATION_ERROR
    assert exc_info.value.retryable is False


def test_empty_items_raise_calculation_error() -> None:
    draft = InvoiceDraft.model_construct(
        client_name="Acme",
        client_address=None,
        items=(),
        tax_rate_percent=Decimal("0"),
        currency_code="USD",
        notes=None,
    )
    with pytest.raises(CalculationError):
        compute_invoice(draft)


def test_computed_invoice_rejects_misaligned_amounts() -> None:
    with pytest.raises(ValueError):
        ComputedInvoice(
            client_name="Acme",
            items=(LineItem(description="A", quantity=Decimal(1), unit_price=Decimal(1)),),
            line_amounts=(),
            subtotal=Decimal("1.00"),
            tax_amount=Decimal("0.00"),
            total=Decimal("1.00"),
        )


def test_largest_accepted_values_compute_exactly() -> None:
    top = str(MAX_ITEM_VALUE)
    draft = make_draft(*[("Bulk", top, top)] * 1000, tax="10")

    invoice = compute_invoice(draft)

    assert invoice.line_amounts[0] == Decimal("1e24")
    assert invoice.subtotal == Decimal("1e27")
    assert invoice.tax_amount == Decimal("1e26")
    assert invoice.total == Decimal("1.1e27")
    assert invoice.subtotal.as_tuple().exponent == -2


def test_line_item_rejects_values_above_limit() -> None:
    with pytest.raises(ValueError):
        LineItem(description="Bulk", quantity=MAX_ITEM_VALUE + 1, unit_price=Decimal(1))
