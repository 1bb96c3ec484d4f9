"""Invoice totals calculation.

Pure functions, no I/O. Every intermediate value is rounded half-up to the
currency minor unit as soon as it is produced, so the totals always add up
to what is printed on the invoice.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from pydantic import ValidationError

from invoice_ai.extraction.schema import ComputedInvoice, InvoiceDraft
from invoice_ai.pipeline.errors import CalculationError

HUNDRED = Decimal(100)

# Significant digits for invoice arithmetic (the decimal default is 28)
MONEY_PRECISION = 60


def rounding_unit_for(decimal_places: int) -> Decimal:
    """Return the minor unit for a number of decimal places (2 -> 0.01)."""
    return Decimal(1).scaleb(-decimal_places)


def round_money(value: Decimal, unit: Decimal) -> Decimal:
    """Round half-up to the given minor unit."""
    return value.quantize(unit, rounding=ROUND_HALF_UP)


def compute_invoice(
    draft: InvoiceDraft, rounding_unit: Decimal = Decimal("0.01")
) -> ComputedInvoice:
    """Compute line amounts, subtotal, tax and total for a validated draft.

    Args:
        draft: Validated invoice draft
        rounding_unit: Currency minor unit (e.g. Decimal("0.01"))

    Returns:
        New ComputedInvoice; the draft is not modified

    Raises:
        CalculationError: If the draft violates invariants validation should guarantee
    """
    problems = _check_draft(draft)
    if problems:
        raise CalculationError("Invoice totals could not be calculated.", details=problems)

    try:
        with localcontext() as context:
            context.prec = MONEY_PRECISION
            line_amounts = tuple(
                round_money(item.quantity * item.unit_price, rounding_unit)
                for item in draft.items
            )
            subtotal = round_money(sum(line_amounts, Decimal(0)), rounding_unit)
            tax_amount = round_money(subtotal * draft.tax_rate_percent / HUNDRED, rounding_unit)
            total = subtotal + tax_amount

            return ComputedInvoice(
                **draft.model_dump(),
                line_amounts=line_amounts,
                subtotal=subtotal,
                tax_amount=tax_amount,
                total=total,
                rounding_unit=rounding_unit,
            )
    except (InvalidOperation, ValidationError) as e:
        raise CalculationError(
            "Invoice totals could not be calculated.", details=[str(e)]
        ) from e


def _check_draft(draft: InvoiceDraft) -> list[str]:
    problems: list[str] = []
    if not draft.items:
        problems.append("items: empty")
    for index, item in enumerate(draft.items):
        if not item.quantity.is_finite() or item.quantity <= 0:
            problems.append(f"items[{index}].quantity: {item.quantity}")
        if not item.unit_price.is_finite() or item.unit_price < 0:
            problems.append(f"items[{index}].unitPrice: {item.unit_price}")
    rate = draft.tax_rate_percent
    if not rate.is_finite() or not Decimal(0) <= rate <= HUNDRED:
        problems.append(f"taxRatePercent: {draft.tax_rate_percent}")
    return problems
