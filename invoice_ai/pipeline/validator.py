"""Schema validation and coercion of candidate invoice trees.

Provider output is never trusted: every field goes through an explicit
coercion rule here. Recoverable problems (missing client name, missing
price, one bad line) become warnings; only a draft with no usable items
fails.
"""

import logging
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel

from invoice_ai.extraction.schema import MAX_ITEM_VALUE, InvoiceDraft, LineItem
from invoice_ai.pipeline.errors import InvoiceValidationError
from invoice_ai.shared.config import Settings

logger = logging.getLogger(__name__)

NO_VALID_ITEMS = "NoValidItems"

CLIENT_NAME_KEYS = ("clientName", "client_name", "client", "customerName", "customer_name")
CLIENT_ADDRESS_KEYS = ("clientAddress", "client_address", "address")
ITEMS_KEYS = ("items", "lineItems", "line_items")
DESCRIPTION_KEYS = ("description", "name", "title")
QUANTITY_KEYS = ("quantity", "qty")
UNIT_PRICE_KEYS = ("unitPrice", "unit_price", "price", "rate")
TAX_RATE_KEYS = ("taxRatePercent", "tax_rate_percent", "taxRate", "tax_rate", "tax")
CURRENCY_KEYS = ("currencyCode", "currency_code", "currency")
NOTES_KEYS = ("notes", "note")

CURRENCY_SYMBOLS = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
}

_CURRENCY_CODE = re.compile(r"^[A-Za-z]{3}$")
_CURRENCY_AFFIX = r"(?:[A-Za-z]{3}|[$€£¥₹])"
_AMOUNT = re.compile(
    rf"^(?P<sign>[-+]?)\s*(?:{_CURRENCY_AFFIX}\s*)?(?P<inner_sign>[-+]?)"
    rf"(?P<number>[\d.,]+)(?P<exponent>[eE][-+]?\d+)?\s*(?:{_CURRENCY_AFFIX})?$"
)
_PLAIN_NUMBER = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")
_GROUPED_POINT_DECIMAL = re.compile(r"^\d{1,3}(?:,\d{3})+(?:\.\d+)?$")  # 1,234.56
_GROUPED_COMMA_DECIMAL = re.compile(r"^\d{1,3}(?:\.\d{3})+,\d+$")  # 1.234,56
_COMMA_DECIMAL = re.compile(r"^\d+,\d+$")  # 19,99


class DraftValidation(BaseModel):
    """Result of validating a candidate tree.

    Attributes:
        draft: Fully-typed invoice draft
        warnings: Non-fatal problems found while coercing (dropped items, defaults)
    """

    draft: InvoiceDraft
    warnings: list[str] = []


def coerce_decimal(value: Any, allow_percent: bool = False) -> Decimal | None:
    """Coerce a loosely-typed value into a finite Decimal.

    Accepts ints, floats and numeric strings with one leading or trailing
    currency symbol or code, thousands grouping and exponents ("$1,200.50",
    "1.234,56", "120 USD", "1e3", "18%" when allow_percent). Anything that is
    not a single number ("2 x 3", "1/2") is rejected rather than guessed.

    Returns:
        Decimal value, or None if the value is not numeric
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if not isinstance(value, str):
        return None

    text = value.strip().replace("\u2212", "-")
    if allow_percent and text.endswith("%"):
        text = text[:-1].rstrip()

    match = _AMOUNT.match(text)
    if match is None or (match["sign"] and match["inner_sign"]):
        return None

    number = match["number"]
    if match["exponent"]:
        if not _PLAIN_NUMBER.match(number):
            return None
        number += match["exponent"]
    elif _GROUPED_POINT_DECIMAL.match(number):
        number = number.replace(",", "")
    elif _GROUPED_COMMA_DECIMAL.match(number):
        number = number.replace(".", "").replace(",", ".")
    elif _COMMA_DECIMAL.match(number):
        number = number.replace(",", ".")
    elif not _PLAIN_NUMBER.match(number):
        return None

    try:
        amount = Decimal(match["sign"] + match["inner_sign"] + number)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def _first_present(tree: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in tree and tree[key] is not None:
            return tree[key]
    return None


def _coerce_text(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str | int | float | Decimal):
        text = str(value).strip()
        return text or None
    return None


class InvoiceValidator:
    """Validates candidate trees against the InvoiceDraft shape."""

    def __init__(self, settings: Settings) -> None:
        """Initialize validator with defaults from settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    def validate(self, tree: Any) -> DraftValidation:
        """Validate and coerce a candidate tree into an InvoiceDraft.

        Args:
            tree: Untyped output of the response parser

        Returns:
            DraftValidation with the typed draft and any warnings

        Raises:
            InvoiceValidationError: If no usable line items remain
        """
        warnings: list[str] = []

        if isinstance(tree, list):
            tree = {"items": tree}
        elif isinstance(tree, dict) and isinstance(tree.get("invoice"), dict):
            tree = tree["invoice"]
        if not isinstance(tree, dict):
            raise InvoiceValidationError(
                "The AI response did not contain invoice data.",
                subkind=NO_VALID_ITEMS,
                details=["root: expected an object"],
            )

        items = self._validate_items(_first_present(tree, ITEMS_KEYS), warnings)

        client_name = _coerce_text(_first_present(tree, CLIENT_NAME_KEYS))
        if client_name is None:
            client_name = self.settings.default_client_name
            warnings.append(f"clientName: missing, using '{client_name}'")

        draft = InvoiceDraft(
            client_name=client_name,
            client_address=_coerce_text(_first_present(tree, CLIENT_ADDRESS_KEYS)),
            items=tuple(items),
            tax_rate_percent=self._validate_tax_rate(
                _first_present(tree, TAX_RATE_KEYS), warnings
            ),
            currency_code=self._validate_currency(_first_present(tree, CURRENCY_KEYS), warnings),
            notes=_coerce_text(_first_present(tree, NOTES_KEYS)),
        )

        for warning in warnings:
            logger.warning(f"Draft validation: {warning}")

        return DraftValidation(draft=draft, warnings=warnings)

    def _validate_items(self, raw_items: Any, warnings: list[str]) -> list[LineItem]:
        if isinstance(raw_items, dict):
            raw_items = [raw_items]
        if not isinstance(raw_items, list) or not raw_items:
            raise InvoiceValidationError(
                "No line items could be found in the text. Add items with prices and try again.",
                subkind=NO_VALID_ITEMS,
                details=["items: missing or empty"],
            )

        items: list[LineItem] = []
        dropped: list[str] = []
        for index, raw in enumerate(raw_items):
            item, problem = self._validate_item(raw, index, warnings)
            if item is None:
                dropped.append(f"items[{index}]: {problem}")
            else:
                items.append(item)

        warnings.extend(f"{reason}, item dropped" for reason in dropped)

        if not items:
            raise InvoiceValidationError(
                "None of the extracted line items were valid.",
                subkind=NO_VALID_ITEMS,
                details=dropped,
            )
        return items

    def _validate_item(
        self, raw: Any, index: int, warnings: list[str]
    ) -> tuple[LineItem | None, str | None]:
        if not isinstance(raw, dict):
            return None, "not an object"

        description = _coerce_text(_first_present(raw, DESCRIPTION_KEYS))
        if description is None:
            return None, "description missing"

        raw_quantity = _first_present(raw, QUANTITY_KEYS)
        if raw_quantity is None:
            quantity = Decimal(1)
        else:
            quantity = coerce_decimal(raw_quantity)
            if quantity is None or quantity <= 0:
                return None, f"invalid quantity {raw_quantity!r}"
            if quantity > MAX_ITEM_VALUE:
                return None, f"quantity {raw_quantity!r} out of range"

        raw_price = _first_present(raw, UNIT_PRICE_KEYS)
        if raw_price is None:
            unit_price = Decimal(0)
            warnings.append(f"items[{index}]: unitPrice missing, treated as 0")
        else:
            unit_price = coerce_decimal(raw_price)
            if unit_price is None or unit_price < 0:
                return None, f"invalid unitPrice {raw_price!r}"
            if unit_price > MAX_ITEM_VALUE:
                return None, f"unitPrice {raw_price!r} out of range"

        return LineItem(description=description, quantity=quantity, unit_price=unit_price), None

    def _validate_tax_rate(self, raw: Any, warnings: list[str]) -> Decimal:
        default = self.settings.default_tax_rate_percent
        if raw is None:
            return default
        rate = coerce_decimal(raw, allow_percent=True)
        if rate is None or rate < 0 or rate > 100:
            warnings.append(f"taxRatePercent: invalid value {raw!r}, using {default}")
            return default
        return rate

    def _validate_currency(self, raw: Any, warnings: list[str]) -> str:
        default = self.settings.default_currency.upper()
        if raw is None:
            return default
        if isinstance(raw, str):
            code = CURRENCY_SYMBOLS.get(raw.strip(), raw.strip())
            if _CURRENCY_CODE.match(code):
                return code.upper()
        warnings.append(f"currencyCode: invalid value {raw!r}, using {default}")
        return default
