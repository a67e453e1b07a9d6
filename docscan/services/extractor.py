"""
Turns a completed OCR job's result payload into a validated Invoice.

Nothing is defaulted: a missing or malformed required field, or a total that
does not reconcile with the line items, raises ExtractionInvalid naming the
offending field.
"""

import json
from datetime import date, datetime
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Any, Optional
from loguru import logger
from ..core.errors import ExtractionInvalid
from ..models.invoice import Invoice, LineItem

# ISO 4217 minor-unit exponents that differ from the usual 2
ZERO_DECIMAL_CURRENCIES = {"BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
THREE_DECIMAL_CURRENCIES = {"BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND"}

# Accepted spellings of each field, first match wins
VENDOR_KEYS = ("vendor", "vendor_name", "vendorName")
DATE_KEYS = ("date", "invoice_date", "invoiceDate")
LINE_ITEM_KEYS = ("lineItems", "line_items", "items")
TOTAL_KEYS = ("total", "total_amount", "totalAmount", "invoice_total")
CURRENCY_KEYS = ("currency", "currency_code", "currencyCode")
DESCRIPTION_KEYS = ("desc", "description")
QUANTITY_KEYS = ("qty", "quantity")
UNIT_PRICE_KEYS = ("unitPrice", "unit_price")
AMOUNT_KEYS = ("amount", "line_total", "lineTotal")

# Amounts at or above 10 ** 16 are OCR noise, not money
MAX_AMOUNT_EXPONENT = 15


def minor_unit(currency: Optional[str]) -> Decimal:
    """Smallest currency unit, e.g. 0.01 for USD, 1 for JPY"""
    code = (currency or "").upper()
    if code in ZERO_DECIMAL_CURRENCIES:
        return Decimal("1")
    if code in THREE_DECIMAL_CURRENCIES:
        return Decimal("0.001")
    return Decimal("0.01")


def _first(data: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _parse_amount(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ExtractionInvalid(field, "not a number")
    if isinstance(value, str):
        # "$1,234.56", "USD 1,234.56"
        value = value.replace(",", "").strip().lstrip("$€£¥").strip()
        parts = value.split()
        if len(parts) == 2 and parts[0].isalpha():
            value = parts[1]
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ExtractionInvalid(field, f"not a number: {value!r}")
    if not amount.is_finite():
        raise ExtractionInvalid(field, f"not a number: {value!r}")
    if amount and amount.adjusted() > MAX_AMOUNT_EXPONENT:
        raise ExtractionInvalid(field, f"amount out of range: {value!r}")
    return amount


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    for fmt in ("%d/%m/%Y", "%m/%d/%Y", "%d.%m.%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ExtractionInvalid("date", f"unrecognized date: {text!r}")


class InvoiceExtractor:
    def extract(self, payload: dict | str | None, source_job_id: Optional[str] = None) -> Invoice:
        """
        Validate a job result payload and build an Invoice.

        Args:
            payload: Result payload as a dict or JSON string
            source_job_id: Job that produced the payload (back-reference only)

        Raises:
            ExtractionInvalid: names the first violated field
        """
        data = self._load(payload)

        vendor = _first(data, VENDOR_KEYS)
        if not isinstance(vendor, str) or not vendor.strip():
            raise ExtractionInvalid("vendor", "missing")

        raw_date = _first(data, DATE_KEYS)
        if raw_date is None or raw_date == "":
            raise ExtractionInvalid("date", "missing")
        invoice_date = _parse_date(raw_date)

        raw_items = _first(data, LINE_ITEM_KEYS)
        if not isinstance(raw_items, list) or not raw_items:
            raise ExtractionInvalid("line_items", "at least one line item is required")
        line_items = [self._line_item(i, item) for i, item in enumerate(raw_items)]

        raw_total = _first(data, TOTAL_KEYS)
        if raw_total is None or raw_total == "":
            raise ExtractionInvalid("total", "missing")
        total = _parse_amount(raw_total, "total")

        currency = _first(data, CURRENCY_KEYS)
        currency = currency.strip().upper() if isinstance(currency, str) and currency.strip() else None

        tolerance = minor_unit(currency)
        try:
            line_sum = sum((item.amount for item in line_items), Decimal("0"))
            difference = abs(line_sum - total)
        except DecimalException as e:
            raise ExtractionInvalid("total", f"cannot reconcile with line items: {e!r}") from e
        if difference > tolerance:
            logger.warning(
                "Invoice total does not match line items",
                job_id=source_job_id,
                total=str(total),
                line_item_sum=str(line_sum),
                tolerance=str(tolerance),
            )
            raise ExtractionInvalid("total", f"stated {total} but line items sum to {line_sum}")

        invoice = Invoice(
            vendor=vendor.strip(),
            invoice_date=invoice_date,
            line_items=line_items,
            total=total,
            currency=currency,
            source_job_id=source_job_id,
        )
        logger.info(
            "Invoice extracted",
            job_id=source_job_id,
            vendor=invoice.vendor,
            total=str(invoice.total),
            line_items=len(line_items),
        )
        return invoice

    @staticmethod
    def _load(payload: dict | str | None) -> dict:
        if payload is None:
            raise ExtractionInvalid("payload", "job completed without a result")
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except ValueError as e:
                raise ExtractionInvalid("payload", f"not valid JSON: {e}")
        if not isinstance(payload, dict):
            raise ExtractionInvalid("payload", "expected a JSON object")
        # Some workers nest the fields under "invoice"
        if isinstance(payload.get("invoice"), dict):
            return payload["invoice"]
        return payload

    @staticmethod
    def _line_item(index: int, item: Any) -> LineItem:
        field = f"line_items[{index}]"
        if not isinstance(item, dict):
            raise ExtractionInvalid(field, "expected an object")

        raw_amount = _first(item, AMOUNT_KEYS)
        if raw_amount is None or raw_amount == "":
            raise ExtractionInvalid(f"{field}.amount", "missing")

        quantity = _first(item, QUANTITY_KEYS)
        unit_price = _first(item, UNIT_PRICE_KEYS)
        description = _first(item, DESCRIPTION_KEYS)

        return LineItem(
            description=str(description) if description is not None else None,
            quantity=_parse_amount(quantity, f"{field}.quantity") if quantity is not None else None,
            unit_price=_parse_amount(unit_price, f"{field}.unit_price") if unit_price is not None else None,
            amount=_parse_amount(raw_amount, f"{field}.amount"),
        )
