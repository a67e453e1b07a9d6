"""
Tests for invoice extraction from OCR job results.
"""

import json
from datetime import date
from decimal import Decimal
import pytest
from docscan.core.errors import ExtractionInvalid
from docscan.services.extractor import InvoiceExtractor, minor_unit


@pytest.fixture
def extractor():
    return InvoiceExtractor()


def test_valid_payload(extractor, invoice_payload):
    invoice = extractor.extract(invoice_payload, source_job_id="job-1")

    assert invoice.vendor == "Acme"
    assert invoice.invoice_date == date(2025, 1, 1)
    assert invoice.total == Decimal("10.00")
    assert len(invoice.line_items) == 1
    assert invoice.line_items[0].description == "Widget"
    assert invoice.line_items[0].unit_price == Decimal("10.00")
    assert invoice.currency == "USD"
    assert invoice.source_job_id == "job-1"


def test_total_mismatch_names_total(extractor, invoice_payload):
    invoice_payload["total"] = 11.00

    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract(invoice_payload)
    assert exc_info.value.field == "total"
    assert exc_info.value.to_dict()["field"] == "total"


def test_rounding_within_one_cent_is_accepted(extractor):
    payload = {
        "vendor": "Acme",
        "date": "2025-01-01",
        "lineItems": [{"amount": "3.33"}, {"amount": "3.33"}, {"amount": "3.33"}],
        "total": "10.00",
        "currency": "USD",
    }
    assert extractor.extract(payload).line_item_sum == Decimal("9.99")


@pytest.mark.parametrize("field,key", [
    ("vendor", "vendor"),
    ("date", "date"),
    ("line_items", "lineItems"),
    ("total", "total"),
])
def test_missing_required_field(extractor, invoice_payload, field, key):
    del invoice_payload[key]

    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract(invoice_payload)
    assert exc_info.value.field == field


def test_empty_line_items(extractor, invoice_payload):
    invoice_payload["lineItems"] = []

    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract(invoice_payload)
    assert exc_info.value.field == "line_items"


def test_line_item_without_amount(extractor, invoice_payload):
    invoice_payload["lineItems"].append({"desc": "Bolt", "qty": 2})

    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract(invoice_payload)
    assert exc_info.value.field == "line_items[1].amount"


def test_unparseable_date(extractor, invoice_payload):
    invoice_payload["date"] = "sometime in spring"

    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract(invoice_payload)
    assert exc_info.value.field == "date"


def test_non_numeric_total(extractor, invoice_payload):
    invoice_payload["total"] = "ten dollars"

    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract(invoice_payload)
    assert exc_info.value.field == "total"


@pytest.mark.parametrize("total", ["1e999999999", "-1e999999999", "12345678901234567"])
def test_out_of_range_total_is_invalid(extractor, invoice_payload, total):
    invoice_payload["total"] = total

    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract(invoice_payload)
    assert exc_info.value.field == "total"


def test_out_of_range_line_amount_is_invalid(extractor, invoice_payload):
    invoice_payload["lineItems"][0]["amount"] = "9e999999"

    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract(invoice_payload)
    assert exc_info.value.field == "line_items[0].amount"


def test_missing_result(extractor):
    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract(None)
    assert exc_info.value.field == "payload"


def test_invalid_json_string(extractor):
    with pytest.raises(ExtractionInvalid) as exc_info:
        extractor.extract("{not json")
    assert exc_info.value.field == "payload"


def test_json_string_payload(extractor, invoice_payload):
    assert extractor.extract(json.dumps(invoice_payload)).vendor == "Acme"


def test_snake_case_and_nested_payload(extractor):
    payload = {
        "invoice": {
            "vendor_name": "Contoso Ltd",
            "invoice_date": "15/03/2025",
            "line_items": [
                {"description": "Consulting", "quantity": 2, "unit_price": "$1,000.00", "line_total": "$2,000.00"},
            ],
            "total_amount": "USD 2,000.00",
        }
    }

    invoice = extractor.extract(payload)

    assert invoice.vendor == "Contoso Ltd"
    assert invoice.invoice_date == date(2025, 3, 15)
    assert invoice.total == Decimal("2000.00")
    assert invoice.currency is None


def test_currency_minor_units():
    assert minor_unit("USD") == Decimal("0.01")
    assert minor_unit("jpy") == Decimal("1")
    assert minor_unit("KWD") == Decimal("0.001")
    assert minor_unit(None) == Decimal("0.01")


def test_zero_decimal_currency_tolerance(extractor):
    payload = {
        "vendor": "Tokyo Supplies",
        "date": "2025-02-01",
        "lineItems": [{"amount": 500}, {"amount": 499}],
        "total": 1000,
        "currency": "JPY",
    }
    assert extractor.extract(payload).total == Decimal("1000")

    payload["total"] = 1002
    with pytest.raises(ExtractionInvalid):
        extractor.extract(payload)
