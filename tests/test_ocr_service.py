import random
from datetime import date
from decimal import Decimal

import pytest
import requests

from expensechain.errors import ExternalServiceError
from expensechain.services.ocr_service import (
    RECEIPT_CATEGORIES,
    OcrProvider,
    OcrResult,
    ReceiptExtractor,
    categorize,
    confidence_from_signal,
    extract_amount,
    extract_date,
    extract_merchant,
)

TODAY = date(2026, 10, 19)

RECEIPT_TEXT = """STARBUCKS COFFEE #1234
123 Main Street
Date: 10/12/2026
2 items
TOTAL: $8.70
Thank you for visiting
"""


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeHttp:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def post(self, url, data=None, files=None, timeout=None):
        self.requests.append({"url": url, "data": data, "files": files, "timeout": timeout})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def close(self):
        pass


@pytest.fixture()
def extractor(rng):
    return ReceiptExtractor(rng=rng, today=lambda: TODAY)


def test_extracts_fields_from_receipt_text(extractor):
    draft = extractor.extract(OcrResult(text=RECEIPT_TEXT, orientation=97.6))

    assert draft.merchant == "STARBUCKS COFFEE #1234"
    assert draft.amount == Decimal("8.70")
    assert draft.date == date(2026, 10, 12)
    assert draft.category == "Meals & Entertainment"
    assert draft.confidence == 98
    assert not draft.simulated
    assert not draft.low_confidence


def test_merchant_skips_dates_amounts_and_headers():
    lines = ["RECEIPT", "10/01/2026", "$12.00", "Corner Shop"]
    assert extract_merchant(lines) == "Business Expense"
    assert extract_merchant(["Shell Gas Station Downtown", "TOTAL 40.00"]) == "Shell Gas Station"


def test_amount_takes_first_line_with_a_usable_match():
    assert extract_amount(["Subtotal: 10.00", "Total: 12.50"]) == Decimal("10.00")
    assert extract_amount(["Item 99999.00", "Total: 45.10"]) == Decimal("45.10")
    assert extract_amount(["Amount: 1,250.00"]) == Decimal("1250.00")
    assert extract_amount(["no numbers here"]) is None


def test_date_ignores_future_values():
    assert extract_date(["Printed 12/31/2026", "Paid 2026-10-01"], TODAY) == date(2026, 10, 1)
    assert extract_date(["Visit 13/45/2026"], TODAY) == TODAY
    assert extract_date(["31.01.2026"], TODAY) == TODAY
    assert extract_date(["01.31.2026"], TODAY) == date(2026, 1, 31)


def test_categorize_uses_first_matching_keyword_group():
    assert categorize(["UBER TRIP", "lunch"]) == "Meals & Entertainment"
    assert categorize(["Staples", "printer paper"]) == "Office Supplies"
    assert categorize(["Nothing to see"]) == "Other"


@pytest.mark.parametrize(
    "signal, expected",
    [(None, 95), ("abc", 95), (0, 95), (-3, 95), (42.4, 42), (88.5, 88), (150, 99), ("91", 91)],
)
def test_confidence_from_signal(signal, expected):
    assert confidence_from_signal(signal) == expected


def test_missing_provider_output_is_simulated(extractor):
    for output in (None, "", OcrResult(text="   \n ")):
        draft = extractor.extract(output)
        assert draft.simulated
        assert 85 <= draft.confidence <= 99
        assert draft.category in RECEIPT_CATEGORIES
        assert Decimal("15") <= draft.amount <= Decimal("550")
        assert draft.date == TODAY


def test_simulation_is_deterministic_for_a_seed():
    first = ReceiptExtractor(rng=random.Random(99), today=lambda: TODAY).simulate()
    second = ReceiptExtractor(rng=random.Random(99), today=lambda: TODAY).simulate()
    assert first == second


def test_text_without_amount_gets_bounded_random_amount(extractor):
    draft = extractor.extract("Corner Bakery\nthanks")
    assert not draft.simulated
    assert Decimal("15") <= draft.amount <= Decimal("315")
    assert draft.merchant == "Corner Bakery"


def test_provider_posts_ocr_space_form():
    http = FakeHttp(
        FakeResponse({"IsErroredOnProcessing": False, "ParsedResults": [{"ParsedText": "Total: 9.99", "TextOrientation": "0"}]})
    )
    provider = OcrProvider(api_key="k-123", api_url="https://ocr.test/parse", http=http)

    result = provider.recognize(b"image-bytes", "receipt.png")

    assert result == OcrResult(text="Total: 9.99", orientation="0")
    sent = http.requests[0]
    assert sent["url"] == "https://ocr.test/parse"
    assert sent["data"]["apikey"] == "k-123"
    assert sent["data"]["isTable"] == "true"
    assert sent["files"] == {"file": ("receipt.png", b"image-bytes")}


def test_provider_errors_raise_external_service_error():
    errored = OcrProvider(
        api_key="k",
        http=FakeHttp(FakeResponse({"IsErroredOnProcessing": True, "ErrorMessage": ["Bad image"]})),
    )
    with pytest.raises(ExternalServiceError, match="Bad image"):
        errored.recognize(b"x")

    offline = OcrProvider(api_key="k", http=FakeHttp(requests.ConnectionError("down")))
    with pytest.raises(ExternalServiceError):
        offline.recognize(b"x")

    with pytest.raises(ExternalServiceError):
        OcrProvider(api_key=None).recognize(b"x")


def test_scan_degrades_to_simulation_when_provider_fails(extractor):
    provider = OcrProvider(api_key="k", http=FakeHttp(requests.ConnectionError("down")))
    draft = extractor.scan(provider, b"x")
    assert draft.simulated
    assert 85 <= draft.confidence <= 99


def test_scan_uses_provider_text(extractor):
    provider = OcrProvider(
        api_key="k",
        http=FakeHttp(FakeResponse({"ParsedResults": [{"ParsedText": "Uber Trip\nTotal: 23.40"}]})),
    )
    draft = extractor.scan(provider, b"x")
    assert draft.category == "Travel & Transportation"
    assert draft.amount == Decimal("23.40")
    assert draft.confidence == 95
