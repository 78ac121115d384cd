"""Receipt OCR integration and best-effort expense extraction."""
from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, List, Optional, Sequence, Tuple, Union

import requests

from expensechain.errors import ExternalServiceError

logger = logging.getLogger(__name__)

OCR_API_URL = "https://api.ocr.space/parse/image"

FALLBACK_MERCHANT = "Business Expense"
FALLBACK_CATEGORY = "Other"
DEFAULT_CONFIDENCE = 95
MAX_CONFIDENCE = 99
LOW_CONFIDENCE_THRESHOLD = 90
MAX_RECEIPT_AMOUNT = Decimal("50000")

DATE_PATTERNS: Sequence[Tuple[re.Pattern, str]] = (
    (re.compile(r"(\d{1,2}/\d{1,2}/\d{4})"), "%m/%d/%Y"),
    (re.compile(r"(\d{4}-\d{2}-\d{2})"), "%Y-%m-%d"),
    (re.compile(r"(\d{1,2}-\d{1,2}-\d{4})"), "%m-%d-%Y"),
    (re.compile(r"(\d{1,2}\.\d{1,2}\.\d{4})"), "%m.%d.%Y"),
)
CURRENCY_AMOUNT_PATTERN = re.compile(r"[$€£¥₹]\s*[\d,]+\.?\d*")
AMOUNT_PATTERNS: Sequence[re.Pattern] = (
    re.compile(r"total[:\s]*\$?([\d,]+\.?\d*)", re.IGNORECASE),
    re.compile(r"amount[:\s]*\$?([\d,]+\.?\d*)", re.IGNORECASE),
    re.compile(r"[$€£¥₹]\s*([\d,]+\.?\d*)"),
    re.compile(r"([\d,]+\.\d{2})"),
    re.compile(r"subtotal[:\s]*\$?([\d,]+\.?\d*)", re.IGNORECASE),
)

CATEGORY_KEYWORDS: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("Meals & Entertainment", ("restaurant", "cafe", "food", "dining", "lunch", "dinner",
                               "starbucks", "mcdonald", "pizza", "burger")),
    ("Travel & Transportation", ("uber", "taxi", "gas", "fuel", "parking", "airline",
                                 "flight", "train", "bus", "rental")),
    ("Office Supplies", ("office", "supplies", "staples", "depot", "paper", "pen",
                         "printer", "ink")),
    ("Software & Subscriptions", ("microsoft", "adobe", "subscription", "software",
                                  "license", "saas")),
    ("Training & Education", ("training", "course", "certification", "workshop",
                              "seminar", "aws", "education")),
    ("Communication", ("phone", "internet", "mobile", "telecom", "verizon", "att", "comcast")),
    ("Marketing", ("advertising", "marketing", "promotion", "social", "facebook", "google ads")),
)
RECEIPT_CATEGORIES: List[str] = [name for name, _ in CATEGORY_KEYWORDS] + [FALLBACK_CATEGORY]

SIMULATED_MERCHANTS = (
    "Starbucks Coffee", "Uber Technologies", "Shell Gas Station",
    "Marriott Hotel", "Office Depot", "Amazon Web Services",
    "Delta Airlines", "Hertz Car Rental", "Best Buy",
    "Home Depot", "Target", "Walmart",
)
# (low, span) of simulated amounts per category.
SIMULATED_AMOUNT_RANGES = {
    "Travel & Transportation": (50, 500),
    "Meals & Entertainment": (20, 150),
    "Software & Subscriptions": (30, 200),
}
DEFAULT_AMOUNT_RANGE = (15, 300)


@dataclass(frozen=True)
class OcrResult:
    text: str
    orientation: Optional[object] = None


@dataclass(frozen=True)
class ReceiptDraft:
    merchant: str
    amount: Decimal
    date: date
    category: str
    confidence: int
    simulated: bool = False

    @property
    def low_confidence(self) -> bool:
        return self.confidence < LOW_CONFIDENCE_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "merchant": self.merchant,
            "amount": float(self.amount),
            "date": self.date.isoformat(),
            "category": self.category,
            "confidence": self.confidence,
            "low_confidence": self.low_confidence,
            "simulated": self.simulated,
        }


class OcrProvider:
    """OCR.space-compatible client: ``recognize`` returns text or raises."""

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = OCR_API_URL,
        timeout: float = 30,
        enabled: bool = True,
        http: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.enabled = enabled
        self.http = http or requests.Session()

    @property
    def available(self) -> bool:
        return bool(self.enabled and self.api_key)

    def recognize(self, image_bytes: bytes, filename: str = "receipt.jpg") -> OcrResult:
        if not self.available:
            raise ExternalServiceError("OCR provider is not configured")

        form = {
            "apikey": self.api_key,
            "language": "eng",
            "isOverlayRequired": "false",
            "detectOrientation": "true",
            "isTable": "true",
        }
        try:
            response = self.http.post(
                self.api_url,
                data=form,
                files={"file": (filename, image_bytes)},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ExternalServiceError(f"OCR API error: {exc}") from exc

        if payload.get("IsErroredOnProcessing"):
            message = payload.get("ErrorMessage") or "OCR processing failed"
            if isinstance(message, list):
                message = "; ".join(str(part) for part in message)
            raise ExternalServiceError(str(message))

        parsed = (payload.get("ParsedResults") or [{}])[0] or {}
        return OcrResult(text=parsed.get("ParsedText") or "", orientation=parsed.get("TextOrientation"))

    def close(self) -> None:
        self.http.close()


class ReceiptExtractor:
    """Turns OCR output into a draft expense; never raises to its caller.

    Missing or unusable provider output switches to a simulated draft drawn
    from ``rng`` so receipt scanning cannot block expense entry.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.rng = rng or random.Random()
        self._today = today or date.today

    def extract(self, provider_output: Union[OcrResult, str, None]) -> ReceiptDraft:
        if isinstance(provider_output, str):
            provider_output = OcrResult(text=provider_output)
        if provider_output is None or not provider_output.text.strip():
            return self.simulate()

        try:
            return self._parse(provider_output)
        except Exception:  # noqa: BLE001 - any parse failure degrades to simulation
            logger.warning("Error parsing OCR result; using simulated extraction", exc_info=True)
            return self.simulate()

    def scan(self, provider: OcrProvider, image_bytes: bytes, filename: str = "receipt.jpg") -> ReceiptDraft:
        try:
            result = provider.recognize(image_bytes, filename)
        except ExternalServiceError as exc:
            logger.warning("OCR unavailable, using simulated extraction: %s", exc.message)
            return self.simulate()
        return self.extract(result)

    def _parse(self, result: OcrResult) -> ReceiptDraft:
        lines = [line.strip() for line in result.text.splitlines() if line.strip()]
        return ReceiptDraft(
            merchant=extract_merchant(lines),
            amount=extract_amount(lines) or self._random_amount(DEFAULT_AMOUNT_RANGE),
            date=extract_date(lines, self._today()),
            category=categorize(lines),
            confidence=confidence_from_signal(result.orientation),
        )

    def simulate(self) -> ReceiptDraft:
        category = self.rng.choice(RECEIPT_CATEGORIES)
        return ReceiptDraft(
            merchant=self.rng.choice(SIMULATED_MERCHANTS),
            amount=self._random_amount(SIMULATED_AMOUNT_RANGES.get(category, DEFAULT_AMOUNT_RANGE)),
            date=self._today(),
            category=category,
            confidence=self.rng.randint(85, MAX_CONFIDENCE),
            simulated=True,
        )

    def _random_amount(self, amount_range: Tuple[int, int]) -> Decimal:
        low, span = amount_range
        value = Decimal(str(self.rng.random() * span + low))
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _matches_date(line: str) -> bool:
    return any(pattern.search(line) for pattern, _ in DATE_PATTERNS)


def extract_merchant(lines: Sequence[str]) -> str:
    for line in lines[:3]:
        lowered = line.lower()
        if (
            len(line) > 3
            and not _matches_date(line)
            and not CURRENCY_AMOUNT_PATTERN.search(line)
            and "receipt" not in lowered
            and "total" not in lowered
        ):
            return " ".join(line.split()[:3])
    return FALLBACK_MERCHANT


def extract_amount(lines: Sequence[str]) -> Optional[Decimal]:
    for line in lines:
        for pattern in AMOUNT_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue
            try:
                amount = Decimal(match.group(1).replace(",", ""))
            except InvalidOperation:
                continue
            if 0 < amount < MAX_RECEIPT_AMOUNT:
                return amount
    return None


def extract_date(lines: Sequence[str], today: date) -> date:
    for line in lines:
        for pattern, fmt in DATE_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue
            try:
                parsed = datetime.strptime(match.group(1), fmt).date()
            except ValueError:
                continue
            if parsed <= today:
                return parsed
    return today


def categorize(lines: Sequence[str]) -> str:
    text = " ".join(lines).lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return FALLBACK_CATEGORY


def confidence_from_signal(signal) -> int:
    try:
        value = round(float(signal))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_CONFIDENCE
    if value <= 0:
        return DEFAULT_CONFIDENCE
    return min(value, MAX_CONFIDENCE)
