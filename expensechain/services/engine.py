"""Per-application bundle of the engine's collaborators."""
from __future__ import annotations

from dataclasses import dataclass

from expensechain.services.currency_service import CountryProvider, RateProvider, RateTable
from expensechain.services.datastore import ExpenseStore
from expensechain.services.expense_ledger import ExpenseLedger
from expensechain.services.ocr_service import OcrProvider, ReceiptDraft, ReceiptExtractor


@dataclass
class Engine:
    store: ExpenseStore
    ledger: ExpenseLedger
    rates: RateProvider
    countries: CountryProvider
    ocr: OcrProvider
    extractor: ReceiptExtractor
    pivot_currency: str = "USD"

    def current_rates(self) -> RateTable:
        return self.rates.fetch_rates(self.pivot_currency)

    def scan_receipt(self, image_bytes: bytes, filename: str = "receipt.jpg") -> ReceiptDraft:
        return self.extractor.scan(self.ocr, image_bytes, filename)

    def close(self) -> None:
        """Abort in-flight provider calls and release their HTTP sessions."""
        for provider in (self.rates, self.countries, self.ocr):
            provider.close()
