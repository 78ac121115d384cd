"""Domain services: currency, OCR, validation, approvals, ledger and storage."""
