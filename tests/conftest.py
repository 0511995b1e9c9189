from __future__ import annotations

from typing import Any

import pytest


@pytest.fixture
def invoice_payload() -> dict[str, Any]:
    return {
        "invoiceNumber": "INV-2025-0001",
        "eInvoiceType": "01",
        "issueDate": "2025-03-14",
        "dueDate": "2025-04-13",
        "currency": "MYR",
        "exchangeRate": "1.000000",
        "subtotal": "1000.00",
        "totalDiscount": "0.00",
        "sstAmount": "60.00",
        "grandTotal": "1060.00",
        "isConsolidated": False,
    }


@pytest.fixture
def line_payloads() -> list[dict[str, Any]]:
    return [
        {
            "lineNumber": 1,
            "description": "Accounting retainer - March",
            "quantity": "1",
            "unitPrice": "1000.0000",
            "discountAmount": "0.00",
            "lineTotal": "1000.00",
            "sstRate": "6.00",
            "sstAmount": "60.00",
        }
    ]


@pytest.fixture
def seller_payload() -> dict[str, Any]:
    return {
        "name": "Kedai Runcit Maju Sdn Bhd",
        "tin": "C2584563201",
        "industryCode": "69200",
        "isSstRegistered": True,
        "countryCode": "MY",
    }


@pytest.fixture
def buyer_payload() -> dict[str, Any]:
    return {
        "name": "Syarikat Pelanggan Bhd",
        "tin": "C9876543210",
        "isIndividual": False,
    }
