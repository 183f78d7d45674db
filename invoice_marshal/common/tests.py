"""
Tests para utilidades comunes: moneda, errores de dominio y middleware
"""

import pytest
from decimal import Decimal

from invoice_marshal.common.currency import Currency, format_currency, to_money
from invoice_marshal.common.exceptions import (
    InsufficientStock, InvoiceNotFound, MalformedPayload, NotFound, ValidationError
)


class TestCurrency:

    @pytest.mark.parametrize("amount,currency,expected", [
        (Decimal("1234.5"), Currency.USD, "$1,234.50"),
        (Decimal("1234.5"), Currency.EUR, "€1,234.50"),
        (Decimal("0"), "USD", "$0.00"),
        ("1000000", "eur", "€1,000,000.00"),
        (Decimal("-5"), Currency.USD, "-$5.00"),
        (Decimal("0.005"), Currency.USD, "$0.01"),
    ])
    def test_format_currency(self, amount, currency, expected):
        assert format_currency(amount, currency) == expected

    def test_unsupported_currency(self):
        with pytest.raises(ValueError):
            format_currency(Decimal("1"), "GBP")

    def test_to_money_rounds_half_up(self):
        assert to_money("2.345") == Decimal("2.35")
        assert to_money(3) == Decimal("3.00")


class TestDomainErrors:

    def test_status_codes(self):
        assert ValidationError("items", "required").status_code == 422
        assert NotFound().status_code == 404
        assert InvoiceNotFound().detail == "Invoice not found"
        assert MalformedPayload().status_code == 400

    def test_insufficient_stock_detail(self):
        error = InsufficientStock("Widget", 2, 3)

        assert error.status_code == 409
        assert error.detail["product"] == "Widget"
        assert error.detail["available"] == 2
        assert error.detail["requested"] == 3
        assert "Available: 2, Requested: 3" in error.detail["message"]


class TestMiddleware:

    def test_security_headers(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
