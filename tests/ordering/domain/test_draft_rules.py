"""Tests for draft order validation and totals."""

import pytest
from protean.exceptions import ValidationError
from storefront.config import CheckoutSettings
from storefront.ordering.draft import calculate_totals, normalize_address, validate_draft


def _draft(**overrides):
    draft = {
        "customer_id": "cust-001",
        "items": [{"product_id": "p-1", "variant_key": "M", "quantity": 2, "unit_price": 250.0}],
        "shipping_address": {"street": "1 Main", "city": "Pune", "postal_code": "411001", "country": "IN"},
        "payment_method": "card",
    }
    draft.update(overrides)
    return draft


class TestValidateDraft:
    def test_valid_draft_passes(self):
        validate_draft(_draft())

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_draft(_draft(items=[]))
        assert "items" in exc.value.messages

    def test_zero_quantity_rejected(self):
        items = [{"product_id": "p-1", "variant_key": "M", "quantity": 0, "unit_price": 10.0}]
        with pytest.raises(ValidationError) as exc:
            validate_draft(_draft(items=items))
        assert "Item 1: quantity must be at least 1" in exc.value.messages["items"]

    def test_non_positive_price_rejected(self):
        items = [{"product_id": "p-1", "variant_key": "M", "quantity": 1, "unit_price": 0}]
        with pytest.raises(ValidationError) as exc:
            validate_draft(_draft(items=items))
        assert "Item 1: unit price must be positive" in exc.value.messages["items"]

    def test_boolean_quantity_rejected(self):
        items = [{"product_id": "p-1", "variant_key": "M", "quantity": True, "unit_price": 10.0}]
        with pytest.raises(ValidationError):
            validate_draft(_draft(items=items))

    def test_incomplete_address_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_draft(_draft(shipping_address={"street": "1 Main", "city": "Pune"}))
        assert exc.value.messages["shipping_address"] == ["Missing postal_code, country"]

    def test_blank_address_field_counts_as_missing(self):
        address = {"street": "  ", "city": "Pune", "postal_code": "411001", "country": "IN"}
        with pytest.raises(ValidationError) as exc:
            validate_draft(_draft(shipping_address=address))
        assert "shipping_address" in exc.value.messages

    def test_unknown_payment_method_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_draft(_draft(payment_method="bitcoin"))
        assert "payment_method" in exc.value.messages

    def test_all_problems_reported_together(self):
        with pytest.raises(ValidationError) as exc:
            validate_draft({"items": [], "payment_method": None})
        assert set(exc.value.messages) == {"customer_id", "items", "shipping_address", "payment_method"}


class TestCalculateTotals:
    settings = CheckoutSettings(tax_rate=0.18, shipping_fee=100.0, free_shipping_threshold=1000.0, currency="INR")

    def test_small_order_pays_shipping(self):
        totals = calculate_totals([{"unit_price": 250.0, "quantity": 2}], self.settings)
        assert totals == {
            "subtotal": 500.0,
            "tax": 90.0,
            "shipping": 100.0,
            "total": 690.0,
            "currency": "INR",
        }

    def test_shipping_free_only_above_threshold(self):
        at_threshold = calculate_totals([{"unit_price": 1000.0, "quantity": 1}], self.settings)
        above = calculate_totals([{"unit_price": 1000.01, "quantity": 1}], self.settings)
        assert at_threshold["shipping"] == 100.0
        assert above["shipping"] == 0.0

    def test_tax_rounded_to_cents(self):
        totals = calculate_totals([{"unit_price": 33.33, "quantity": 1}], self.settings)
        assert totals["tax"] == 6.0
        assert totals["total"] == round(totals["subtotal"] + totals["tax"] + totals["shipping"], 2)


class TestNormalizeAddress:
    def test_strips_and_drops_empty_fields(self):
        address = normalize_address({"street": " 1 Main ", "city": "Pune", "state": "", "postal_code": 411001})
        assert address == {"street": "1 Main", "city": "Pune", "postal_code": "411001"}
