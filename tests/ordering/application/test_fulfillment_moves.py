"""Application tests for admin-driven fulfillment transitions."""

import pytest
from protean.exceptions import ValidationError
from storefront.exceptions import InvalidTransition, NotFound
from storefront.ordering.cancellation import cancel_order


@pytest.fixture()
def paid_order(orchestrator, register_product, make_draft, line, send_payment_event):
    product_id = register_product({"M": 5})
    receipt = orchestrator.create(make_draft([line(product_id, "M", 1)]))
    send_payment_event(receipt.order_id, "captured")
    return receipt


class TestAdvanceOrderStatus:
    def test_ship_deliver_return(self, paid_order, advance_status, load):
        assert advance_status(paid_order.order_id, "Shipped", note="AWB 1234") == "Shipped"
        assert advance_status(paid_order.order_id, "Delivered") == "Delivered"
        assert advance_status(paid_order.order_id, "Returned") == "Returned"

        history = load(paid_order.order_id).status_history
        assert [e.status for e in history] == [
            "Pending",
            "Payment_Processing",
            "Processing",
            "Shipped",
            "Delivered",
            "Returned",
        ]
        assert history[3].note == "AWB 1234"
        assert history[3].actor == "admin"

    def test_cancelled_order_cannot_ship(self, paid_order, advance_status, load):
        cancel_order(paid_order.order_id, requested_by="cust-001", reason="Changed my mind")

        with pytest.raises(InvalidTransition) as exc:
            advance_status(paid_order.order_id, "Shipped")

        assert (exc.value.current, exc.value.target) == ("Cancelled", "Shipped")
        assert load(paid_order.order_id).status == "Cancelled"

    def test_cannot_skip_shipping(self, paid_order, advance_status):
        with pytest.raises(InvalidTransition):
            advance_status(paid_order.order_id, "Delivered")

    def test_unpaid_order_cannot_ship(self, orchestrator, register_product, make_draft, line, advance_status):
        product_id = register_product({"M": 5})
        receipt = orchestrator.create(make_draft([line(product_id, "M", 1)]))
        with pytest.raises(InvalidTransition):
            advance_status(receipt.order_id, "Shipped")

    def test_repeating_current_status_records_nothing(self, paid_order, advance_status, load):
        advance_status(paid_order.order_id, "Shipped")
        advance_status(paid_order.order_id, "Shipped")
        statuses = [e.status for e in load(paid_order.order_id).status_history]
        assert statuses.count("Shipped") == 1

    def test_non_fulfillment_status_is_refused(self, paid_order, advance_status):
        with pytest.raises(ValidationError) as exc:
            advance_status(paid_order.order_id, "Refunded")
        assert "target_status" in exc.value.messages

    def test_unknown_status_is_refused(self, paid_order, advance_status):
        with pytest.raises(ValidationError):
            advance_status(paid_order.order_id, "Teleported")

    def test_unknown_order(self, advance_status):
        with pytest.raises(NotFound):
            advance_status("missing-order", "Shipped")
