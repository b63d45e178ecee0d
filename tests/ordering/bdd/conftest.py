"""Shared BDD fixtures and step definitions for ordering."""

import pytest
from pytest_bdd import given, parsers, then, when
from storefront.exceptions import InvalidTransition, StockUnavailable
from storefront.ordering.cancellation import cancel_order
from storefront.ordering.creation import OrderReceipt


@pytest.fixture()
def outcomes():
    """Receipts and errors in the order the steps produced them."""
    return []


@pytest.fixture()
def error():
    return {"exc": None}


def _place(orchestrator, make_draft, line, product_id, quantity, variant, customer_id):
    return orchestrator.create(make_draft([line(product_id, variant, quantity)], customer_id=customer_id))


def _receipts(outcomes):
    return [o for o in outcomes if isinstance(o, OrderReceipt)]


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a customer has ordered {quantity:d} units of variant "{variant}"'),
    target_fixture="order_id",
)
def _(orchestrator, make_draft, line, product_id, quantity, variant):
    return _place(orchestrator, make_draft, line, product_id, quantity, variant, "cust-001").order_id


@given("the payment was captured")
def _(send_payment_event, order_id):
    send_payment_event(order_id, "captured")


@given("the customer cancelled the order")
def _(order_id):
    cancel_order(order_id, requested_by="cust-001", reason="Changed my mind")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('a customer orders {quantity:d} units of variant "{variant}"'))
def _(orchestrator, make_draft, line, product_id, outcomes, quantity, variant):
    try:
        outcomes.append(_place(orchestrator, make_draft, line, product_id, quantity, variant, "cust-001"))
    except StockUnavailable as exc:
        outcomes.append(exc)


@when(parsers.cfparse('another customer orders {quantity:d} units of variant "{variant}"'))
def _(orchestrator, make_draft, line, product_id, outcomes, quantity, variant):
    try:
        outcomes.append(_place(orchestrator, make_draft, line, product_id, quantity, variant, "cust-002"))
    except StockUnavailable as exc:
        outcomes.append(exc)


@when(
    parsers.cfparse('the customer cancels the order because "{reason}"'),
    target_fixture="order_id",
)
def _(outcomes, reason):
    order_id = _receipts(outcomes)[-1].order_id
    cancel_order(order_id, requested_by="cust-001", reason=reason)
    return order_id


@when(parsers.cfparse('an admin marks the order "{status}"'))
def _(advance_status, order_id, error, status):
    try:
        advance_status(order_id, status)
    except InvalidTransition as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the first order is placed in "{status}"'))
def _(outcomes, status):
    assert isinstance(outcomes[0], OrderReceipt)
    assert outcomes[0].status == status


@then(parsers.cfparse("the {position} order is rejected with {available:d} units available"))
def _(outcomes, position, available):
    outcome = outcomes[{"first": 0, "second": 1}[position]]
    assert isinstance(outcome, StockUnavailable)
    assert outcome.items[0]["available"] == available


@then(parsers.cfparse('the order is "{status}"'))
def _(load, order_id, status):
    assert load(order_id).status == status


@then(parsers.cfparse('the status history is "{statuses}"'))
def _(load, order_id, statuses):
    assert [e.status for e in load(order_id).status_history] == [s.strip() for s in statuses.split(",")]


@then(parsers.cfparse('the request is rejected as an invalid transition from "{current}" to "{target}"'))
def _(error, current, target):
    assert isinstance(error["exc"], InvalidTransition)
    assert (error["exc"].current, error["exc"].target) == (current, target)
