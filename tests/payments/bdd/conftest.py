"""Shared BDD fixtures and step definitions for payment reconciliation."""

import pytest
from pytest_bdd import given, parsers, then, when
from storefront.ordering.cancellation import cancel_order


@pytest.fixture()
def results():
    return []


@given(
    parsers.cfparse('a pending order for {quantity:d} units of variant "{variant}"'),
    target_fixture="order_id",
)
def _(orchestrator, make_draft, line, product_id, quantity, variant):
    return orchestrator.create(make_draft([line(product_id, variant, quantity)])).order_id


@given("the order was cancelled")
def _(order_id):
    cancel_order(order_id, requested_by="cust-001", reason="Changed my mind")


@when(parsers.cfparse('the gateway sends a "{event_type}" event "{event_id}"'))
def _(send_payment_event, order_id, results, event_type, event_id):
    results.append(send_payment_event(order_id, event_type, event_id=event_id))


@then(parsers.cfparse('the order is "{status}" with payment "{payment_status}"'))
def _(load, order_id, status, payment_status):
    order = load(order_id)
    assert (order.status, order.payment_status) == (status, payment_status)


@then("the last event was a replay")
def _(results):
    assert results[-1].replayed is True
    assert results[-1].outcome == results[0].outcome


@then(parsers.cfparse('the last event outcome was "{outcome}"'))
def _(results, outcome):
    assert results[-1].outcome == outcome


@then(parsers.cfparse('the order passed through "{status}" once'))
def _(load, order_id, status):
    assert [e.status for e in load(order_id).status_history].count(status) == 1


@then(parsers.cfparse('an admin was alerted with "{subject}"'))
def _(notifier, subject):
    assert subject in [a.subject for a in notifier.admin_alerts]
