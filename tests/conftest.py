import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config overlay before the domain is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def notifier():
    """Every test records alerts in memory instead of logging them."""
    from storefront.notifications import reset_notifier, set_notifier
    from storefront.notifications.fake_adapter import FakeNotificationSink

    sink = FakeNotificationSink()
    set_notifier(sink)
    yield sink
    reset_notifier()


@pytest.fixture(autouse=True)
def _reset_verifier():
    yield

    from storefront.payments.gateway import reset_verifier

    reset_verifier()


# ---------------------------------------------------------------------------
# Factories shared across areas
# ---------------------------------------------------------------------------
@pytest.fixture()
def register_product():
    """Register a product through its command and return its id."""
    import json

    from protean import current_domain
    from storefront.inventory.management import RegisterProduct

    def _register(stock=None, name="Linen Shirt", low_stock_threshold=1):
        return current_domain.process(
            RegisterProduct(
                name=name,
                stock=json.dumps(stock if stock is not None else {"S": 10, "M": 5, "L": 3}),
                low_stock_threshold=low_stock_threshold,
            ),
            asynchronous=False,
        )

    return _register


@pytest.fixture()
def make_draft():
    """Build a valid draft order; override any top-level key."""

    def _draft(items, **overrides):
        draft = {
            "customer_id": "cust-001",
            "items": items,
            "shipping_address": {
                "name": "Asha Rao",
                "street": "12 MG Road",
                "city": "Bengaluru",
                "state": "KA",
                "postal_code": "560001",
                "country": "IN",
            },
            "payment_method": "upi",
        }
        draft.update(overrides)
        return draft

    return _draft


@pytest.fixture()
def line():
    """Build one draft line item."""

    def _line(product_id, variant_key="M", quantity=1, unit_price=499.0, title="Linen Shirt"):
        return {
            "product_id": product_id,
            "variant_key": variant_key,
            "quantity": quantity,
            "unit_price": unit_price,
            "title": title,
        }

    return _line


@pytest.fixture()
def no_wait_policy():
    from storefront.utils.retry import RetryPolicy

    return RetryPolicy(max_attempts=3, initial_delay=0.0, max_delay=0.0, deadline=5.0)


@pytest.fixture()
def orchestrator(no_wait_policy):
    from storefront.ordering.creation import OrderCreationOrchestrator

    return OrderCreationOrchestrator(retry_policy=no_wait_policy, sleep=lambda _: None)


@pytest.fixture()
def stock_of():
    """Read the committed stock map of a product."""
    from protean import current_domain
    from storefront.inventory.product import Product

    def _stock(product_id):
        return current_domain.repository_for(Product).get(product_id).stock_map()

    return _stock


@pytest.fixture()
def send_payment_event(no_wait_policy):
    """Apply a gateway event to an order and return the ReconciliationResult."""
    from uuid import uuid4

    from storefront.payments.reconciliation import PaymentEvent, PaymentEventReconciler

    reconciler = PaymentEventReconciler(retry_policy=no_wait_policy, sleep=lambda _: None)

    def _send(order_id, event_type, event_id=None, payload=None):
        return reconciler.apply(
            PaymentEvent(
                event_id=event_id or f"evt-{uuid4().hex[:12]}",
                type=event_type,
                order_id=str(order_id),
                payload=payload or {},
            )
        )

    return _send


@pytest.fixture()
def advance_status():
    """Move an order along a fulfillment status as an admin."""
    from protean import current_domain
    from storefront.ordering.fulfillment import AdvanceOrderStatus

    def _advance(order_id, target_status, note=None):
        return current_domain.process(
            AdvanceOrderStatus(order_id=str(order_id), target_status=target_status, note=note),
            asynchronous=False,
        )

    return _advance


@pytest.fixture()
def load():
    """Read an order back from its event stream."""
    from protean import current_domain
    from storefront.ordering.order import Order

    def _load(order_id):
        return current_domain.repository_for(Order).get(str(order_id))

    return _load


# ---------------------------------------------------------------------------
# Shared BDD steps
# ---------------------------------------------------------------------------
from pytest_bdd import given, parsers, then  # noqa: E402


@given(
    parsers.cfparse('a product "{name}" with {quantity:d} units of variant "{variant}"'),
    target_fixture="product_id",
)
def _(register_product, name, quantity, variant):
    return register_product({variant: quantity}, name=name)


@then(parsers.cfparse('{quantity:d} units of variant "{variant}" remain'))
def _(stock_of, product_id, quantity, variant):
    assert stock_of(product_id)[variant] == quantity
