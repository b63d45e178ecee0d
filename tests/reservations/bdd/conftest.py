"""Shared BDD fixtures and step definitions for checkout holds."""

from datetime import UTC, datetime, timedelta

import pytest
from pytest_bdd import given, parsers, then, when
from storefront.reservations.holds import ReservationManager

T0 = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)


@pytest.fixture()
def manager():
    return ReservationManager()


@pytest.fixture()
def clock():
    return {"now": T0}


@given(parsers.cfparse('session "{session_id}" holds {quantity:d} units of variant "{variant}" for {minutes:d} minutes'))
def _(manager, clock, product_id, session_id, quantity, variant, minutes):
    manager.reserve(product_id, variant, quantity, session_id, ttl=timedelta(minutes=minutes), now=clock["now"])


@when(parsers.cfparse("the sweeper runs {minutes:d} minutes later"), target_fixture="removed")
def _(manager, clock, product_id, minutes):
    clock["now"] = T0 + timedelta(minutes=minutes)
    return manager.sweep_expired(product_id, now=clock["now"])


@then(parsers.cfparse("{count:d} hold is removed"))
def _(removed, count):
    assert removed == count


@then(parsers.cfparse('session "{session_id}" can hold {quantity:d} units of variant "{variant}"'))
def _(manager, clock, product_id, session_id, quantity, variant):
    hold = manager.reserve(product_id, variant, quantity, session_id, now=clock["now"])
    assert hold.quantity == quantity


@then(parsers.cfparse('session "{session_id}" sees {quantity:d} units of variant "{variant}" available'))
def _(manager, clock, product_id, session_id, quantity, variant):
    assert manager.available(product_id, variant, session_id=session_id, now=clock["now"]) == quantity
