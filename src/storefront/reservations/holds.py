"""Reservation Manager: reserve, release and sweep soft holds.

Available-to-hold for a variant is its committed stock minus the unexpired
holds of every other session. A session holds at most one reservation per
variant; reserving again replaces it.

Sweeping only deletes holds that are already past their expiry, so it can
run concurrently with reservations and with other sweeps. It is meant to be
triggered periodically by a scheduler.
"""

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.config import inventory_settings
from storefront.domain import storefront
from storefront.exceptions import InsufficientStock, VariantNotFound
from storefront.inventory.store import InventoryStore
from storefront.reservations.reservation import Reservation, as_utc

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Reservation")
class ReserveStock:
    product_id = Identifier(required=True)
    variant_key = String(required=True, max_length=50)
    quantity = Integer(required=True, min_value=1)
    session_id = String(required=True, max_length=255)
    ttl_seconds = Integer(min_value=1)
    as_of = DateTime()  # Optional: defaults to now


@storefront.command(part_of="Reservation")
class ReleaseReservation:
    reservation_id = Identifier(required=True)


@storefront.command(part_of="Reservation")
class SweepExpiredReservations:
    product_id = Identifier()  # Optional: all products when omitted
    as_of = DateTime()  # Optional: defaults to now


def _holds_for(product_id, variant_key=None):
    filters = {"product_id": str(product_id)}
    if variant_key is not None:
        filters["variant_key"] = variant_key
    return current_domain.repository_for(Reservation)._dao.query.filter(**filters).all().items


def available_to_hold(product_id, variant_key, session_id=None, as_of=None):
    """Committed stock minus unexpired holds from sessions other than ``session_id``.

    Raises NotFound or VariantNotFound for unknown products and variants.
    """
    as_of = as_of or datetime.now(UTC)
    product = InventoryStore().get(product_id)
    stock = product.available(variant_key)
    if stock is None:
        raise VariantNotFound(product_id, variant_key)

    held = sum(
        hold.quantity
        for hold in _holds_for(product_id, variant_key)
        if hold.session_id != session_id and not hold.is_expired(as_of)
    )
    return stock - held


@storefront.command_handler(part_of=Reservation)
class ReservationHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        now = as_utc(command.as_of or datetime.now(UTC))
        ttl_seconds = command.ttl_seconds or inventory_settings().reservation_ttl_minutes * 60

        available = available_to_hold(command.product_id, command.variant_key, command.session_id, now)
        if available < command.quantity:
            raise InsufficientStock(command.product_id, command.variant_key, command.quantity, max(available, 0))

        repo = current_domain.repository_for(Reservation)
        for hold in _holds_for(command.product_id, command.variant_key):
            if hold.session_id == command.session_id:
                repo._dao.delete(hold)

        reservation = Reservation(
            product_id=str(command.product_id),
            variant_key=command.variant_key,
            quantity=command.quantity,
            session_id=command.session_id,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        repo.add(reservation)

        logger.info(
            "Stock reserved",
            reservation_id=str(reservation.id),
            product_id=str(command.product_id),
            variant_key=command.variant_key,
            quantity=command.quantity,
            expires_at=reservation.expires_at.isoformat(),
        )
        return reservation

    @handle(ReleaseReservation)
    def release_reservation(self, command):
        repo = current_domain.repository_for(Reservation)
        try:
            reservation = repo.get(command.reservation_id)
            repo._dao.delete(reservation)
        except ObjectNotFoundError:
            logger.debug("Reservation already gone", reservation_id=str(command.reservation_id))
            return False

        logger.info("Reservation released", reservation_id=str(command.reservation_id))
        return True

    @handle(SweepExpiredReservations)
    def sweep_expired(self, command):
        as_of = as_utc(command.as_of or datetime.now(UTC))
        repo = current_domain.repository_for(Reservation)
        if command.product_id:
            holds = _holds_for(command.product_id)
        else:
            holds = repo._dao.query.all().items

        expired = [hold for hold in holds if hold.is_expired(as_of)]
        if not expired:
            logger.debug("No expired reservations found", product_id=command.product_id)
            return 0

        removed = 0
        for hold in expired:
            try:
                repo._dao.delete(hold)
                removed += 1
            except ObjectNotFoundError:
                # A concurrent sweep got there first
                continue

        logger.info("Expired reservations swept", product_id=command.product_id, removed=removed)
        return removed


@dataclass(frozen=True)
class Hold:
    reservation_id: str
    product_id: str
    variant_key: str
    quantity: int
    session_id: str
    expires_at: datetime


class ReservationManager:
    """Facade over the reservation commands for request handlers."""

    def reserve(self, product_id, variant_key, quantity, session_id, ttl: timedelta | None = None, now=None) -> Hold:
        ttl_seconds = math.ceil(ttl.total_seconds()) if ttl is not None else None
        reservation = current_domain.process(
            ReserveStock(
                product_id=str(product_id),
                variant_key=variant_key,
                quantity=quantity,
                session_id=session_id,
                ttl_seconds=ttl_seconds,
                as_of=now,
            ),
            asynchronous=False,
        )
        return Hold(
            reservation_id=str(reservation.id),
            product_id=str(reservation.product_id),
            variant_key=reservation.variant_key,
            quantity=reservation.quantity,
            session_id=reservation.session_id,
            expires_at=as_utc(reservation.expires_at),
        )

    def release(self, reservation_id) -> bool:
        return current_domain.process(ReleaseReservation(reservation_id=str(reservation_id)), asynchronous=False)

    def sweep_expired(self, product_id=None, now=None) -> int:
        return current_domain.process(
            SweepExpiredReservations(product_id=str(product_id) if product_id else None, as_of=now),
            asynchronous=False,
        )

    def available(self, product_id, variant_key, session_id=None, now=None) -> int:
        return max(available_to_hold(product_id, variant_key, session_id, now), 0)
