"""Payment Event Reconciler: apply gateway callbacks to orders exactly once.

Flow for one event:
    1. A ledger record for the event id short-circuits with its stored result.
    2. The order must exist, otherwise ReconciliationError.
    3. The event type picks a target order status and payment status.
    4. Stale events (a payment status ranked below the order's) are recorded
       but change nothing. Otherwise metadata is shallow-merged and the
       order walks to the target status through the lifecycle table.
    5. The ledger record and the order commit together.
    6. After commit, a best-effort admin notification goes out.

Gateway-driven transitions are validated like every other path. The one
allowance is a bridge through Payment_Processing, since gateways commonly
send "captured" without a prior "authorized". When no legal path exists the
event is still acknowledged, the payment fields are updated, the order status
is left alone and an admin is alerted to look at it.
"""

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import ReconciliationError
from storefront.notifications.dispatch import emit_alerts
from storefront.notifications.port import AdminAlert
from storefront.ordering.order import Order
from storefront.payments.ledger import PaymentEventRecord
from storefront.payments.mapping import is_stale, plan_status_path, resolve
from storefront.utils.retry import RetryPolicy, retry_on_conflict

logger = structlog.get_logger(__name__)

APPLIED = "applied"
IGNORED = "ignored"
STALE = "stale"
REJECTED_TRANSITION = "rejected_transition"

# Field limits of ApplyPaymentEvent, also checked by PaymentEvent.from_dict
MAX_EVENT_ID_LENGTH = 255
MAX_EVENT_TYPE_LENGTH = 50


@storefront.command(part_of="PaymentEventRecord")
class ApplyPaymentEvent:
    event_id = String(required=True, max_length=MAX_EVENT_ID_LENGTH)
    event_type = String(required=True, max_length=MAX_EVENT_TYPE_LENGTH)
    order_id = Identifier(required=True)
    gateway_payload = Text()  # JSON: gateway metadata


@dataclass(frozen=True)
class PaymentEvent:
    event_id: str
    type: str
    order_id: str
    payload: dict

    @classmethod
    def from_dict(cls, body) -> "PaymentEvent":
        """Build an event from the ingress shape ``{eventId, type, orderId, payload}``."""
        if not isinstance(body, dict):
            raise ValidationError({"body": ["Payment event must be a JSON object"]})

        errors = {}
        for key in ("eventId", "type", "orderId"):
            value = body.get(key)
            if not isinstance(value, str) or not value.strip():
                errors[key] = [f"{key} must be a non-empty string"]
        for key, limit in (("eventId", MAX_EVENT_ID_LENGTH), ("type", MAX_EVENT_TYPE_LENGTH)):
            value = body.get(key)
            if key not in errors and len(value.strip()) > limit:
                errors[key] = [f"{key} must be at most {limit} characters"]
        payload = body.get("payload", {})
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            errors["payload"] = ["payload must be an object"]
        if errors:
            raise ValidationError(errors)

        return cls(
            event_id=body["eventId"].strip(),
            type=body["type"].strip(),
            order_id=body["orderId"].strip(),
            payload=payload,
        )


@dataclass(frozen=True)
class ReconciliationResult:
    event_id: str
    order_id: str
    event_type: str
    outcome: str
    order_status: str | None
    payment_status: str | None
    replayed: bool = False


@storefront.command_handler(part_of=PaymentEventRecord)
class PaymentEventHandler:
    @handle(ApplyPaymentEvent)
    def apply_payment_event(self, command):
        ledger = current_domain.repository_for(PaymentEventRecord)
        try:
            record = ledger.get(command.event_id)
        except ObjectNotFoundError:
            record = None
        if record is not None:
            logger.info("Payment event already processed", event_id=command.event_id)
            return {**record.cached_result(), "replayed": True}, []

        orders = current_domain.repository_for(Order)
        try:
            order = orders.get(str(command.order_id))
        except ObjectNotFoundError as exc:
            logger.warning(
                "Payment event for unknown order",
                event_id=command.event_id,
                order_id=str(command.order_id),
            )
            raise ReconciliationError(command.event_id, str(command.order_id)) from exc

        payload = json.loads(command.gateway_payload) if command.gateway_payload else {}
        transition = resolve(command.event_type)
        alerts = []

        if transition is None:
            outcome = IGNORED
            logger.info("Unhandled payment event type", event_id=command.event_id, event_type=command.event_type)
        elif is_stale(order.payment_status, transition.payment_status):
            outcome = STALE
            logger.info(
                "Stale payment event",
                event_id=command.event_id,
                order_id=str(order.id),
                payment_status=order.payment_status,
                incoming=transition.payment_status,
            )
        else:
            order.record_payment(command.event_id, command.event_type, transition.payment_status, payload)
            path = plan_status_path(order.current_status, transition.order_status)
            if path is None:
                outcome = REJECTED_TRANSITION
                logger.warning(
                    "Payment event implies an illegal status change",
                    event_id=command.event_id,
                    order_id=str(order.id),
                    current_status=order.status,
                    target_status=transition.order_status.value,
                )
                alerts.append(
                    AdminAlert(
                        subject="Payment event needs review",
                        message=(
                            f"Order {order.order_number} is {order.status}; "
                            f"gateway event {command.event_type} asks for {transition.order_status.value}"
                        ),
                        context={"order_id": str(order.id), "event_id": command.event_id},
                    )
                )
            else:
                outcome = APPLIED
                for step in path:
                    order.change_status(step, note=f"Payment {command.event_type}", actor="payment_gateway")
                if path:
                    alerts.append(
                        AdminAlert(
                            subject="Order payment updated",
                            message=f"Order {order.order_number} is now {order.status} ({order.payment_status})",
                            context={"order_id": str(order.id), "event_id": command.event_id},
                        )
                    )
            orders.add(order)

        result = {
            "event_id": command.event_id,
            "order_id": str(order.id),
            "event_type": command.event_type,
            "outcome": outcome,
            "order_status": order.status,
            "payment_status": order.payment_status,
        }
        ledger.add(
            PaymentEventRecord(
                event_id=command.event_id,
                event_type=command.event_type,
                order_id=str(order.id),
                outcome=outcome,
                result=json.dumps(result),
                processed_at=datetime.now(UTC),
            )
        )
        logger.info("Payment event reconciled", **result)
        return {**result, "replayed": False}, alerts


class PaymentEventReconciler:
    """Applies verified payment events with retries on contention."""

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retry_policy = retry_policy or RetryPolicy.from_env()
        self._sleep = sleep
        self._clock = clock

    def apply(self, event: PaymentEvent) -> ReconciliationResult:
        """Apply one event; redeliveries return the first result with ``replayed=True``.

        Raises:
            ReconciliationError: the event names an order that does not exist.
        """
        command = ApplyPaymentEvent(
            event_id=event.event_id,
            event_type=event.type,
            order_id=event.order_id,
            gateway_payload=json.dumps(event.payload, default=str),
        )
        result, alerts = retry_on_conflict(
            lambda: current_domain.process(command, asynchronous=False),
            policy=self.retry_policy,
            operation_name="apply_payment_event",
            sleep=self._sleep,
            clock=self._clock,
        )
        emit_alerts(alerts)
        return ReconciliationResult(**result)
