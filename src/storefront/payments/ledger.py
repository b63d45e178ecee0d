"""Payment event ledger: one record per external event id.

The record is written in the same Unit of Work as the order update it
describes and keeps the serialized result, so a redelivered event gets the
original answer back without touching the order again.
"""

import json

from protean.fields import DateTime, Identifier, String, Text

from storefront.domain import storefront


@storefront.aggregate
class PaymentEventRecord:
    event_id = String(identifier=True, required=True, max_length=255)
    event_type = String(required=True, max_length=50)
    order_id = Identifier(required=True)
    outcome = String(required=True, max_length=50)
    result = Text(required=True)  # JSON: the reconciliation result
    processed_at = DateTime(required=True)

    def cached_result(self) -> dict:
        return json.loads(self.result)
