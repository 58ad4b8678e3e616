import json
import logging
from typing import Optional

from ..common.config import settings
from ..common.kafka_client import get_producer
from ..common.db import utcnow

_logger = logging.getLogger(__name__)

ORDER_CREATED = "order.created"
ORDER_STATUS_CHANGED = "order.status_changed"


def build_event(event_type: str, order: dict, previous_status: Optional[str] = None) -> dict:
    payload = {
        "type": event_type,
        "order_id": order["id"],
        "user_id": order["user_id"],
        "status": order["status"],
        "total": order["total"],
        "items": [
            {"product_id": item["product_id"], "quantity": item["quantity"], "price": item["price"]}
            for item in order["items"]
        ],
        "occurred_at": utcnow().isoformat(),
    }
    if previous_status is not None:
        payload["previous_status"] = previous_status
    return payload


async def publish_order_event(event_type: str, order: dict, previous_status: Optional[str] = None) -> bool:
    """Publish a committed order change. Broker failures are logged, not raised."""
    if not settings.KAFKA_ENABLED:
        return False
    payload = build_event(event_type, order, previous_status)
    try:
        producer = await get_producer()
        await producer.send_and_wait(
            settings.ORDER_EVENTS_TOPIC,
            json.dumps(payload).encode("utf-8"),
            key=order["id"].encode("utf-8"),
        )
    except Exception as e:
        _logger.warning("Order event not published | type=%s order_id=%s err=%s", event_type, order["id"], e)
        return False
    _logger.info("Order event published | type=%s order_id=%s status=%s", event_type, order["id"], order["status"])
    return True
