import re
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from aggregation import DEFAULT_STATUS, parse_timestamp, resolve_timestamp
from errors import InvalidInput, UnknownStoragePath
from pathstore import PathStore
from schemas import ORDER_STATUSES

logger = structlog.get_logger(__name__)

DELIVERY_DAYS = 3

DELIVERY_STEPS = (
    ("processing", "Order Confirmed", "We have received your order"),
    ("shipped", "Order Processed", "Your order is being prepared for shipping"),
    ("in-transit", "Out for Delivery", "Your order is on its way to you"),
    ("delivered", "Delivered", "Your order has been delivered"),
)

_STEPS_REACHED = {
    "pending": 0,
    "processing": 1,
    "shipped": 2,
    "in-transit": 3,
    "delivered": 4,
    "cancelled": 0,
}


def order_paths(order_id: str) -> re.Pattern:
    oid = re.escape(order_id)
    return re.compile(rf"^(allOrders/{oid}|orders/{oid}|users/[^/.$]+/orders/{oid})$")


def now_ms() -> int:
    return int(time.time() * 1000)


def update_order_status(store: PathStore, order_id: str, status: str, source_path: Optional[str],
                        expected_version: Optional[int] = None, now: Optional[int] = None) -> dict:
    """Write a new status to the one path the order was last seen at.

    The path comes from the order list; without it nothing is written,
    since the other copies of the order cannot be told apart from stale ones.
    """
    if status not in ORDER_STATUSES:
        raise InvalidInput(f"Unknown order status: {status}")
    source_path = (source_path or "").strip("/")
    if not source_path or not order_paths(order_id).match(source_path):
        logger.warning("status_update_refused", order_id=order_id, source_path=source_path)
        raise UnknownStoragePath()
    record = store.get(source_path)
    if not isinstance(record, dict):
        logger.warning("status_update_refused", order_id=order_id, source_path=source_path, reason="missing")
        raise UnknownStoragePath()

    stamp = now if now is not None else now_ms()
    updates = {"status": status, "updatedAt": stamp}
    if status == "delivered":
        updates["deliveredAt"] = stamp
    elif status == "cancelled":
        updates["cancelledAt"] = stamp

    store.update(source_path, updates, expected_version=expected_version, versioned=True)
    version = (record.get("version") or 0) + 1
    logger.info("order_status_updated", order_id=order_id, status=status,
                source_path=source_path, version=version)
    return {**record, **updates, "id": order_id, "sourcePath": source_path, "version": version}


def delivery_progress(order: dict) -> dict:
    status = order.get("status") or DEFAULT_STATUS
    reached = _STEPS_REACHED.get(status, 0)
    steps = []
    for index, (step_id, title, description) in enumerate(DELIVERY_STEPS):
        steps.append({
            "id": step_id,
            "title": title,
            "description": description,
            "active": index < reached,
            "current": index == reached - 1,
        })

    placed = resolve_timestamp(order)
    estimated = None
    if placed and status != "cancelled":
        placed_at = datetime.fromtimestamp(placed / 1000, tz=timezone.utc)
        estimated = (placed_at + timedelta(days=DELIVERY_DAYS)).date().isoformat()
    delivered_at = order.get("deliveredAt")

    return {
        "orderId": order.get("id"),
        "status": status,
        "cancelled": status == "cancelled",
        "progress": int(reached * 100 / len(DELIVERY_STEPS)),
        "steps": steps,
        "estimatedDelivery": estimated,
        "deliveredAt": parse_timestamp(delivered_at) if delivered_at else None,
    }
