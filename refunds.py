"""
Refund workflow

A customer may ask for a refund once per order, after the order was
delivered or cancelled and within the refund window. The request is stored
on both the customer's copy of the order and the allOrders copy. The admin
decision is written to both copies, together with a notification for the
customer, in a single batched update. A decided refund is final.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import structlog

import config
from aggregation import merge_fragments, order_view, parse_timestamp, resolve_timestamp, resolve_user_id
from errors import InvalidInput, NotFound, RefundNotAllowed
from pathstore import PathStore
from schemas import Notification, RefundRequest

logger = structlog.get_logger(__name__)

REFUNDABLE_STATUSES = ("delivered", "cancelled")
DECISIONS = ("approved", "rejected")


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _window_start(order: dict) -> float:
    if order.get("status") == "delivered" and order.get("deliveredAt"):
        return parse_timestamp(order["deliveredAt"])
    if order.get("status") == "cancelled" and order.get("cancelledAt"):
        return parse_timestamp(order["cancelledAt"])
    return resolve_timestamp(order)


def refund_block_reason(order: dict, now: Optional[datetime] = None) -> Optional[str]:
    """Why a refund cannot be requested for `order`, or None if it can."""
    if order.get("refundRequest"):
        return "A refund has already been requested for this order"
    if order.get("status") not in REFUNDABLE_STATUSES:
        return "Refunds can only be requested for delivered or cancelled orders"
    start = datetime.fromtimestamp(_window_start(order) / 1000, tz=timezone.utc)
    if _now(now) - start > timedelta(days=config.REFUND_WINDOW_DAYS):
        return f"Refunds must be requested within {config.REFUND_WINDOW_DAYS} days"
    return None


def validate_reason(reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise InvalidInput("Please tell us why you want a refund", fields={"reason": "required"})
    if len(reason) < config.REFUND_MIN_REASON_LENGTH:
        raise InvalidInput(
            f"Reason must be at least {config.REFUND_MIN_REASON_LENGTH} characters",
            fields={"reason": "too_short"},
        )
    return reason


def request_refund(store: PathStore, uid: str, order_id: str, reason: str,
                   now: Optional[datetime] = None) -> dict:
    user_path = f"users/{uid}/orders/{order_id}"
    all_path = f"allOrders/{order_id}"
    user_copy = store.get(user_path)
    all_copy = store.get(all_path)
    flat_copy = store.get(f"orders/{order_id}") if user_copy is None and all_copy is None else None

    fragments = [c for c in (all_copy, flat_copy, user_copy) if isinstance(c, dict)]
    if not fragments:
        raise NotFound("Order not found")
    order = {}
    for fragment in fragments:
        order.update(fragment)
    if user_copy is None and resolve_user_id(order) != uid:
        raise NotFound("Order not found")

    blocked = refund_block_reason(order, now)
    if blocked:
        logger.info("refund_request_blocked", order_id=order_id, user_id=uid, reason=blocked)
        raise RefundNotAllowed(blocked)
    reason = validate_reason(reason)

    refund = RefundRequest(
        reason=reason,
        requested_at=_now(now).isoformat(),
        amount=order_view(order)["total"],
    ).model_dump(by_alias=True, exclude_none=True)

    updates = {
        f"{user_path}/refundRequest": refund,
        f"{all_path}/refundRequest": refund,
    }
    if all_copy is None:
        updates[f"{all_path}/userId"] = uid
    store.update_paths(updates)
    logger.info("refund_requested", order_id=order_id, user_id=uid, amount=refund["amount"])
    return {"orderId": order_id, **refund}


def list_refund_requests(store: PathStore) -> List[dict]:
    users = store.get("users") or {}
    merged = merge_fragments(store.get("allOrders"), store.get("orders"), users)
    refunds = []
    for order_id, order in merged.items():
        if not order.get("refundRequest"):
            continue
        view = order_view(order, users)
        shipping = order.get("shippingInfo") or order.get("address") or order.get("shippingAddress") or {}
        refunds.append({
            "id": order_id,
            "customerName": shipping.get("name") or shipping.get("fullName") or "",
            **order["refundRequest"],
            "orderDetails": {
                "total": view["total"],
                "items": view["items"],
                "status": order.get("status"),
                "createdAt": order.get("createdAt"),
                "paymentMethod": order.get("paymentMethod") or view["paymentMethod"],
                "shippingAddress": shipping.get("address") or shipping.get("address1") or "No address provided",
            },
            "userId": view["userId"] or "",
            "orderDate": order.get("createdAt"),
        })
    refunds.sort(key=lambda r: parse_timestamp(r.get("requestedAt") or 0), reverse=True)
    return refunds


def decide_refund(store: PathStore, order_id: str, decision: str, admin_note: Optional[str] = None,
                  now: Optional[datetime] = None) -> dict:
    if decision not in DECISIONS:
        raise InvalidInput(f"Unknown refund decision: {decision}")
    all_path = f"allOrders/{order_id}"
    order = store.get(all_path)
    if not isinstance(order, dict) or not order.get("refundRequest"):
        raise NotFound("Refund request not found")
    current = order["refundRequest"].get("status", "pending")
    if current != "pending":
        logger.info("refund_decision_blocked", order_id=order_id, decision=decision, current=current)
        raise RefundNotAllowed(f"This refund has already been {current}")

    moment = _now(now)
    timestamp = moment.isoformat()
    fields = {"status": decision, "updatedAt": timestamp}
    if admin_note:
        fields["adminNote"] = admin_note.strip()

    updates = {f"{all_path}/refundRequest/{k}": v for k, v in fields.items()}
    uid = resolve_user_id(order)
    if uid:
        user_path = f"users/{uid}/orders/{order_id}"
        updates.update({f"{user_path}/refundRequest/{k}": v for k, v in fields.items()})
        notification_id = f"notification_{int(moment.timestamp() * 1000)}"
        updates[f"users/{uid}/notifications/{notification_id}"] = Notification(
            order_id=order_id,
            status=decision,
            message=f"Your refund request has been {decision}",
            created_at=timestamp,
        ).model_dump(by_alias=True)

    try:
        store.update_paths(updates)
    except Exception:
        logger.error("refund_decision_failed", order_id=order_id, decision=decision, exc_info=True)
        raise
    logger.info("refund_decided", order_id=order_id, decision=decision, user_id=uid)
    return {"id": order_id, **order["refundRequest"], **fields, "userId": uid or ""}


def list_notifications(store: PathStore, uid: str) -> List[dict]:
    entries = store.get(f"users/{uid}/notifications") or {}
    items = [{"id": nid, **n} for nid, n in entries.items() if isinstance(n, dict)]
    items.sort(key=lambda n: parse_timestamp(n.get("createdAt") or 0), reverse=True)
    return items


def mark_notification_read(store: PathStore, uid: str, notification_id: str) -> dict:
    path = f"users/{uid}/notifications/{notification_id}"
    entry = store.get(path)
    if not isinstance(entry, dict):
        raise NotFound("Notification not found")
    store.update(path, {"read": True})
    return {"id": notification_id, **entry, "read": True}
