"""
Order aggregation

An order can be stored in up to three places:

    allOrders/{id}              flat copy written by single-item checkout
    orders/{id}                 flat copy written by cart checkout
    users/{uid}/orders/{id}     per-customer copy

The copies are treated as fragments of one order. They are merged per id,
each later fragment overwriting shared keys of the earlier ones
(allOrders < orders < user copy), and the merged order remembers the path
it was last seen at so a status change can be written back there.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog

from catalog import PLACEHOLDER_IMAGE
from errors import NotFound
from pathstore import PathStore
from pricing import format_inr, parse_price

logger = structlog.get_logger(__name__)

NO_EMAIL = "No email found"
DEFAULT_STATUS = "pending"
ADDRESS_KEYS = ("shippingAddress", "address", "shippingInfo")


# anything later than this cannot be turned back into a datetime safely
MAX_TIMESTAMP_MS = datetime(9999, 1, 1, tzinfo=timezone.utc).timestamp() * 1000


def _in_range(ms: float) -> float:
    return ms if 0 <= ms <= MAX_TIMESTAMP_MS else 0.0


def parse_timestamp(value) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return _in_range(float(value))
    text = str(value).strip()
    if text.isdigit():
        return _in_range(float(text))
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return _in_range(parsed.timestamp() * 1000)


def resolve_timestamp(order: dict) -> float:
    """Epoch milliseconds from `createdAt`, else `timestamp`, else 0.

    A present but unreadable value resolves to 0 so the order sorts as oldest.
    """
    for key in ("createdAt", "timestamp"):
        value = order.get(key)
        if value not in (None, ""):
            return parse_timestamp(value)
    return 0.0


def _address(order: dict) -> dict:
    for key in ADDRESS_KEYS:
        sub = order.get(key)
        if isinstance(sub, dict):
            return sub
    return {}


def resolve_user_id(order: dict) -> Optional[str]:
    if order.get("userId"):
        return order["userId"]
    user = order.get("user")
    if isinstance(user, dict) and user.get("id"):
        return user["id"]
    return None


def resolve_email(order: dict, users: Optional[Dict[str, dict]] = None) -> str:
    if order.get("email"):
        return order["email"]
    for key in ADDRESS_KEYS:
        sub = order.get(key)
        if isinstance(sub, dict) and sub.get("email"):
            return sub["email"]
    uid = resolve_user_id(order)
    profile = (users or {}).get(uid) if uid else None
    if isinstance(profile, dict) and profile.get("email"):
        return profile["email"]
    user = order.get("user")
    if isinstance(user, dict) and user.get("email"):
        return user["email"]
    return NO_EMAIL


def _items(order: dict) -> List[dict]:
    raw = order.get("items")
    if isinstance(raw, dict):
        raw = list(raw.values())
    if not raw and isinstance(order.get("item"), dict):
        raw = [order["item"]]
    items = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        images = item.get("images") or []
        items.append({
            **item,
            "quantity": parse_price(item.get("quantity")) or 1,
            "image": item.get("image") or (images[0] if images else PLACEHOLDER_IMAGE),
        })
    return items


def _total(order: dict, items: List[dict]) -> int:
    if order.get("total") not in (None, ""):
        return parse_price(order["total"])
    payment = order.get("payment")
    if isinstance(payment, dict) and payment.get("amount") not in (None, ""):
        return parse_price(payment["amount"])
    return sum(parse_price(i.get("price")) * i["quantity"] for i in items)


def _payment_method(order: dict) -> str:
    if order.get("paymentMethod"):
        return order["paymentMethod"]
    payment = order.get("payment")
    if isinstance(payment, dict) and payment.get("method"):
        return payment["method"]
    if order.get("razorpayPaymentId"):
        return "Razorpay"
    return "Cash on Delivery"


def order_view(order: dict, users: Optional[Dict[str, dict]] = None) -> dict:
    users = users or {}
    items = _items(order)
    total = _total(order, items)
    address = _address(order)
    uid = resolve_user_id(order)
    profile = (users.get(uid) if uid else None) or {}
    view = dict(order)
    view.update({
        "userId": uid,
        "status": order.get("status") or DEFAULT_STATUS,
        "items": items,
        "total": total,
        "totalDisplay": format_inr(total),
        "userEmail": resolve_email(order, users),
        "customerName": address.get("fullName") or address.get("name")
        or profile.get("displayName") or profile.get("name") or "Customer",
        "paymentMethod": _payment_method(order),
        "version": order.get("version") or 0,
        "resolvedTimestamp": resolve_timestamp(order),
    })
    return view


def merge_fragments(all_orders: Optional[dict], orders: Optional[dict], users: Optional[dict]) -> Dict[str, dict]:
    merged: Dict[str, dict] = {}

    def overlay(order_id, fragment, source_path, user_id=None):
        if not isinstance(fragment, dict):
            return
        # version belongs to the copy at source_path, not to the merge
        record = {**merged.get(order_id, {}), **fragment, "id": order_id, "sourcePath": source_path,
                  "version": fragment.get("version") or 0}
        if user_id:
            record["userId"] = user_id
        merged[order_id] = record

    for order_id, fragment in (all_orders or {}).items():
        overlay(order_id, fragment, f"allOrders/{order_id}")
    for order_id, fragment in (orders or {}).items():
        overlay(order_id, fragment, f"orders/{order_id}")
    for uid, user in (users or {}).items():
        if not isinstance(user, dict):
            continue
        for order_id, fragment in (user.get("orders") or {}).items():
            overlay(order_id, fragment, f"users/{uid}/orders/{order_id}", user_id=uid)
    return merged


def aggregate_orders(all_orders: Optional[dict], orders: Optional[dict], users: Optional[dict]) -> List[dict]:
    """One display-ready order per id, newest first."""
    merged = merge_fragments(all_orders, orders, users)
    views = [order_view(o, users) for o in merged.values()]
    views.sort(key=lambda v: v["resolvedTimestamp"], reverse=True)
    return views


def aggregate_from_store(store: PathStore) -> List[dict]:
    all_orders = store.get("allOrders") or {}
    orders = store.get("orders") or {}
    users = store.get("users") or {}
    views = aggregate_orders(all_orders, orders, users)
    logger.info("orders_aggregated", count=len(views),
                all_orders=len(all_orders), orders=len(orders), users=len(users))
    return views


def list_user_orders(store: PathStore, uid: str) -> List[dict]:
    return [v for v in aggregate_from_store(store) if v.get("userId") == uid]


def find_order(store: PathStore, order_id: str) -> dict:
    for view in aggregate_from_store(store):
        if view["id"] == order_id:
            return view
    raise NotFound("Order not found")
