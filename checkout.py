"""
Order placement

Two checkout paths exist and they store orders differently:

- cart checkout pushes one record under orders/ (generated key)
- single-item "buy now" writes LATHI_<ms> to the customer's orders and to
  allOrders

The order list reconciles both layouts (see aggregation.py).
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

import config
from errors import InvalidInput
from orders import now_ms
from pathstore import PathStore
from payments import payments_configured, verify_signature
from pricing import parse_price
from schemas import CartOrderRequest, SingleOrderRequest

logger = structlog.get_logger(__name__)


def _iso(moment_ms: int) -> str:
    return datetime.fromtimestamp(moment_ms / 1000, tz=timezone.utc).isoformat()


def place_cart_order(store: PathStore, req: CartOrderRequest, now: Optional[int] = None) -> dict:
    stamp = now if now is not None else now_ms()
    items = [i.model_dump(by_alias=True, exclude_none=True) for i in req.items]
    total = sum(parse_price(i["price"]) * i["quantity"] for i in items)

    if req.payment_method == "cod":
        payment = {"method": "cod", "status": "pending", "amount": total}
    else:
        payment = {"method": "online", "status": "completed", "transactionId": req.transaction_id, "amount": total}

    record = {
        "items": items,
        "shippingAddress": req.shipping_address.model_dump(by_alias=True),
        "payment": payment,
        "total": total,
        "status": "processing",
        "createdAt": _iso(stamp),
        "timestamp": stamp,
    }
    if req.user_id:
        record["userId"] = req.user_id

    order_id = store.push("orders", record)
    logger.info("order_placed", order_id=order_id, path="orders", total=total,
                payment_method=payment["method"], items=len(items))
    return {"orderId": order_id, "total": total, "status": record["status"], "sourcePath": f"orders/{order_id}"}


def place_single_item_order(store: PathStore, req: SingleOrderRequest, now: Optional[int] = None) -> dict:
    if req.razorpay_signature and req.razorpay_order_id and payments_configured():
        if not verify_signature(req.razorpay_order_id, req.razorpay_payment_id, req.razorpay_signature):
            logger.warning("payment_signature_mismatch", gateway_order_id=req.razorpay_order_id)
            raise InvalidInput("Payment verification failed. Please contact support.")

    stamp = now if now is not None else now_ms()
    order_id = f"{config.ORDER_ID_PREFIX}{stamp}"
    item = req.item.model_dump(by_alias=True, exclude_none=True)
    total = parse_price(item["price"]) * item["quantity"]

    record = {
        "dbOrderId": order_id,
        "razorpayPaymentId": req.razorpay_payment_id,
        "item": item,
        "address": req.address.model_dump(by_alias=True),
        "total": total,
        "status": "processing",
        "paymentStatus": "paid",
        "createdAt": _iso(stamp),
        "user": {"id": req.user_id, "email": req.email or req.address.email or None},
    }
    if req.razorpay_order_id:
        record["razorpayOrderId"] = req.razorpay_order_id
    if req.razorpay_signature:
        record["razorpaySignature"] = req.razorpay_signature

    # two independent writes, not a batch
    store.set(f"users/{req.user_id}/orders/{order_id}", record)
    store.set(f"allOrders/{order_id}", record)
    logger.info("order_placed", order_id=order_id, path="users+allOrders", total=total, user_id=req.user_id)
    return {
        "orderId": order_id,
        "total": total,
        "status": record["status"],
        "sourcePath": f"users/{req.user_id}/orders/{order_id}",
    }
