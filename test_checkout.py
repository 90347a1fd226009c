import hashlib
import hmac

import pytest
from pydantic import ValidationError

import config
from aggregation import aggregate_from_store
from checkout import place_cart_order, place_single_item_order
from errors import InvalidInput
from schemas import CartOrderRequest, FeedbackIn, ShippingAddress, SingleOrderRequest

ITEMS = [
    {"id": "p1", "name": "White Kurta", "price": "₹799", "quantity": 2, "size": "M"},
    {"id": "p2", "name": "Pink Kurta", "price": "₹1,299", "size": "L"},
]


def test_cart_checkout_pushes_under_orders(store, address):
    req = CartOrderRequest.model_validate({
        "userId": "u1", "items": ITEMS, "shippingAddress": address, "paymentMethod": "online",
        "transactionId": "pay_123",
    })
    placed = place_cart_order(store, req, now=1735689600000)

    record = store.get(f"orders/{placed['orderId']}")
    assert record["total"] == 799 * 2 + 1299
    assert record["status"] == "processing"
    assert record["payment"] == {"method": "online", "status": "completed", "transactionId": "pay_123",
                                 "amount": 2897}
    assert record["shippingAddress"]["fullName"] == "Asha Verma"
    assert record["createdAt"] == "2025-01-01T00:00:00+00:00"
    assert store.get("allOrders") == {}


def test_cash_on_delivery_is_pending_payment(store, address):
    req = CartOrderRequest.model_validate({"items": ITEMS[:1], "shippingAddress": address, "paymentMethod": "cod"})
    placed = place_cart_order(store, req)
    assert store.get(f"orders/{placed['orderId']}/payment") == {"method": "cod", "status": "pending", "amount": 1598}

    order = aggregate_from_store(store)[0]
    assert order["userEmail"] == "asha@example.com"
    assert order["paymentMethod"] == "cod"


def test_single_item_checkout_writes_user_and_all_orders(store, address):
    req = SingleOrderRequest.model_validate({
        "userId": "u1", "email": "asha@example.com", "item": ITEMS[0], "address": address,
        "razorpayPaymentId": "pay_9",
    })
    placed = place_single_item_order(store, req, now=1735689600000)

    assert placed["orderId"] == "LATHI_1735689600000"
    user_copy = store.get("users/u1/orders/LATHI_1735689600000")
    assert user_copy == store.get("allOrders/LATHI_1735689600000")
    assert user_copy["total"] == 1598
    assert user_copy["paymentStatus"] == "paid"
    assert user_copy["user"] == {"id": "u1", "email": "asha@example.com"}
    assert [w[1] for w in store.writes] == ["users/u1/orders/LATHI_1735689600000", "allOrders/LATHI_1735689600000"]

    views = aggregate_from_store(store)
    assert len(views) == 1
    assert views[0]["sourcePath"] == "users/u1/orders/LATHI_1735689600000"


def test_online_payment_needs_transaction_id(address):
    with pytest.raises(ValidationError):
        CartOrderRequest.model_validate({"items": ITEMS, "shippingAddress": address})


@pytest.mark.parametrize("field, value", [
    ("pincode", "012345"),
    ("pincode", "30200"),
    ("email", "not-an-email"),
    ("state", "Atlantis"),
    ("fullName", "   "),
])
def test_address_validation(address, field, value):
    address[field] = value
    with pytest.raises(ValidationError):
        CartOrderRequest.model_validate({"items": ITEMS, "shippingAddress": address, "paymentMethod": "cod"})


def test_empty_cart_is_rejected(address):
    with pytest.raises(ValidationError):
        CartOrderRequest.model_validate({"items": [], "shippingAddress": address, "paymentMethod": "cod"})


def test_user_id_cannot_break_out_of_its_path(address):
    with pytest.raises(ValidationError):
        SingleOrderRequest.model_validate({"userId": "u1/orders", "item": ITEMS[0], "address": address,
                                           "razorpayPaymentId": "pay_1"})


def test_tampered_payment_signature_is_refused(store, address, monkeypatch):
    monkeypatch.setattr(config, "RAZORPAY_KEY_ID", "rzp_test")
    monkeypatch.setattr(config, "RAZORPAY_KEY_SECRET", "secret")
    good = hmac.new(b"secret", b"order_1|pay_1", hashlib.sha256).hexdigest()
    body = {"userId": "u1", "email": "asha@example.com", "item": ITEMS[0], "address": address,
            "razorpayOrderId": "order_1", "razorpayPaymentId": "pay_1"}

    with pytest.raises(InvalidInput):
        place_single_item_order(store, SingleOrderRequest.model_validate({**body, "razorpaySignature": "forged"}))
    assert store.writes == []

    placed = place_single_item_order(store, SingleOrderRequest.model_validate({**body, "razorpaySignature": good}),
                                     now=1735689600000)
    assert placed["orderId"] == "LATHI_1735689600000"


def test_address_email_is_optional_but_checked(address):
    address["email"] = "  "
    assert ShippingAddress.model_validate(address).email == ""
    address["email"] = "asha@"
    with pytest.raises(ValidationError):
        ShippingAddress.model_validate(address)


def test_feedback_email_is_checked():
    assert FeedbackIn.model_validate({"rating": 5, "comment": "Soft cotton", "email": "fan@example.com"}).email
    with pytest.raises(ValidationError):
        FeedbackIn.model_validate({"rating": 5, "comment": "Soft cotton", "email": "fan-at-example"})
