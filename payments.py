import hashlib
import hmac
import os

import requests
import structlog

import config
from errors import PaymentError
from pricing import to_minor_units

logger = structlog.get_logger(__name__)

RAZORPAY_ORDERS_URL = "https://api.razorpay.com/v1/orders"


def payments_configured() -> bool:
    return bool(config.RAZORPAY_KEY_ID and config.RAZORPAY_KEY_SECRET)


def create_payment_order(amount: int, receipt: str = None) -> dict:
    """Open a gateway order the checkout widget can collect against.

    `amount` is in whole rupees; the gateway receives minor units.
    """
    amount_paise = to_minor_units(amount)
    if not payments_configured():
        return {"id": None, "amount": amount_paise, "currency": config.CURRENCY, "razorpay": "not_configured"}
    try:
        r = requests.post(
            RAZORPAY_ORDERS_URL,
            auth=(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET),
            json={
                "amount": amount_paise,
                "currency": config.CURRENCY,
                "receipt": receipt or "rcpt_" + os.urandom(4).hex(),
                "payment_capture": 1,
            },
            timeout=15,
        )
    except requests.RequestException as e:
        logger.error("payment_order_failed", error=str(e))
        raise PaymentError() from e
    if r.status_code >= 300:
        logger.error("payment_order_rejected", status=r.status_code, body=r.text[:200])
        raise PaymentError()
    data = r.json()
    logger.info("payment_order_created", gateway_order_id=data.get("id"), amount=amount_paise)
    return {
        "id": data.get("id"),
        "amount": data.get("amount", amount_paise),
        "currency": data.get("currency", config.CURRENCY),
        "keyId": config.RAZORPAY_KEY_ID,
    }


def verify_signature(gateway_order_id: str, payment_id: str, signature: str) -> bool:
    if not config.RAZORPAY_KEY_SECRET:
        return False
    generated = hmac.new(
        bytes(config.RAZORPAY_KEY_SECRET, "utf-8"),
        msg=bytes(f"{gateway_order_id}|{payment_id}", "utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(generated, signature or "")
