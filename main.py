import os
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
import database
from aggregation import aggregate_from_store, list_user_orders
from cart import Cart
from catalog import create_product, delete_product, get_product, list_products, update_product
from checkout import place_cart_order, place_single_item_order
from community import list_addresses, list_feedback, list_subscribers, save_address, submit_feedback, subscribe
from database import get_db
from errors import InvalidInput, NotFound, StoreError, UnknownStoragePath
from logger import configure_logging
from orders import delivery_progress, update_order_status
from pathstore import PathStore
from payments import create_payment_order
from refunds import decide_refund, list_notifications, list_refund_requests, mark_notification_read, request_refund
from schemas import (
    CartAddRequest,
    CartOrderRequest,
    CartQuoteRequest,
    FeedbackIn,
    PaymentOrderRequest,
    Product,
    ProductUpdate,
    RefundDecisionIn,
    RefundRequestIn,
    ShippingAddress,
    SingleOrderRequest,
    StatusUpdateRequest,
    SubscribeRequest,
)

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="Cotton Fab Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.warning("request_failed", method=request.method, path=request.url.path,
                   status=exc.status_code, error=exc.message)
    body = {"detail": exc.message}
    if isinstance(exc, InvalidInput) and exc.fields:
        body["fields"] = exc.fields
    return JSONResponse(status_code=exc.status_code, content=body)


def get_store(db=Depends(get_db)) -> PathStore:
    return PathStore(db)


def require_admin(x_user_email: Optional[str] = Header(None)) -> str:
    if not config.is_admin_email(x_user_email):
        raise HTTPException(status_code=403, detail="Unauthorized access")
    return x_user_email


@app.get("/")
def root():
    return {"status": "ok", "service": "storefront-api"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Connected & Working"
            response["database_url"] = "✅ Set" if config.DATABASE_URL else "❌ Not Set"
            response["database_name"] = database.db.name if hasattr(database.db, 'name') else "✅ Connected"
            response["connection_status"] = "Connected"
            try:
                collections = database.db.list_collection_names()
                response["collections"] = collections[:10]
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:80]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response

# ---------- Products ----------
@app.get("/api/products")
def api_list_products(category: Optional[str] = None, store: PathStore = Depends(get_store)):
    return list_products(store, category)

@app.get("/api/products/{product_id}")
def api_get_product(product_id: str, store: PathStore = Depends(get_store)):
    return get_product(store, product_id)

@app.post("/api/products", dependencies=[Depends(require_admin)])
def api_create_product(product: Product, store: PathStore = Depends(get_store)):
    return create_product(store, product)

@app.put("/api/products/{product_id}", dependencies=[Depends(require_admin)])
def api_update_product(product_id: str, payload: ProductUpdate, store: PathStore = Depends(get_store)):
    return update_product(store, product_id, payload)

@app.delete("/api/products/{product_id}", dependencies=[Depends(require_admin)])
def api_delete_product(product_id: str, store: PathStore = Depends(get_store)):
    delete_product(store, product_id)
    return {"deleted": True}

# ---------- Cart ----------
@app.post("/api/cart/quote")
def api_cart_quote(body: CartQuoteRequest):
    return Cart(body.cart).quote()

@app.post("/api/cart/add")
def api_cart_add(body: CartAddRequest):
    cart = Cart(body.cart)
    cart.add(body.product, body.size, body.quantity)
    return cart.quote()

# ---------- Checkout ----------
@app.post("/api/checkout/payment-order")
def api_payment_order(body: PaymentOrderRequest):
    return create_payment_order(body.amount, body.receipt)

@app.post("/api/checkout/cart")
def api_checkout_cart(body: CartOrderRequest, store: PathStore = Depends(get_store)):
    return place_cart_order(store, body)

@app.post("/api/checkout/single")
def api_checkout_single(body: SingleOrderRequest, store: PathStore = Depends(get_store)):
    return place_single_item_order(store, body)

# ---------- Orders (admin) ----------
@app.get("/api/admin/orders", dependencies=[Depends(require_admin)])
def api_admin_orders(store: PathStore = Depends(get_store)):
    return aggregate_from_store(store)

@app.patch("/api/admin/orders/{order_id}/status", dependencies=[Depends(require_admin)])
def api_update_order_status(order_id: str, body: StatusUpdateRequest, store: PathStore = Depends(get_store)):
    if not body.source_path:
        raise UnknownStoragePath()
    return update_order_status(store, order_id, body.status, body.source_path, body.expected_version)

# ---------- Orders (customer) ----------
@app.get("/api/users/{uid}/orders")
def api_user_orders(uid: str, store: PathStore = Depends(get_store)):
    return list_user_orders(store, uid)

@app.get("/api/users/{uid}/orders/{order_id}/tracking")
def api_order_tracking(uid: str, order_id: str, store: PathStore = Depends(get_store)):
    for order in list_user_orders(store, uid):
        if order["id"] == order_id:
            return delivery_progress(order)
    raise NotFound("Order not found")

@app.post("/api/users/{uid}/orders/{order_id}/refund")
def api_request_refund(uid: str, order_id: str, body: RefundRequestIn, store: PathStore = Depends(get_store)):
    return request_refund(store, uid, order_id, body.reason)

# ---------- Refunds (admin) ----------
@app.get("/api/admin/refunds", dependencies=[Depends(require_admin)])
def api_list_refunds(store: PathStore = Depends(get_store)):
    return list_refund_requests(store)

@app.post("/api/admin/refunds/{order_id}/decision", dependencies=[Depends(require_admin)])
def api_decide_refund(order_id: str, body: RefundDecisionIn, store: PathStore = Depends(get_store)):
    return decide_refund(store, order_id, body.decision, body.admin_note)

# ---------- Notifications ----------
@app.get("/api/users/{uid}/notifications")
def api_notifications(uid: str, store: PathStore = Depends(get_store)):
    return list_notifications(store, uid)

@app.post("/api/users/{uid}/notifications/{notification_id}/read")
def api_read_notification(uid: str, notification_id: str, store: PathStore = Depends(get_store)):
    return mark_notification_read(store, uid, notification_id)

# ---------- Addresses ----------
@app.post("/api/users/{uid}/addresses")
def api_save_address(uid: str, body: ShippingAddress, store: PathStore = Depends(get_store)):
    return save_address(store, uid, body)

@app.get("/api/users/{uid}/addresses")
def api_list_addresses(uid: str, store: PathStore = Depends(get_store)):
    return list_addresses(store, uid)

# ---------- Subscribers & feedback ----------
@app.post("/api/subscribers")
def api_subscribe(body: SubscribeRequest, store: PathStore = Depends(get_store)):
    return subscribe(store, body.email)

@app.get("/api/subscribers", dependencies=[Depends(require_admin)])
def api_list_subscribers(store: PathStore = Depends(get_store)):
    return list_subscribers(store)

@app.post("/api/feedback")
def api_feedback(body: FeedbackIn, store: PathStore = Depends(get_store)):
    return submit_feedback(store, body)

@app.get("/api/feedback", dependencies=[Depends(require_admin)])
def api_list_feedback(store: PathStore = Depends(get_store)):
    return list_feedback(store)

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
