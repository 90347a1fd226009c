"""
Storefront Schemas

Pydantic models for request bodies and stored records. Records are kept in
the database with camelCase keys (`careInstructions`, `shippingAddress`), so
every model aliases its snake_case fields to camelCase and accepts either.
Dump with `by_alias=True` before writing.

Storage paths:
- products/{id}
- orders/{id}, allOrders/{id}, users/{uid}/orders/{id}
- users/{uid}/addresses/{id}, users/{uid}/notifications/{id}
- subscribers/{id}, feedback/{id}
"""

import re
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator, model_validator
from pydantic.alias_generators import to_camel

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
SIZES = ("XS", "S", "M", "L", "XL", "XXL", "XXXL")

INDIAN_STATES = (
    "Andhra Pradesh", "Arunachal Pradesh", "Assam", "Bihar", "Chhattisgarh",
    "Goa", "Gujarat", "Haryana", "Himachal Pradesh", "Jharkhand",
    "Karnataka", "Kerala", "Madhya Pradesh", "Maharashtra", "Manipur",
    "Meghalaya", "Mizoram", "Nagaland", "Odisha", "Punjab",
    "Rajasthan", "Sikkim", "Tamil Nadu", "Telangana", "Tripura",
    "Uttar Pradesh", "Uttarakhand", "West Bengal",
    "Andaman and Nicobar Islands", "Chandigarh",
    "Dadra and Nagar Haveli and Daman and Diu", "Delhi", "Jammu and Kashmir",
    "Ladakh", "Lakshadweep", "Puducherry",
)

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
Size = Literal["XS", "S", "M", "L", "XL", "XXL", "XXXL"]
Category = Literal["one-piece", "two-piece", "three-piece", "short-kurti"]
Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Key = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, pattern=r"^[^/.$]+$")]
Price = Union[int, str]

_PINCODE_RE = re.compile(r"^[1-9][0-9]{5}$")


def ordered_sizes(sizes) -> list:
    wanted = set(sizes)
    return [s for s in SIZES if s in wanted]


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- Catalog ----------

class Product(Record):
    """
    Catalog product
    Path: products/{id}
    """
    name: Text = Field(..., description="Product name")
    price: Text = Field(..., description="Display price, e.g. '₹799'")
    description: Text = Field(..., description="Product description")
    fabric: Text = Field(..., description="Fabric")
    color: Text = Field(..., description="Colour")
    category: Category = Field("one-piece", description="Catalog category")
    sizes: List[Size] = Field(default_factory=list, description="Available sizes")
    images: List[str] = Field(default_factory=list, description="Image URLs, first is the cover")
    features: List[str] = Field(default_factory=list)
    care_instructions: List[str] = Field(default_factory=list)

    @field_validator("sizes")
    @classmethod
    def unique_sizes(cls, v):
        return ordered_sizes(v)

    @field_validator("images", "features", "care_instructions")
    @classmethod
    def drop_blank(cls, v):
        return [s.strip() for s in v if s and s.strip()]


class ProductUpdate(Record):
    name: Optional[Text] = None
    price: Optional[Text] = None
    description: Optional[Text] = None
    fabric: Optional[Text] = None
    color: Optional[Text] = None
    category: Optional[Category] = None
    sizes: Optional[List[Size]] = None
    images: Optional[List[str]] = None
    features: Optional[List[str]] = None
    care_instructions: Optional[List[str]] = None


# ---------- Cart ----------

class CartLine(Record):
    id: str = Field(..., description="Product id")
    size: str = Field(..., description="Selected size")
    quantity: int = Field(1, ge=1)
    name: str = Field("", description="Name snapshot at add time")
    price: Price = Field("0", description="Display price snapshot at add time")
    image: Optional[str] = None


class CartProduct(Record):
    id: str
    name: str = ""
    price: Price = "0"
    images: List[str] = Field(default_factory=list)


class CartAddRequest(Record):
    cart: List[CartLine] = Field(default_factory=list)
    product: CartProduct
    size: Text
    quantity: int = Field(1, ge=1)


class CartQuoteRequest(Record):
    cart: List[CartLine] = Field(default_factory=list)


# ---------- Checkout ----------

class ShippingAddress(Record):
    full_name: Text
    phone: Text
    email: Union[EmailStr, Literal[""]] = ""
    address1: Text
    address2: str = ""
    city: Text
    state: Text
    pincode: Text

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("pincode")
    @classmethod
    def pincode_shape(cls, v):
        if not _PINCODE_RE.match(v):
            raise ValueError("Invalid pincode")
        return v

    @field_validator("state")
    @classmethod
    def known_state(cls, v):
        if v not in INDIAN_STATES:
            raise ValueError("State is required")
        return v


class OrderItem(Record):
    id: str
    name: str = ""
    price: Price = "0"
    quantity: int = Field(1, ge=1)
    size: Optional[str] = None
    image: Optional[str] = None


class CartOrderRequest(Record):
    user_id: Optional[Key] = None
    items: List[OrderItem] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: Literal["online", "cod"] = "online"
    transaction_id: Optional[str] = None

    @model_validator(mode="after")
    def online_needs_transaction(self):
        if self.payment_method == "online" and not self.transaction_id:
            raise ValueError("transactionId is required for online payments")
        return self

    @field_validator("shipping_address")
    @classmethod
    def email_required(cls, v):
        if not v.email:
            raise ValueError("Email is required")
        return v


class SingleOrderRequest(Record):
    user_id: Key
    email: Optional[EmailStr] = None
    item: OrderItem
    address: ShippingAddress
    razorpay_payment_id: Text
    razorpay_order_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class PaymentOrderRequest(Record):
    amount: int = Field(..., gt=0, description="Amount in whole rupees")
    receipt: Optional[str] = None


# ---------- Orders & refunds ----------

class StatusUpdateRequest(Record):
    status: OrderStatus
    source_path: Optional[str] = Field(None, description="Storage path reported by the order list")
    expected_version: Optional[int] = Field(None, ge=0)


class RefundRequest(Record):
    """
    Refund sub-record
    Path: allOrders/{id}/refundRequest and users/{uid}/orders/{id}/refundRequest
    """
    reason: str
    requested_at: str
    status: Literal["pending", "approved", "rejected"] = "pending"
    amount: int = 0
    admin_note: Optional[str] = None
    updated_at: Optional[str] = None


class RefundRequestIn(Record):
    reason: str


class RefundDecisionIn(Record):
    decision: Literal["approved", "rejected"]
    admin_note: Optional[str] = None


class Notification(Record):
    type: str = "refund_update"
    order_id: str
    status: str
    message: str
    read: bool = False
    created_at: str


# ---------- Community ----------

class SubscribeRequest(Record):
    email: EmailStr


class FeedbackIn(Record):
    rating: int = Field(..., ge=1, le=5)
    comment: Text
    user_id: Optional[str] = None
    email: Optional[EmailStr] = None
