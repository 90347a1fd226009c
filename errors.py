"""
Storefront errors

Every failure the services raise carries the HTTP status it maps to and a
message safe to show the customer. main.py turns them into JSON responses.
"""


class StoreError(Exception):
    status_code = 500
    message = "Something went wrong"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidInput(StoreError):
    status_code = 422
    message = "Invalid input"

    def __init__(self, message: str = None, fields: dict = None):
        super().__init__(message)
        self.fields = fields or {}


class NotFound(StoreError):
    status_code = 404
    message = "Not found"


class UnknownStoragePath(StoreError):
    status_code = 409
    message = "Order location unknown, refresh the order list and try again"


class StaleWrite(StoreError):
    status_code = 409
    message = "Order was changed by someone else, refresh and try again"


class RefundNotAllowed(StoreError):
    status_code = 409
    message = "Refund cannot be requested for this order"


class StorageFailure(StoreError):
    status_code = 503
    message = "Storage request failed, please try again"


class DatabaseUnavailable(StoreError):
    status_code = 500
    message = "Database not configured"


class PaymentError(StoreError):
    status_code = 502
    message = "Payment gateway failed"
