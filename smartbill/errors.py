"""
Billing errors.

Validation errors are raised before any state changes. Storage errors
never roll an operation back: the stores catch them and return them as
warnings next to the result.
"""
from __future__ import annotations


class BillingError(Exception):
    """Root of every error raised by the billing core."""


class NotFound(BillingError, LookupError):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id!r} not found in catalog.")
        self.product_id = product_id


class OutOfStock(BillingError):
    def __init__(self, name: str):
        super().__init__(f"{name} is out of stock.")
        self.name = name


class InvalidQuantity(BillingError, ValueError):
    pass


class InvalidRate(BillingError, ValueError):
    pass


class InsufficientStock(BillingError):
    """Add would allocate more than the item's available pool."""

    def __init__(self, available: int, remaining: int, in_cart: int):
        super().__init__(
            f"Only {available} items available in stock "
            f"({remaining} remaining + {in_cart} already in cart)."
        )
        self.available = available
        self.remaining = remaining
        self.in_cart = in_cart


class OutOfRange(BillingError, IndexError):
    def __init__(self, index: int, size: int):
        super().__init__(f"Index {index} is out of range (0..{size - 1}).")
        self.index = index
        self.size = size


class DuplicateIdentifier(BillingError):
    def __init__(self, product_id: str):
        super().__init__(f"Product ID {product_id!r} already exists. Please use a different ID.")
        self.product_id = product_id


class InvalidProduct(BillingError, ValueError):
    pass


class PersistenceError(BillingError):
    pass


class PersistenceLoadError(PersistenceError):
    def __init__(self, key: str, reason: str):
        super().__init__(f"Stored {key!r} is unusable: {reason}")
        self.key = key
        self.reason = reason


class PersistenceWriteError(PersistenceError):
    def __init__(self, key: str, reason: str):
        super().__init__(f"Unable to save {key!r}: {reason}")
        self.key = key
        self.reason = reason
