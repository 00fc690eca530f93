"""
Persistence adapter.

Two independent records in the key-value store:

- ``catalog``           -> JSON array of {id, name, price, stock, inStock}
- ``smartBillPro_data`` -> JSON object {products: [...], discountRate, taxRate}

Loads validate the shape and raise PersistenceLoadError instead of
trusting part of a malformed record. ``inStock`` is written for
compatibility with older readers but ignored on load.
"""
from __future__ import annotations

import json
import math
import sqlite3
from typing import Any, List, Optional

from smartbill.constants import BILLING_KEY, CATALOG_KEY, DEFAULT_DISCOUNT_RATE, DEFAULT_TAX_RATE
from smartbill.errors import PersistenceLoadError, PersistenceWriteError
from smartbill.models import BillingState, CartLine, CatalogItem
from smartbill.utils.validators import clamp_rate, parse_number

STORE_ERRORS = (sqlite3.Error, OSError)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _is_whole(v: Any) -> bool:
    return _is_number(v) and float(v).is_integer()


def _read(kv, key: str) -> Optional[Any]:
    try:
        raw = kv.get(key)
    except STORE_ERRORS as e:
        raise PersistenceLoadError(key, str(e)) from e
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PersistenceLoadError(key, f"invalid JSON ({e})") from e


def _write(kv, key: str, payload: Any) -> None:
    try:
        kv.set(key, json.dumps(payload, ensure_ascii=False))
    except STORE_ERRORS as e:
        raise PersistenceWriteError(key, str(e)) from e


# ---------------- catalog ----------------

def _catalog_item(raw: Any, pos: int) -> CatalogItem:
    if not isinstance(raw, dict):
        raise PersistenceLoadError(CATALOG_KEY, f"item #{pos} is not an object")
    pid = raw.get("id")
    name = raw.get("name")
    price = raw.get("price")
    stock = raw.get("stock")
    if pid is None or isinstance(pid, (dict, list, bool)):
        raise PersistenceLoadError(CATALOG_KEY, f"item #{pos} has no usable id")
    if not isinstance(name, str) or not name.strip():
        raise PersistenceLoadError(CATALOG_KEY, f"item #{pos} has no name")
    if not _is_number(price) or price < 0:
        raise PersistenceLoadError(CATALOG_KEY, f"item #{pos} has an invalid price")
    if not _is_whole(stock):
        raise PersistenceLoadError(CATALOG_KEY, f"item #{pos} has an invalid stock")
    # id shape is not checked here: CatalogStore migrates bad ids in place
    return CatalogItem(id=str(pid), name=name, price=float(price), stock=max(0, int(stock)))


def load_catalog(kv) -> Optional[List[CatalogItem]]:
    """Stored catalog, or None when nothing has been saved yet."""
    data = _read(kv, CATALOG_KEY)
    if data is None:
        return None
    if not isinstance(data, list):
        raise PersistenceLoadError(CATALOG_KEY, "invalid catalog format")
    return [_catalog_item(raw, pos) for pos, raw in enumerate(data)]


def save_catalog(kv, items: List[CatalogItem]) -> None:
    _write(kv, CATALOG_KEY, [item.to_dict() for item in items])


# ---------------- billing state ----------------

def _cart_line(raw: Any, pos: int) -> CartLine:
    if not isinstance(raw, dict):
        raise PersistenceLoadError(BILLING_KEY, f"line #{pos} is not an object")
    pid = raw.get("id")
    name = raw.get("name")
    quantity = raw.get("quantity")
    price = raw.get("price")
    if pid is not None and not isinstance(pid, str):
        raise PersistenceLoadError(BILLING_KEY, f"line #{pos} has an invalid id")
    if not isinstance(name, str) or not name:
        raise PersistenceLoadError(BILLING_KEY, f"line #{pos} has no name")
    if not _is_whole(quantity) or quantity < 1:
        raise PersistenceLoadError(BILLING_KEY, f"line #{pos} has an invalid quantity")
    if not _is_number(price) or price < 0:
        raise PersistenceLoadError(BILLING_KEY, f"line #{pos} has an invalid price")
    return CartLine(id=pid or None, name=name, price=float(price), quantity=int(quantity))


def _rate(value: Any, default: float) -> float:
    rate = parse_number(value)
    return default if rate is None else clamp_rate(rate)


def load_billing_state(kv) -> Optional[BillingState]:
    """Stored bill, or None when nothing has been saved yet."""
    data = _read(kv, BILLING_KEY)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise PersistenceLoadError(BILLING_KEY, "invalid billing data structure")
    products = data.get("products", [])
    if not isinstance(products, list):
        raise PersistenceLoadError(BILLING_KEY, "products is not a list")
    return BillingState(
        lines=[_cart_line(raw, pos) for pos, raw in enumerate(products)],
        discount_rate=_rate(data.get("discountRate"), DEFAULT_DISCOUNT_RATE),
        tax_rate=_rate(data.get("taxRate"), DEFAULT_TAX_RATE),
    )


def save_billing_state(kv, state: BillingState) -> None:
    _write(kv, BILLING_KEY, state.to_dict())
