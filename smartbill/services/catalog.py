from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from smartbill.constants import SEED_CATALOG
from smartbill.errors import (
    DuplicateIdentifier,
    InvalidProduct,
    NotFound,
    OutOfRange,
    PersistenceLoadError,
    PersistenceWriteError,
)
from smartbill.models import CatalogItem
from smartbill.services.ids import generate_product_id, is_valid_product_id
from smartbill.services.outcome import Outcome
from smartbill.services.persistence import load_catalog, save_catalog
from smartbill.utils.validators import looks_numeric, normalize_stock, parse_number

logger = logging.getLogger(__name__)

IdFactory = Callable[..., str]


def seed_items(id_factory: IdFactory = generate_product_id) -> List[CatalogItem]:
    items: List[CatalogItem] = []
    for name, price, stock in SEED_CATALOG:
        taken = {i.id for i in items}
        items.append(CatalogItem(id=id_factory(taken), name=name, price=price, stock=stock))
    return items


def _clean_fields(pid: Any, name: Any, price: Any, stock: Any) -> Tuple[str, str, float, int]:
    pid = str(pid or "").strip()
    name = str(name or "").strip()
    if not pid or not name:
        raise InvalidProduct("Product ID and name are required.")
    value = parse_number(price)
    if value is None or value < 0:
        raise InvalidProduct("Price must be a number >= 0.")
    return pid, name, value, normalize_stock(stock)


class CatalogStore:
    """
    Product catalog with stock counts.

    Owns the list of CatalogItem and writes it to storage as a whole
    after every change. Item order is preserved.
    """

    def __init__(self, kv, items: Optional[List[CatalogItem]] = None, id_factory: IdFactory = generate_product_id):
        self.kv = kv
        self.items: List[CatalogItem] = list(items or [])
        self.id_factory = id_factory

    # ---------------- load / save ----------------

    @classmethod
    def load(cls, kv, id_factory: IdFactory = generate_product_id) -> Tuple["CatalogStore", List[str]]:
        """
        Reads the stored catalog.

        - nothing stored: seed catalog, saved immediately
        - malformed record: seed catalog written over it, warning returned
        - ids not shaped as 10 digits (or repeated): regenerated in place and saved back
        """
        warnings: List[str] = []
        try:
            items = load_catalog(kv)
        except PersistenceLoadError as e:
            logger.warning("Error loading catalog, using default products: %s", e)
            warnings.append(f"Error loading catalog. Using default products. ({e.reason})")
            items = None

        if items is None:
            store = cls(kv, seed_items(id_factory), id_factory)
            warnings.extend(store.save())
            return store, warnings

        store = cls(kv, items, id_factory)
        if store._migrate_ids():
            logger.info("Catalog IDs updated to random 10-digit format")
            warnings.extend(store.save())
        return store, warnings

    def _migrate_ids(self) -> bool:
        changed = False
        seen = set()
        for item in self.items:
            if not is_valid_product_id(item.id) or item.id in seen:
                taken = seen | {i.id for i in self.items}
                item.id = self.id_factory(taken)
                changed = True
            seen.add(item.id)
        return changed

    def save(self) -> List[str]:
        try:
            save_catalog(self.kv, self.items)
        except PersistenceWriteError as e:
            logger.warning("Error saving catalog: %s", e)
            return ["Unable to save catalog. Changes are kept for this session only."]
        logger.debug("Catalog saved (%d items)", len(self.items))
        return []

    # ---------------- lookup ----------------

    def find_by_id(self, pid: Optional[str]) -> Optional[CatalogItem]:
        if pid is None:
            return None
        return next((item for item in self.items if item.id == pid), None)

    def get(self, pid: str) -> CatalogItem:
        item = self.find_by_id(pid)
        if item is None:
            raise NotFound(pid)
        return item

    def filter(self, query: str = "", limit: Optional[int] = None) -> List[CatalogItem]:
        """Name or id contains ``query`` (case-insensitive); out-of-stock items included."""
        q = (query or "").strip().lower()
        found = [i for i in self.items if not q or q in i.name.lower() or q in i.id.lower()]
        return found if limit is None else found[:limit]

    # ---------------- stock ----------------

    def adjust_stock(self, pid: str, delta: int) -> CatalogItem:
        """stock += delta with a floor of 0. In-memory only; the caller saves."""
        item = self.get(pid)
        item.stock = max(0, item.stock + int(delta))
        return item

    # ---------------- catalog editing ----------------

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.items):
            raise OutOfRange(index, len(self.items))

    def add(self, pid: Any, name: Any, price: Any, stock: Any = 0) -> Outcome[CatalogItem]:
        pid, name, price, stock = _clean_fields(pid, name, price, stock)
        if self.find_by_id(pid) is not None:
            raise DuplicateIdentifier(pid)
        item = CatalogItem(id=pid, name=name, price=price, stock=stock)
        self.items.append(item)
        logger.info("Catalog item %s (%s) added", pid, name)
        return Outcome(item, self.save())

    def upsert(self, pid: Any, name: Any, price: Any, stock: Any = 0) -> Outcome[CatalogItem]:
        pid, name, price, stock = _clean_fields(pid, name, price, stock)
        item = self.find_by_id(pid)
        if item is None:
            return self.add(pid, name, price, stock)
        item.name, item.price, item.stock = name, price, stock
        logger.info("Catalog item %s (%s) updated", pid, name)
        return Outcome(item, self.save())

    def remove(self, index: int, confirmed: bool = False) -> Outcome[CatalogItem]:
        """Lines already in the cart keep their snapshot and become orphaned."""
        self._check_index(index)
        if not confirmed:
            return Outcome.needs_confirmation()
        item = self.items.pop(index)
        logger.info("Catalog item %s (%s) removed", item.id, item.name)
        return Outcome(item, self.save())

    def replace_all(self, rows: Iterable[Mapping[str, Any]]) -> Outcome[List[CatalogItem]]:
        """
        Bulk save from the edit screen: every row becomes an item, in order.
        Rows without id/name or with a negative or non-finite price are dropped with a warning.
        """
        new_items: List[CatalogItem] = []
        warnings: List[str] = []
        for pos, row in enumerate(rows, start=1):
            price = row.get("price")
            # blank or non-numeric price means 0, an overflowing one is rejected
            if not looks_numeric(price):
                price = 0.0
            try:
                pid, name, price, stock = _clean_fields(row.get("id"), row.get("name"), price, row.get("stock"))
            except InvalidProduct as e:
                warnings.append(f"Row {pos} skipped: {e}")
                continue
            if any(i.id == pid for i in new_items):
                warnings.append(f"Row {pos} skipped: duplicate product ID {pid}.")
                continue
            new_items.append(CatalogItem(id=pid, name=name, price=price, stock=stock))

        self.items = new_items
        for w in warnings:
            logger.warning("Catalog edit: %s", w)
        warnings.extend(self.save())
        return Outcome(list(self.items), warnings)
