"""
Cart ledger: the invoice lines and their stock allocation.

Every line referencing catalog item X holds ``quantity`` units taken out
of X.stock, so X.stock + (quantity in cart) stays constant across
add / edit / remove / clear. Validation happens before any mutation;
a failed operation leaves both the cart and the catalog untouched.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from smartbill.constants import DEFAULT_DISCOUNT_RATE, DEFAULT_TAX_RATE
from smartbill.errors import (
    InsufficientStock,
    NotFound,
    OutOfRange,
    OutOfStock,
    PersistenceLoadError,
    PersistenceWriteError,
)
from smartbill.models import BillingState, CartLine
from smartbill.services.catalog import CatalogStore
from smartbill.services.outcome import Outcome
from smartbill.services.persistence import load_billing_state, save_billing_state
from smartbill.services.totals import Totals, compute_totals
from smartbill.utils.validators import normalize_quantity, normalize_rate

logger = logging.getLogger(__name__)


def _matches(line: CartLine, query: str) -> bool:
    q = (query or "").strip().lower()
    return q in line.name.lower()


class CartLedger:
    def __init__(self, catalog: CatalogStore, kv, state: Optional[BillingState] = None):
        self.catalog = catalog
        self.kv = kv
        self.state = state or BillingState()

    @property
    def lines(self) -> List[CartLine]:
        return self.state.lines

    @property
    def discount_rate(self) -> float:
        return self.state.discount_rate

    @property
    def tax_rate(self) -> float:
        return self.state.tax_rate

    # ---------------- load / save ----------------

    @classmethod
    def load(cls, catalog: CatalogStore, kv) -> Tuple["CartLedger", List[str]]:
        """Restores the saved bill; a malformed record is replaced by an empty bill."""
        try:
            state = load_billing_state(kv)
        except PersistenceLoadError as e:
            logger.warning("Error loading billing data, starting with a fresh bill: %s", e)
            ledger = cls(catalog, kv)
            warnings = [f"Unable to load saved billing data. Starting with a fresh bill. ({e.reason})"]
            warnings.extend(ledger.save())
            return ledger, warnings
        if state is None:
            logger.info("No saved billing data found")
        return cls(catalog, kv, state), []

    def save(self) -> List[str]:
        try:
            save_billing_state(self.kv, self.state)
        except PersistenceWriteError as e:
            logger.warning("Error saving billing data: %s", e)
            return ["Unable to save billing data. Changes are kept for this session only."]
        return []

    def _save_all(self) -> List[str]:
        return self.catalog.save() + self.save()

    # ---------------- helpers ----------------

    def _check_index(self, index: int) -> CartLine:
        if not 0 <= index < len(self.lines):
            raise OutOfRange(index, len(self.lines))
        return self.lines[index]

    def _line_for(self, pid: str) -> Optional[CartLine]:
        return next((line for line in self.lines if line.id == pid), None)

    def allocated(self, pid: str) -> int:
        return sum(line.quantity for line in self.lines if line.id == pid)

    # ---------------- operations ----------------

    def add_item(self, catalog_id: str, requested_qty: Any = 1) -> Outcome[CartLine]:
        item = self.catalog.find_by_id(catalog_id)
        if item is None:
            raise NotFound(catalog_id)
        if item.stock == 0:
            raise OutOfStock(item.name)
        qty = normalize_quantity(requested_qty)

        line = self._line_for(item.id)
        current_qty = line.quantity if line else 0
        # growing an existing line reuses what it already holds
        available = item.stock + current_qty
        if current_qty + qty > available:
            raise InsufficientStock(available=available, remaining=item.stock, in_cart=current_qty)

        if line is None:
            line = CartLine(id=item.id, name=item.name, price=item.price, quantity=qty)
            self.lines.append(line)
        else:
            line.quantity = current_qty + qty
        self.catalog.adjust_stock(item.id, -qty)

        logger.info("Added %d x %s to cart. Remaining stock: %d", qty, item.name, item.stock)
        return Outcome(line, self._save_all())

    def edit_quantity(self, index: int, new_qty: Any) -> Outcome[CartLine]:
        """
        Sets a line's quantity. Unlike add_item, asking for more than the
        available pool clamps to the pool and reports it instead of failing.
        """
        line = self._check_index(index)
        qty = normalize_quantity(new_qty)
        old_qty = line.quantity

        item = self.catalog.find_by_id(line.id)
        if item is None:
            # orphaned line: nothing to reconcile against
            line.quantity = qty
            return Outcome(line, self.save())

        warnings: List[str] = []
        clamped_to = None
        available = item.stock + old_qty
        if qty > available:
            warnings.append(
                f"Only {available} items available in stock (including {old_qty} already in cart)."
            )
            qty = clamped_to = available

        self.catalog.adjust_stock(item.id, -(qty - old_qty))
        line.quantity = qty

        logger.info("Cart line %s quantity %d -> %d. Remaining stock: %d", item.name, old_qty, qty, item.stock)
        warnings.extend(self._save_all())
        return Outcome(line, warnings, clamped_to=clamped_to)

    def remove_line(self, index: int, confirmed: bool = False) -> Outcome[CartLine]:
        line = self._check_index(index)
        if not confirmed:
            return Outcome.needs_confirmation()

        item = self.catalog.find_by_id(line.id)
        if item is not None:
            self.catalog.adjust_stock(item.id, line.quantity)
        del self.lines[index]

        logger.info("Removed %s from cart", line.name)
        warnings = self._save_all() if item is not None else self.save()
        return Outcome(line, warnings)

    def clear_all(self, confirmed: bool = False) -> Outcome[List[CartLine]]:
        """
        Returns every line's quantity to catalog stock and resets the rates.
        Quantity of lines whose catalog item no longer exists is dropped.
        """
        if not confirmed:
            return Outcome.needs_confirmation()

        removed = list(self.lines)
        for line in removed:
            item = self.catalog.find_by_id(line.id)
            if item is None:
                logger.warning("Clear: %s is no longer in catalog, %d units dropped", line.name, line.quantity)
                continue
            self.catalog.adjust_stock(item.id, line.quantity)

        self.state = BillingState(discount_rate=DEFAULT_DISCOUNT_RATE, tax_rate=DEFAULT_TAX_RATE)
        logger.info("Bill cleared, stock restored to catalog")
        return Outcome(removed, self._save_all())

    def set_rates(self, discount_rate: Any = None, tax_rate: Any = None) -> Outcome[Totals]:
        discount = self.discount_rate if discount_rate is None else normalize_rate(discount_rate, "Discount")
        tax = self.tax_rate if tax_rate is None else normalize_rate(tax_rate, "Tax rate")
        self.state.discount_rate = discount
        self.state.tax_rate = tax
        return Outcome(self.totals(), self.save())

    # ---------------- views ----------------

    def filter(self, query: str = "") -> List[CartLine]:
        """Lines whose name contains ``query`` (case-insensitive), in insertion order."""
        return [line for line in self.lines if _matches(line, query)]

    def filter_indexed(self, query: str = "") -> List[Tuple[int, CartLine]]:
        return [(i, line) for i, line in enumerate(self.lines) if _matches(line, query)]

    def totals(self) -> Totals:
        return compute_totals(self.lines, self.discount_rate, self.tax_rate)
