from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from smartbill.constants import CATALOG_DISPLAY_LIMIT
from smartbill.models import CartLine
from smartbill.services.cart import CartLedger
from smartbill.services.catalog import CatalogStore
from smartbill.services.totals import Totals
from smartbill.utils.formatters import discount_money, invoice_date, money, tax_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceSnapshot:
    """Frozen copy of the bill handed to print/export."""

    issued_on: date
    lines: Tuple[CartLine, ...]
    discount_rate: float
    tax_rate: float
    totals: Totals


def format_totals(t: Totals) -> Dict[str, str]:
    return {
        "subtotal": money(t.subtotal),
        "discount_amount": discount_money(t.discount_amount),
        "discounted_total": money(t.discounted_total),
        "tax_amount": tax_money(t.tax_amount),
        "final_total": money(t.final_total),
    }


class BillingSession:
    """Catalog + cart over one key-value store, as opened at startup."""

    def __init__(self, catalog: CatalogStore, cart: CartLedger, warnings: Optional[List[str]] = None):
        self.catalog = catalog
        self.cart = cart
        self.startup_warnings: List[str] = list(warnings or [])
        # web routes run in a threadpool; one operation (with its save) at a time
        self.lock = threading.RLock()

    @classmethod
    def open(cls, kv, **catalog_kwargs: Any) -> "BillingSession":
        # catalog first: cart lines point at its items
        catalog, warnings = CatalogStore.load(kv, **catalog_kwargs)
        cart, cart_warnings = CartLedger.load(catalog, kv)
        warnings.extend(cart_warnings)
        logger.info("Billing session opened: %d catalog items, %d cart lines", len(catalog.items), len(cart.lines))
        return cls(catalog, cart, warnings)

    def view(self, catalog_query: str = "", cart_query: str = "") -> Dict[str, Any]:
        """Everything the billing screen renders after a mutation."""
        totals = self.cart.totals()
        return {
            "catalog_items": self.catalog.filter(catalog_query, limit=CATALOG_DISPLAY_LIMIT),
            "cart_rows": [
                {
                    "index": i,
                    "line": line,
                    "price": money(line.price),
                    "line_total": money(line.line_total),
                }
                for i, line in self.cart.filter_indexed(cart_query)
            ],
            "discount_rate": self.cart.discount_rate,
            "tax_rate": self.cart.tax_rate,
            "totals": totals,
            "formatted_totals": format_totals(totals),
            "invoice_date": invoice_date(date.today()),
        }

    def invoice_snapshot(self, issued_on: Optional[date] = None) -> InvoiceSnapshot:
        return InvoiceSnapshot(
            issued_on=issued_on or date.today(),
            lines=tuple(CartLine(l.id, l.name, l.price, l.quantity) for l in self.cart.lines),
            discount_rate=self.cart.discount_rate,
            tax_rate=self.cart.tax_rate,
            totals=self.cart.totals(),
        )
