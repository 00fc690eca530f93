from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from smartbill.constants import DEFAULT_DISCOUNT_RATE, DEFAULT_TAX_RATE


@dataclass
class CatalogItem:
    id: str
    name: str
    price: float
    stock: int

    @property
    def in_stock(self) -> bool:
        # derived, never stored on its own
        return self.stock > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "stock": self.stock,
            "inStock": self.in_stock,
        }


@dataclass
class CartLine:
    id: Optional[str]  # None for legacy lines saved without a catalog reference
    name: str
    price: float
    quantity: int

    @property
    def line_total(self) -> float:
        return self.quantity * self.price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "price": self.price,
        }


@dataclass
class BillingState:
    lines: List[CartLine] = field(default_factory=list)
    discount_rate: float = DEFAULT_DISCOUNT_RATE
    tax_rate: float = DEFAULT_TAX_RATE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products": [line.to_dict() for line in self.lines],
            "discountRate": self.discount_rate,
            "taxRate": self.tax_rate,
        }
