from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    """
    Result of a mutating operation.

    - value: the result (cart line, catalog item, ...)
    - warnings: non-fatal problems (failed save, clamped quantity)
    - confirmation_required: nothing was done, call again with confirmed=True
    - clamped_to: quantity an edit was clamped to
    """

    value: Optional[T] = None
    warnings: List[str] = field(default_factory=list)
    confirmation_required: bool = False
    clamped_to: Optional[int] = None

    @classmethod
    def needs_confirmation(cls) -> "Outcome[T]":
        return cls(confirmation_required=True)

    @property
    def ok(self) -> bool:
        return not self.confirmation_required
