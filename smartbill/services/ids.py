from __future__ import annotations

import random
import re
from typing import Container, Optional

_PRODUCT_ID = re.compile(r"\d{10}")


def generate_product_id(
    taken: Container[str] = (),
    rng: Optional[random.Random] = None,
) -> str:
    """Random 10-digit id whose first digit is 1-9, not present in ``taken``."""
    rng = rng or random.SystemRandom()
    while True:
        pid = str(rng.randint(1, 9)) + f"{rng.randrange(10**9):09d}"
        if pid not in taken:
            return pid


def is_valid_product_id(pid: object) -> bool:
    return isinstance(pid, str) and _PRODUCT_ID.fullmatch(pid) is not None
