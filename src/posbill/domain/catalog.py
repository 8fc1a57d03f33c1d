from __future__ import annotations

from typing import Iterable, Optional

from posbill.domain.models import Product


def normalize_code(code: object) -> str:
    return str(code or "").strip().lower()


def match(code: object, catalog: Iterable[Product]) -> Optional[Product]:
    """Exact, case-insensitive item code lookup. First hit wins; no partial matches."""
    wanted = normalize_code(code)
    if not wanted:
        return None
    for product in catalog:
        if normalize_code(product.item_code) == wanted:
            return product
    return None
