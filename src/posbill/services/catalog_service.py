from __future__ import annotations

import logging
from typing import Optional

from posbill.domain.catalog import match
from posbill.domain.errors import NotFoundError
from posbill.domain.models import Product

log = logging.getLogger(__name__)


class CatalogService:
    """Read-only product snapshot, fetched once and shared by every billing session."""

    def __init__(self, repo):
        self.repo = repo
        self._snapshot: Optional[tuple[Product, ...]] = None

    def load(self, force: bool = False) -> tuple[Product, ...]:
        if self._snapshot is None or force:
            self._snapshot = tuple(self.repo.list_products())
            log.info("catalog_loaded products=%s", len(self._snapshot))
        return self._snapshot

    @property
    def products(self) -> tuple[Product, ...]:
        return self.load()

    def match(self, code: str) -> Optional[Product]:
        return match(code, self.products)

    def get_by_code(self, code: str) -> Product:
        p = self.match(code)
        if not p:
            raise NotFoundError(f"Product not found: {code}")
        return p

    def search(self, term: str, limit: int = 50) -> list[Product]:
        typed = (term or "").strip().lower()
        if not typed:
            return list(self.products[:limit])
        hits = [p for p in self.products if typed in p.item_code.lower() or typed in p.name.lower()]
        return hits[:limit]
