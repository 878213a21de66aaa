# Overview: Catalog ledger; the sole writer of Product.stock for sales and procurements.

"""
Catalog Ledger Invariants (authoritative)

- stock is kept in base units. A sale line removes quantity x conversion;
  a procurement line adds its quantity as-is (already base units).
- Each product is saved individually with a fresh updated_at, through a
  compare-and-swap read-modify-write that is retried on conflict.
- Every product remembers the fact ids already applied to it
  (applied_facts), so re-applying the same sale/procurement is a no-op.
- Unknown product ids are skipped, never fatal: the rest of the sale is
  still applied and the skip is reported back as a StockWarning (and logged).
- Stock may go negative; low stock is flagged at stock <= min_stock_alert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from ..models import CartItem, Product, ProcurementItem
from ..storage import Store
from ..time_utils import utcnow
from .concurrency import read_modify_write

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockWarning:
    """A line the ledger could not apply (data drift, not a failure)."""
    product_id: str
    fact_id: str
    message: str

    def to_dict(self) -> dict:
        return {"product_id": self.product_id, "fact_id": self.fact_id, "message": self.message}


def _sum_by_product(pairs: Iterable[tuple[str, int]]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for product_id, delta in pairs:
        totals[product_id] = totals.get(product_id, 0) + delta
    return totals


def _apply_stock_deltas(store: Store, deltas: dict[str, int], fact_id: str) -> list[StockWarning]:
    warnings: list[StockWarning] = []

    for product_id, delta in deltas.items():
        def _mutate(product: Product, delta=delta) -> bool:
            if fact_id in product.applied_facts:
                return False
            product.stock += delta
            product.applied_facts.append(fact_id)
            product.updated_at = utcnow()
            return True

        product = read_modify_write(store, Product, product_id, _mutate, missing_ok=True)
        if product is None:
            logger.warning(
                "Skipping stock change for unknown product %s (fact %s, warung %s)",
                product_id, fact_id, store.warung_id,
            )
            warnings.append(StockWarning(product_id, fact_id, "product not found; stock not changed"))

    return warnings


def apply_sale_deduction(store: Store, items: Iterable[CartItem], fact_id: str) -> list[StockWarning]:
    """Remove sold quantities (converted to base units) from stock."""
    deltas = _sum_by_product((item.product_id, -item.base_quantity) for item in items)
    return _apply_stock_deltas(store, deltas, fact_id)


def apply_procurement_increase(store: Store, items: Iterable[ProcurementItem], fact_id: str) -> list[StockWarning]:
    """Add received quantities to stock. Quantities are already in base units."""
    deltas = _sum_by_product((item.product_id, item.quantity) for item in items)
    return _apply_stock_deltas(store, deltas, fact_id)
