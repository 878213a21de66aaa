# Overview: Supplier reference data and per-supplier procurement stats.

"""
Supplier Service

Suppliers are reference data: procurements copy the supplier name at the
time of the restock, so renaming a supplier never rewrites history.
A supplier still linked to products cannot be deleted.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..errors import ConflictError
from ..models import Procurement, Product, Supplier
from ..storage import Store, fetch, fetch_all, fetch_required, persist
from ..validation import coerce_str, money_str
from .identifier_service import PREFIX_SUPPLIER, new_id

logger = logging.getLogger(__name__)

SUPPLIER_MUTABLE_FIELDS = {"name", "contact", "address", "description"}


def list_suppliers(store: Store) -> list[Supplier]:
    return sorted(fetch_all(store, Supplier), key=lambda s: (s.name.lower(), s.id))


def get_supplier(store: Store, supplier_id: str) -> Supplier:
    return fetch_required(store, Supplier, supplier_id)


def create_supplier(store: Store, data: dict) -> Supplier:
    supplier = Supplier(
        id=data.get("id") or new_id(PREFIX_SUPPLIER),
        name=coerce_str(data.get("name"), "name"),
        contact=coerce_str(data.get("contact"), "contact", required=False) or "",
        address=coerce_str(data.get("address"), "address", required=False, max_length=500) or "",
        description=coerce_str(data.get("description"), "description", required=False, max_length=1000) or "",
    )
    persist(store, supplier)
    logger.info("Created supplier %s warung=%s", supplier.id, store.warung_id)
    return supplier


def update_supplier(store: Store, supplier_id: str, patch: dict) -> Supplier:
    supplier = fetch_required(store, Supplier, supplier_id)
    for key, value in patch.items():
        if key not in SUPPLIER_MUTABLE_FIELDS:
            continue
        if key == "name":
            value = coerce_str(value, "name")
        else:
            value = coerce_str(value, key, required=False, max_length=1000) or ""
        setattr(supplier, key, value)
    # Reference data: last writer wins
    persist(store, supplier, cas=False)
    return supplier


def delete_supplier(store: Store, supplier_id: str) -> bool:
    if fetch(store, Supplier, supplier_id) is None:
        return False
    linked = [p.id for p in fetch_all(store, Product) if p.supplier_id == supplier_id]
    if linked:
        raise ConflictError(
            "Supplier is still linked to products",
            details={"supplier_id": supplier_id, "product_ids": linked},
        )
    store.delete(Supplier.ENTITY_TYPE, supplier_id)
    return True


def supplier_stats(store: Store, supplier_id: str) -> dict:
    """Product count and lifetime procurement spend for one supplier."""
    supplier = fetch_required(store, Supplier, supplier_id)
    product_count = sum(1 for p in fetch_all(store, Product) if p.supplier_id == supplier.id)
    procurements = [po for po in fetch_all(store, Procurement) if po.supplier_id == supplier.id]
    total_spend = sum((po.total_amount for po in procurements), Decimal("0"))
    return {
        "supplier": supplier.to_dict(),
        "product_count": product_count,
        "procurement_count": len(procurements),
        "total_spend": money_str(total_spend),
    }
