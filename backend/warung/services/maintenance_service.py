# Overview: Service-layer operations for tenant maintenance; full wipe and demo data seeding.

from __future__ import annotations

import logging

from ..storage import ENTITY_TYPES, Store
from .customers_service import create_customer
from .products_service import create_product

logger = logging.getLogger(__name__)


DEMO_PRODUCTS = [
    {
        "id": "DEMO-P1",
        "name": "Beras Pandan Wangi 5kg",
        "sku": "899123456781",
        "category": "Sembako",
        "base_unit": "Karung",
        "stock": 20,
        "min_stock_alert": 5,
        "units": [{"name": "Karung", "conversion": 1, "sell_price": 85000, "buy_price": 78000}],
    },
    {
        "id": "DEMO-P2",
        "name": "Minyak Goreng 1L",
        "sku": "899123456782",
        "category": "Sembako",
        "base_unit": "Pouch",
        "stock": 50,
        "min_stock_alert": 10,
        "units": [{"name": "Pouch", "conversion": 1, "sell_price": 18000, "buy_price": 16500}],
    },
    {
        "id": "DEMO-P3",
        "name": "Indomie Goreng",
        "sku": "899123456783",
        "category": "Makanan",
        "base_unit": "Pcs",
        "stock": 200,
        "min_stock_alert": 40,
        "units": [
            {"name": "Pcs", "conversion": 1, "sell_price": 3000, "buy_price": 2700},
            {"name": "Dus", "conversion": 40, "sell_price": 110000, "buy_price": 102000},
        ],
    },
]

DEMO_CUSTOMERS = [
    {
        "id": "DEMO-C1",
        "name": "Budi Santoso",
        "phone": "08123456789",
        "tier": "Gold",
        "total_spent": 1200000,
        "debt_balance": 0,
        "is_member": True,
        "points_balance": 1200,
    },
    {
        "id": "DEMO-C2",
        "name": "Siti Aminah",
        "phone": "08556677889",
        "tier": "Silver",
        "total_spent": 450000,
        "debt_balance": 50000,
        "is_member": True,
        "points_balance": 450,
    },
]


def wipe_all_data(store: Store) -> int:
    """
    Delete every record of the store's tenant, settings included.

    Returns the number of records deleted. Other tenants are untouched
    (the store is bound to one warung).
    """
    deleted = 0
    with store.feed.batch():
        for entity_type in ENTITY_TYPES:
            for record in store.get_all(entity_type):
                store.delete(entity_type, record["id"])
                deleted += 1
    logger.info("Wiped %d records for warung %s", deleted, store.warung_id)
    return deleted


def inject_demo_data(store: Store) -> dict:
    """Replace the tenant's data with the demo catalog and customers."""
    wipe_all_data(store)
    with store.feed.batch():
        products = [create_product(store, dict(p)) for p in DEMO_PRODUCTS]
        customers = [create_customer(store, dict(c)) for c in DEMO_CUSTOMERS]
    logger.info("Injected demo data for warung %s", store.warung_id)
    return {"products": len(products), "customers": len(customers)}
