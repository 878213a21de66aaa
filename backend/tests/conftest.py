"""
Pytest fixtures for warung ledger tests.

Provides the Flask app (in-memory SQLite), a test client with tenant
headers, and stores of both backends seeded with a small shop.
"""

import pytest

from warung import create_app
from warung.config import TestingConfig
from warung.extensions import db
from warung.services import concurrency
from warung.services.customers_service import create_customer
from warung.services.products_service import create_product
from warung.services.rewards_service import create_reward
from warung.services.supplier_service import create_supplier
from warung.storage import MemoryStore, SqlStore


WARUNG_A = "W-A"
WARUNG_B = "W-B"


@pytest.fixture(autouse=True)
def fast_retries():
    """No sleeping between CAS retries in tests run outside an app context."""
    old = (concurrency.retry_policy.attempts, concurrency.retry_policy.backoff_base)
    concurrency.retry_policy.attempts = 3
    concurrency.retry_policy.backoff_base = 0.0
    yield
    concurrency.retry_policy.attempts, concurrency.retry_policy.backoff_base = old


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def memory_store():
    return MemoryStore(WARUNG_A)


@pytest.fixture(scope='function')
def sql_store(app):
    return SqlStore(WARUNG_A)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """The same ledger tests run against both Store backends."""
    if request.param == "memory":
        return request.getfixturevalue("memory_store")
    return request.getfixturevalue("sql_store")


@pytest.fixture(scope='function')
def shop(store):
    """
    A small warung:
    - P-MIE  Indomie, base Pcs, units Pcs 3000 / Dus (x40) 110000, stock 200
    - P-BERAS Beras 5kg, base Karung 85000, stock 20
    - C-GOLD  Gold member, no debt, no points
    - C-SILVER Silver member, debt 50000, 450 points
    - C-BRONZE Bronze non-member
    - R-MUG   mug reward, 100 points, stock 1
    - R-BAG   bag reward, 500 points, stock 5
    - S-1     supplier
    """
    create_supplier(store, {"id": "S-1", "name": "Toko Grosir Jaya"})
    create_product(store, {
        "id": "P-MIE", "sku": "899123456783", "name": "Indomie Goreng", "base_unit": "Pcs",
        "stock": 200, "min_stock_alert": 40, "supplier_id": "S-1",
        "units": [
            {"name": "Pcs", "conversion": 1, "sell_price": 3000, "buy_price": 2700},
            {"name": "Dus", "conversion": 40, "sell_price": 110000, "buy_price": 102000},
        ],
    })
    create_product(store, {
        "id": "P-BERAS", "sku": "899123456781", "name": "Beras Pandan Wangi 5kg", "base_unit": "Karung",
        "stock": 20, "min_stock_alert": 5,
        "units": [{"name": "Karung", "conversion": 1, "sell_price": 85000, "buy_price": 78000}],
    })
    create_customer(store, {"id": "C-GOLD", "name": "Budi", "tier": "Gold", "is_member": True})
    create_customer(store, {
        "id": "C-SILVER", "name": "Siti", "tier": "Silver", "is_member": True,
        "debt_balance": 50000, "points_balance": 450,
    })
    create_customer(store, {"id": "C-BRONZE", "name": "Andi"})
    create_reward(store, {"id": "R-MUG", "name": "Mug", "points_needed": 100, "stock": 1})
    create_reward(store, {"id": "R-BAG", "name": "Tas Belanja", "points_needed": 500, "stock": 5})
    return store


@pytest.fixture
def tenant_headers():
    """Builds the headers the upstream auth layer would attach."""
    def _headers(warung_id: str = WARUNG_A, role: str = "owner") -> dict:
        return {"X-Warung-Id": warung_id, "X-Warung-Role": role}
    return _headers
