# backend/warung/services/products_service.py
"""
Products Service

TENANT-SCOPED: every function takes the tenant's Store, so a product of
another warung can never be read or written.

- SKU is unique per tenant (ConflictError on duplicates).
- stock given at creation becomes opening_stock; afterwards stock only moves
  through the catalog ledger or set_stock(), which shifts opening_stock by
  the same delta so fact replay keeps matching.
- Deleting a product does not touch recorded facts; later re-drives of
  those facts report it as a StockWarning.
"""
from __future__ import annotations

import logging

from ..errors import ConflictError, ValidationError
from ..models import Product, ProductUnit, Supplier
from ..storage import Store, fetch, fetch_all, fetch_required, persist
from ..time_utils import utcnow
from ..validation import coerce_int, coerce_str
from .concurrency import read_modify_write
from .identifier_service import PREFIX_PRODUCT, new_id

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "category", "base_unit", "min_stock_alert", "units", "supplier_id"}


def _parse_units(raw, base_unit: str) -> list[ProductUnit]:
    if raw is None:
        return [ProductUnit(name=base_unit)]
    if not isinstance(raw, list) or not raw:
        raise ValidationError("units must be a non-empty list")
    units = [ProductUnit.from_dict(u) for u in raw]
    names = [u.name for u in units]
    if len(set(names)) != len(names):
        raise ValidationError("unit names must be unique", details={"units": names})
    return units


def _check_sku_free(store: Store, sku: str, product_id: str | None = None) -> None:
    for product in fetch_all(store, Product):
        if product.sku == sku and product.id != product_id:
            raise ConflictError("SKU already exists for this warung.", details={"sku": sku, "id": product.id})


def _check_supplier(store: Store, supplier_id: str | None) -> None:
    if supplier_id:
        fetch_required(store, Supplier, supplier_id)


def apply_product_patch(store: Store, product: Product, patch: dict) -> None:
    for key, value in patch.items():
        if key not in PRODUCT_MUTABLE_FIELDS:
            continue
        if key == "sku":
            value = coerce_str(value, "sku", max_length=64)
            _check_sku_free(store, value, product.id)
        elif key in ("name", "base_unit"):
            value = coerce_str(value, key)
        elif key == "category":
            value = coerce_str(value, "category", required=False) or "Umum"
        elif key == "min_stock_alert":
            value = coerce_int(value, "min_stock_alert", minimum=0)
        elif key == "units":
            value = _parse_units(value, product.base_unit)
        elif key == "supplier_id":
            value = value or None
            _check_supplier(store, value)
        setattr(product, key, value)


def list_products(store: Store, *, category: str | None = None) -> list[Product]:
    products = fetch_all(store, Product)
    if category:
        products = [p for p in products if p.category == category]
    return sorted(products, key=lambda p: (p.name.lower(), p.id))


def get_product(store: Store, product_id: str) -> Product:
    return fetch_required(store, Product, product_id)


def find_by_sku(store: Store, sku: str) -> Product | None:
    """Barcode lookup. Returns None when nothing matches."""
    for product in fetch_all(store, Product):
        if product.sku == sku:
            return product
    return None


def low_stock_products(store: Store) -> list[Product]:
    """Products at or below their alert threshold, lowest stock first."""
    return sorted((p for p in fetch_all(store, Product) if p.is_low_stock), key=lambda p: (p.stock, p.name))


def create_product(store: Store, patch: dict) -> Product:
    """
    Create a product from a validated patch dict.

    Raises:
        ValidationError: missing/invalid fields
        ConflictError: SKU already used in this warung
        NotFoundError: supplier_id given but unknown
    """
    sku = coerce_str(patch.get("sku"), "sku", max_length=64)
    name = coerce_str(patch.get("name"), "name")
    base_unit = coerce_str(patch.get("base_unit"), "base_unit", max_length=64)
    stock = coerce_int(patch.get("stock", 0), "stock")
    _check_sku_free(store, sku)
    _check_supplier(store, patch.get("supplier_id"))

    product = Product(
        id=patch.get("id") or new_id(PREFIX_PRODUCT),
        sku=sku,
        name=name,
        base_unit=base_unit,
        category=coerce_str(patch.get("category"), "category", required=False) or "Umum",
        stock=stock,
        min_stock_alert=coerce_int(patch.get("min_stock_alert", 0), "min_stock_alert", minimum=0),
        units=_parse_units(patch.get("units"), base_unit),
        supplier_id=patch.get("supplier_id") or None,
        opening_stock=stock,
        updated_at=utcnow(),
    )
    persist(store, product)
    logger.info("Created product %s sku=%s warung=%s", product.id, product.sku, store.warung_id)
    return product


def update_product(store: Store, product_id: str, patch: dict) -> Product:
    """
    Update master data. stock is not patchable here (see set_stock).

    The write is compare-and-swap against the version the product was read
    at, so a sale landing in between is retried rather than overwritten.
    """
    if "stock" in patch:
        raise ValidationError("stock cannot be edited directly; use a stock correction")

    def _mutate(product: Product) -> None:
        apply_product_patch(store, product, patch)
        product.updated_at = utcnow()

    return read_modify_write(store, Product, product_id, _mutate)


def set_stock(store: Store, product_id: str, stock, *, reason: str | None = None) -> Product:
    """Owner stock correction (stock take). opening_stock absorbs the difference."""
    new_stock = coerce_int(stock, "stock")

    def _mutate(product: Product) -> bool:
        delta = new_stock - product.stock
        if delta == 0:
            return False
        product.stock = new_stock
        product.opening_stock += delta
        product.updated_at = utcnow()
        return True

    product = read_modify_write(store, Product, product_id, _mutate)
    logger.info("Stock correction on %s to %s (%s) warung=%s", product_id, new_stock, reason or "no reason", store.warung_id)
    return product


def delete_product(store: Store, product_id: str) -> bool:
    """Returns False if the product did not exist."""
    if fetch(store, Product, product_id) is None:
        return False
    store.delete(Product.ENTITY_TYPE, product_id)
    logger.info("Deleted product %s warung=%s", product_id, store.warung_id)
    return True
