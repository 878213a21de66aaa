from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from ..time_utils import to_utc_z, parse_iso_datetime
from ..validation import coerce_int, coerce_money, coerce_str, money_str


# Dashboard fallback when a product has no explicit threshold
DEFAULT_MIN_STOCK_ALERT = 5


@dataclass
class ProductUnit:
    """
    A sellable unit of a product ("Pcs", "Dus", "Karung").

    conversion is the number of base units one of these units holds.
    """
    name: str
    conversion: int = 1
    sell_price: Decimal = Decimal("0")
    buy_price: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "conversion": self.conversion,
            "sell_price": money_str(self.sell_price),
            "buy_price": money_str(self.buy_price),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProductUnit":
        return cls(
            name=coerce_str(data.get("name"), "unit.name", max_length=64),
            conversion=coerce_int(data.get("conversion", 1), "unit.conversion", minimum=1),
            sell_price=coerce_money(data.get("sell_price", 0), "unit.sell_price"),
            buy_price=coerce_money(data.get("buy_price") or 0, "unit.buy_price"),
        )


@dataclass
class Product:
    """
    Product master data and live stock.

    MUTABLE AGGREGATE: stock is written only by the catalog ledger (sales and
    procurements) and by owner corrections, which move opening_stock by the
    same delta so that

        stock == opening_stock - sum(sale base units) + sum(procurement quantities)

    always holds when replaying facts.
    """
    ENTITY_TYPE: ClassVar[str] = "products"

    id: str
    sku: str
    name: str
    base_unit: str
    category: str = "Umum"
    stock: int = 0
    min_stock_alert: int = 0
    units: list[ProductUnit] = field(default_factory=list)
    supplier_id: str | None = None
    opening_stock: int = 0
    applied_facts: list[str] = field(default_factory=list)
    updated_at: datetime | None = None
    version: int = 0

    @property
    def is_low_stock(self) -> bool:
        threshold = self.min_stock_alert or DEFAULT_MIN_STOCK_ALERT
        return self.stock <= threshold

    def get_unit(self, name: str) -> ProductUnit | None:
        for unit in self.units:
            if unit.name == name:
                return unit
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "base_unit": self.base_unit,
            "stock": self.stock,
            "min_stock_alert": self.min_stock_alert,
            "units": [u.to_dict() for u in self.units],
            "supplier_id": self.supplier_id,
            "opening_stock": self.opening_stock,
            "applied_facts": list(self.applied_facts),
            "updated_at": to_utc_z(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            id=data["id"],
            sku=data["sku"],
            name=data["name"],
            base_unit=data["base_unit"],
            category=data.get("category") or "Umum",
            stock=int(data.get("stock", 0)),
            min_stock_alert=int(data.get("min_stock_alert", 0)),
            units=[ProductUnit.from_dict(u) for u in data.get("units", [])],
            supplier_id=data.get("supplier_id"),
            opening_stock=int(data.get("opening_stock", 0)),
            applied_facts=list(data.get("applied_facts", [])),
            updated_at=parse_iso_datetime(data.get("updated_at")),
            version=int(data.get("version", 0)),
        )


@dataclass
class Supplier:
    """Reference data only; suppliers have no ledger role."""
    ENTITY_TYPE: ClassVar[str] = "suppliers"

    id: str
    name: str
    contact: str = ""
    address: str = ""
    description: str = ""
    version: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "address": self.address,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Supplier":
        return cls(
            id=data["id"],
            name=data["name"],
            contact=data.get("contact") or "",
            address=data.get("address") or "",
            description=data.get("description") or "",
            version=int(data.get("version", 0)),
        )
