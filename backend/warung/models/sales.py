from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import ClassVar, Union

from ..errors import ValidationError
from ..time_utils import to_utc_z, parse_iso_datetime
from ..validation import coerce_int, coerce_money, coerce_str, money_str


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

PAYMENT_CASH = "cash"
PAYMENT_QRIS = "qris"
PAYMENT_DEBT = "debt"
PAYMENT_SPLIT = "split"

VALID_PAYMENT_METHODS = [PAYMENT_CASH, PAYMENT_QRIS, PAYMENT_DEBT, PAYMENT_SPLIT]

ZERO = Decimal("0")


# =============================================================================
# PAYMENT OUTCOMES
# =============================================================================
# One variant per method so that e.g. a cash sale cannot carry a debt amount.

@dataclass(frozen=True)
class CashPayment:
    METHOD: ClassVar[str] = PAYMENT_CASH

    cash_paid: Decimal
    change: Decimal

    @property
    def debt_amount(self) -> Decimal:
        return ZERO


@dataclass(frozen=True)
class QrisPayment:
    METHOD: ClassVar[str] = PAYMENT_QRIS

    amount: Decimal

    @property
    def cash_paid(self) -> Decimal:
        return self.amount

    @property
    def change(self) -> Decimal:
        return ZERO

    @property
    def debt_amount(self) -> Decimal:
        return ZERO


@dataclass(frozen=True)
class DebtCredit:
    METHOD: ClassVar[str] = PAYMENT_DEBT

    amount: Decimal

    @property
    def cash_paid(self) -> Decimal:
        return ZERO

    @property
    def change(self) -> Decimal:
        return ZERO

    @property
    def debt_amount(self) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class SplitPayment:
    METHOD: ClassVar[str] = PAYMENT_SPLIT

    cash_paid: Decimal
    debt_amount: Decimal

    @property
    def change(self) -> Decimal:
        return ZERO


PaymentOutcome = Union[CashPayment, QrisPayment, DebtCredit, SplitPayment]


def payment_from_dict(data: dict) -> PaymentOutcome:
    method = data.get("payment_method")
    if method == PAYMENT_CASH:
        return CashPayment(
            cash_paid=coerce_money(data["cash_paid"], "cash_paid"),
            change=coerce_money(data.get("change") or 0, "change"),
        )
    if method == PAYMENT_QRIS:
        return QrisPayment(amount=coerce_money(data["cash_paid"], "cash_paid"))
    if method == PAYMENT_DEBT:
        return DebtCredit(amount=coerce_money(data["debt_amount"], "debt_amount"))
    if method == PAYMENT_SPLIT:
        return SplitPayment(
            cash_paid=coerce_money(data["cash_paid"], "cash_paid"),
            debt_amount=coerce_money(data["debt_amount"], "debt_amount"),
        )
    raise ValidationError(
        f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}"
    )


# =============================================================================
# SALE FACTS
# =============================================================================

@dataclass(frozen=True)
class CartItem:
    """One sale line. quantity is in unit_name units; conversion maps to base units."""
    product_id: str
    product_name: str
    unit_name: str
    unit_price: Decimal
    quantity: int
    conversion: int = 1
    buy_price: Decimal = ZERO

    @property
    def base_quantity(self) -> int:
        return self.quantity * self.conversion

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_name": self.unit_name,
            "unit_price": money_str(self.unit_price),
            "buy_price": money_str(self.buy_price),
            "conversion": self.conversion,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        return cls(
            product_id=coerce_str(data.get("product_id"), "product_id", max_length=128),
            product_name=coerce_str(data.get("product_name"), "product_name", required=False) or "",
            unit_name=coerce_str(data.get("unit_name"), "unit_name", max_length=64),
            unit_price=coerce_money(data.get("unit_price"), "unit_price"),
            quantity=coerce_int(data.get("quantity"), "quantity", minimum=1),
            conversion=coerce_int(data.get("conversion", 1), "conversion", minimum=1),
            buy_price=coerce_money(data.get("buy_price") or 0, "buy_price"),
        )


@dataclass(frozen=True)
class Transaction:
    """
    Completed sale.

    IMMUTABLE: written once by the transaction service and never edited.
    Corrections are new facts (e.g. a DebtPayment), not updates.
    """
    ENTITY_TYPE: ClassVar[str] = "transactions"

    id: str
    timestamp: datetime
    items: tuple[CartItem, ...]
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    payment: PaymentOutcome
    points_earned: int = 0
    customer_id: str | None = None
    customer_name: str | None = None
    note: str | None = None

    @property
    def payment_method(self) -> str:
        return self.payment.METHOD

    @property
    def cash_paid(self) -> Decimal:
        return self.payment.cash_paid

    @property
    def debt_amount(self) -> Decimal:
        return self.payment.debt_amount

    @property
    def change(self) -> Decimal:
        return self.payment.change

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "timestamp": to_utc_z(self.timestamp),
            "items": [item.to_dict() for item in self.items],
            "subtotal": money_str(self.subtotal),
            "discount_amount": money_str(self.discount_amount),
            "total_amount": money_str(self.total_amount),
            "payment_method": self.payment_method,
            "cash_paid": money_str(self.cash_paid),
            "change": money_str(self.change),
            "points_earned": self.points_earned,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "note": self.note,
        }
        if self.payment_method in (PAYMENT_DEBT, PAYMENT_SPLIT):
            data["debt_amount"] = money_str(self.debt_amount)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(
            id=data["id"],
            timestamp=parse_iso_datetime(data["timestamp"]),
            items=tuple(CartItem.from_dict(i) for i in data.get("items", [])),
            subtotal=coerce_money(data.get("subtotal") or data["total_amount"], "subtotal"),
            discount_amount=coerce_money(data.get("discount_amount") or 0, "discount_amount"),
            total_amount=coerce_money(data["total_amount"], "total_amount"),
            payment=payment_from_dict(data),
            points_earned=int(data.get("points_earned") or 0),
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name"),
            note=data.get("note"),
        )


# =============================================================================
# PROCUREMENT FACTS
# =============================================================================

@dataclass(frozen=True)
class ProcurementItem:
    """Restock line. quantity is already expressed in the product's base unit."""
    product_id: str
    quantity: int
    buy_price: Decimal
    product_name: str = ""
    unit_name: str = ""

    @property
    def total(self) -> Decimal:
        return self.buy_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_name": self.unit_name,
            "buy_price": money_str(self.buy_price),
            "total": money_str(self.total),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProcurementItem":
        return cls(
            product_id=coerce_str(data.get("product_id"), "product_id", max_length=128),
            quantity=coerce_int(data.get("quantity"), "quantity", minimum=1),
            buy_price=coerce_money(data.get("buy_price") or 0, "buy_price"),
            product_name=data.get("product_name") or "",
            unit_name=data.get("unit_name") or "",
        )


@dataclass(frozen=True)
class Procurement:
    """Restock from a supplier. IMMUTABLE once recorded."""
    ENTITY_TYPE: ClassVar[str] = "procurements"

    id: str
    supplier_id: str
    timestamp: datetime
    items: tuple[ProcurementItem, ...]
    supplier_name: str = ""
    note: str | None = None

    @property
    def total_amount(self) -> Decimal:
        return sum((item.total for item in self.items), ZERO)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "timestamp": to_utc_z(self.timestamp),
            "items": [item.to_dict() for item in self.items],
            "total_amount": money_str(self.total_amount),
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Procurement":
        return cls(
            id=data["id"],
            supplier_id=data["supplier_id"],
            timestamp=parse_iso_datetime(data["timestamp"]),
            items=tuple(ProcurementItem.from_dict(i) for i in data.get("items", [])),
            supplier_name=data.get("supplier_name") or "",
            note=data.get("note"),
        )


# =============================================================================
# DEBT PAYMENT FACTS
# =============================================================================

@dataclass(frozen=True)
class DebtPayment:
    """Customer paying down debt. IMMUTABLE once recorded."""
    ENTITY_TYPE: ClassVar[str] = "debt_payments"

    id: str
    customer_id: str
    amount: Decimal
    timestamp: datetime
    customer_name: str = ""
    note: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "amount": money_str(self.amount),
            "timestamp": to_utc_z(self.timestamp),
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DebtPayment":
        return cls(
            id=data["id"],
            customer_id=data["customer_id"],
            amount=coerce_money(data["amount"], "amount"),
            timestamp=parse_iso_datetime(data["timestamp"]),
            customer_name=data.get("customer_name") or "",
            note=data.get("note"),
        )
