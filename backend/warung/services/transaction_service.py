# Overview: Transaction orchestrator; turns checkout, restock, debt payment and redemption requests into facts plus ledger effects.

"""
Transaction Service

WHY: Single entry point for every state change that moves stock, money or
points. Callers (routes, CLI, tests) never drive the ledgers directly.

SALE LIFECYCLE (conceptual, never persisted):
    DRAFT     cart being built by the client
    PRICED    price_cart(): subtotal, tier discount, total, points
    VALIDATED resolve_payment(): payment rules checked, outcome fixed
    COMMITTED commit_sale(): fact written and all ledgers applied

Validation is fail-fast: every ValidationError / NotFoundError for the
request itself is raised before the first write.

COMMIT ORDER (the store has no multi-record transactions):
1. append the Transaction fact (nothing depends on it yet)
2. catalog ledger: deduct stock for every line
3. one customer load -> mutate -> save: total_spent, credit, points
4. append the earn PointHistory entry

IDEMPOTENT RETRY: the fact id is the idempotency key. Re-submitting a
commit with the same transaction_id re-drives steps 2-4 for the stored
fact; each aggregate skips facts listed in its applied_facts, so nothing
is applied twice. A commit that failed midway is therefore completed by
resubmitting it (or by reconciliation_service.resume_pending).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from ..errors import CustomerRequired, InsufficientPayment, InvalidPayment, ValidationError
from ..models import (
    AppSettings,
    CartItem,
    CashPayment,
    Customer,
    DebtCredit,
    DebtPayment,
    PaymentOutcome,
    Procurement,
    ProcurementItem,
    Product,
    QrisPayment,
    SplitPayment,
    Supplier,
    Transaction,
    PAYMENT_CASH,
    PAYMENT_DEBT,
    PAYMENT_QRIS,
    VALID_PAYMENT_METHODS,
)
from ..storage import Store, append_fact, fetch, fetch_required, persist
from ..time_utils import utcnow
from . import catalog_ledger, debt_ledger, loyalty_ledger
from .catalog_ledger import StockWarning
from .concurrency import run_with_retry
from .identifier_service import (
    PREFIX_DEBT_PAYMENT,
    PREFIX_PROCUREMENT,
    PREFIX_TRANSACTION,
    new_id,
)
from .settings_service import get_settings
from ..validation import coerce_money, money_str

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# =============================================================================
# PRICING (PRICED)
# =============================================================================

@dataclass(frozen=True)
class PricedCart:
    items: tuple[CartItem, ...]
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    total: Decimal
    points_earned: int
    customer: Customer | None = None

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "subtotal": money_str(self.subtotal),
            "discount_rate": money_str(self.discount_rate),
            "discount_amount": money_str(self.discount_amount),
            "total": money_str(self.total),
            "points_earned": self.points_earned,
            "customer_id": self.customer.id if self.customer else None,
        }


def price_cart(items: Iterable[CartItem], customer: Customer | None, settings: AppSettings) -> PricedCart:
    """
    Pure pricing: identical inputs always give identical output.

    subtotal = sum(unit_price * quantity)
    discount = subtotal * tier_discount% (only with a customer attached)
    total    = subtotal - discount
    points   = loyalty_ledger.compute_earned_points(total, customer, settings)
    """
    items = tuple(items)
    subtotal = sum((item.line_total for item in items), ZERO)
    discount_rate = settings.discount_rate_for(customer.tier_key) if customer else ZERO
    discount_amount = subtotal * discount_rate / 100
    total = subtotal - discount_amount
    points_earned = loyalty_ledger.compute_earned_points(total, customer, settings)

    return PricedCart(
        items=items,
        subtotal=subtotal,
        discount_rate=discount_rate,
        discount_amount=discount_amount,
        total=total,
        points_earned=points_earned,
        customer=customer,
    )


# =============================================================================
# PAYMENT VALIDATION (VALIDATED)
# =============================================================================

def resolve_payment(
    method: str,
    total: Decimal,
    cash_paid: Decimal | None,
    customer: Customer | None,
) -> PaymentOutcome:
    """
    Check the payment rules for method and return the payment outcome.

    cash  : cash_paid >= total, change = cash_paid - total
    qris  : paid in full electronically, no change, no debt
    debt  : customer required, nothing paid, debt = total
    split : customer required, 0 < cash_paid < total, debt = total - cash_paid
    """
    if method not in VALID_PAYMENT_METHODS:
        raise InvalidPayment(
            f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}"
        )

    if method == PAYMENT_CASH:
        paid = cash_paid if cash_paid is not None else ZERO
        if paid < total:
            raise InsufficientPayment(
                "Cash tendered is less than the sale total",
                details={"total": money_str(total), "cash_paid": money_str(paid)},
            )
        return CashPayment(cash_paid=paid, change=paid - total)

    if method == PAYMENT_QRIS:
        return QrisPayment(amount=total)

    if customer is None:
        raise CustomerRequired(
            "A customer must be selected to record debt",
            details={"payment_method": method},
        )

    if method == PAYMENT_DEBT:
        return DebtCredit(amount=total)

    # PAYMENT_SPLIT
    paid = cash_paid if cash_paid is not None else ZERO
    if paid <= 0:
        raise InvalidPayment(
            "Split payment needs a cash portion greater than zero",
            details={"cash_paid": money_str(paid)},
        )
    if paid >= total:
        raise InvalidPayment(
            "Cash portion covers the whole total; use a cash payment instead",
            details={"total": money_str(total), "cash_paid": money_str(paid)},
        )
    return SplitPayment(cash_paid=paid, debt_amount=total - paid)


# =============================================================================
# SALES (COMMITTED)
# =============================================================================

@dataclass(frozen=True)
class SaleRequest:
    items: tuple[CartItem, ...]
    payment_method: str
    cash_paid: Decimal | None = None
    customer_id: str | None = None
    note: str | None = None
    transaction_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "SaleRequest":
        raw_items = data.get("items")
        if not isinstance(raw_items, list):
            raise ValidationError("items must be a list")
        cash_paid = data.get("cash_paid")
        return cls(
            items=tuple(CartItem.from_dict(i) for i in raw_items),
            payment_method=data.get("payment_method") or "",
            cash_paid=coerce_money(cash_paid, "cash_paid") if cash_paid not in (None, "") else None,
            customer_id=data.get("customer_id") or None,
            note=data.get("note"),
            transaction_id=data.get("transaction_id") or None,
        )


@dataclass(frozen=True)
class SaleReceipt:
    transaction: Transaction
    customer: Customer | None = None
    warnings: tuple[StockWarning, ...] = field(default_factory=tuple)
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "transaction": self.transaction.to_dict(),
            "customer": self.customer.to_dict() if self.customer else None,
            "warnings": [w.to_dict() for w in self.warnings],
            "replayed": self.replayed,
        }


def _load_customer(store: Store, customer_id: str | None) -> Customer | None:
    if not customer_id:
        return None
    return fetch_required(store, Customer, customer_id)


def preview_sale(store: Store, items: Iterable[CartItem], customer_id: str | None = None) -> PricedCart:
    """Price a cart exactly as commit_sale will, without writing anything."""
    return price_cart(items, _load_customer(store, customer_id), get_settings(store))


def build_transaction(
    request: SaleRequest,
    customer: Customer | None,
    settings: AppSettings,
    *,
    now: datetime | None = None,
) -> Transaction:
    """DRAFT -> PRICED -> VALIDATED. Pure; raises before anything is written."""
    if not request.items:
        raise ValidationError("Cannot commit a sale with no items")

    priced = price_cart(request.items, customer, settings)
    payment = resolve_payment(request.payment_method, priced.total, request.cash_paid, customer)

    return Transaction(
        id=request.transaction_id or new_id(PREFIX_TRANSACTION),
        timestamp=now or utcnow(),
        items=priced.items,
        subtotal=priced.subtotal,
        discount_amount=priced.discount_amount,
        total_amount=priced.total,
        payment=payment,
        points_earned=priced.points_earned,
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else None,
        note=request.note,
    )


def _apply_customer_effects(store: Store, transaction: Transaction) -> Customer | None:
    """Step 3 + 4: one compare-and-swap save for spend, credit and points."""
    if not transaction.customer_id:
        return None

    def _op() -> Customer:
        customer = fetch_required(store, Customer, transaction.customer_id)
        if transaction.id in customer.applied_facts:
            return customer
        debt_ledger.add_spend(customer, transaction.total_amount)
        if transaction.debt_amount > 0:
            debt_ledger.add_credit(customer, transaction.debt_amount)
        loyalty_ledger.apply_earn(customer, transaction.points_earned, transaction.id, now=transaction.timestamp)
        customer.applied_facts.append(transaction.id)
        persist(store, customer)
        return customer

    customer = run_with_retry(_op)

    if transaction.points_earned > 0:
        entry = loyalty_ledger.earn_entry(customer, transaction.points_earned, transaction.id, transaction.timestamp)
        append_fact(store, entry)
    return customer


def apply_sale_effects(store: Store, transaction: Transaction) -> tuple[list[StockWarning], Customer | None]:
    """Steps 2-4 for a recorded sale. Safe to call repeatedly for the same fact."""
    warnings = catalog_ledger.apply_sale_deduction(store, transaction.items, transaction.id)
    customer = _apply_customer_effects(store, transaction)
    return warnings, customer


def commit_sale(store: Store, request: SaleRequest, *, now: datetime | None = None) -> SaleReceipt:
    """
    Validate, record and apply a completed sale.

    Raises ValidationError subclasses (InsufficientPayment, CustomerRequired,
    InvalidPayment) or NotFoundError (unknown customer) before any write.
    StorageError after the fact was written leaves the sale partially
    applied; resubmitting with the same transaction_id completes it.
    """
    if request.transaction_id:
        existing = fetch(store, Transaction, request.transaction_id)
        if existing is not None:
            logger.info("Sale %s already recorded; re-driving ledger effects", existing.id)
            with store.feed.batch():
                warnings, customer = apply_sale_effects(store, existing)
            return SaleReceipt(existing, customer, tuple(warnings), replayed=True)

    settings = get_settings(store)
    customer = _load_customer(store, request.customer_id)
    transaction = build_transaction(request, customer, settings, now=now)

    with store.feed.batch():
        if not append_fact(store, transaction):
            # Lost a race with a concurrent submit of the same id
            transaction = fetch_required(store, Transaction, transaction.id)
        warnings, customer = apply_sale_effects(store, transaction)

    logger.info(
        "Committed sale %s total=%s method=%s points=%s warung=%s",
        transaction.id, money_str(transaction.total_amount), transaction.payment_method,
        transaction.points_earned, store.warung_id,
    )
    return SaleReceipt(transaction, customer, tuple(warnings))


# =============================================================================
# PROCUREMENT
# =============================================================================

@dataclass(frozen=True)
class ProcurementReceipt:
    procurement: Procurement
    warnings: tuple[StockWarning, ...] = field(default_factory=tuple)
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "procurement": self.procurement.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
            "replayed": self.replayed,
        }


def commit_procurement(
    store: Store,
    supplier_id: str,
    items: Iterable[ProcurementItem],
    *,
    procurement_id: str | None = None,
    note: str | None = None,
    now: datetime | None = None,
) -> ProcurementReceipt:
    """Record a restock from a supplier, then add every line to stock (base units)."""
    if procurement_id:
        existing = fetch(store, Procurement, procurement_id)
        if existing is not None:
            with store.feed.batch():
                warnings = catalog_ledger.apply_procurement_increase(store, existing.items, existing.id)
            return ProcurementReceipt(existing, tuple(warnings), replayed=True)

    items = tuple(items)
    if not items:
        raise ValidationError("Cannot record a procurement with no items")
    supplier = fetch_required(store, Supplier, supplier_id)

    named_items = []
    for item in items:
        if not item.product_name:
            product = fetch(store, Product, item.product_id)
            if product is not None:
                item = ProcurementItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    buy_price=item.buy_price,
                    product_name=product.name,
                    unit_name=item.unit_name or product.base_unit,
                )
        named_items.append(item)

    procurement = Procurement(
        id=procurement_id or new_id(PREFIX_PROCUREMENT),
        supplier_id=supplier.id,
        supplier_name=supplier.name,
        timestamp=now or utcnow(),
        items=tuple(named_items),
        note=note,
    )

    with store.feed.batch():
        if not append_fact(store, procurement):
            procurement = fetch_required(store, Procurement, procurement.id)
        warnings = catalog_ledger.apply_procurement_increase(store, procurement.items, procurement.id)

    logger.info(
        "Committed procurement %s supplier=%s total=%s warung=%s",
        procurement.id, supplier.id, money_str(procurement.total_amount), store.warung_id,
    )
    return ProcurementReceipt(procurement, tuple(warnings))


# =============================================================================
# DEBT PAYMENTS
# =============================================================================

@dataclass(frozen=True)
class DebtPaymentReceipt:
    payment: DebtPayment
    customer: Customer
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "payment": self.payment.to_dict(),
            "customer": self.customer.to_dict(),
            "replayed": self.replayed,
        }


def commit_debt_payment(
    store: Store,
    customer_id: str,
    amount: Decimal,
    *,
    payment_id: str | None = None,
    note: str | None = None,
    allow_overpayment: bool = False,
    now: datetime | None = None,
) -> DebtPaymentReceipt:
    """
    Record a customer paying down debt, then reduce the balance.

    Overpayment (amount above the current balance) is rejected unless
    allow_overpayment is set; the debt ledger itself has no floor.
    """
    if payment_id:
        existing = fetch(store, DebtPayment, payment_id)
        if existing is not None:
            with store.feed.batch():
                customer = debt_ledger.record_payment(store, existing.customer_id, existing.amount, existing.id)
            return DebtPaymentReceipt(existing, customer, replayed=True)

    if amount <= 0:
        raise InvalidPayment("Payment amount must be positive", details={"amount": money_str(amount)})

    customer = fetch_required(store, Customer, customer_id)
    if not allow_overpayment and amount > customer.debt_balance:
        raise InvalidPayment(
            "Payment exceeds outstanding debt",
            details={"amount": money_str(amount), "debt_balance": money_str(customer.debt_balance)},
        )

    payment = DebtPayment(
        id=payment_id or new_id(PREFIX_DEBT_PAYMENT),
        customer_id=customer.id,
        customer_name=customer.name,
        amount=amount,
        timestamp=now or utcnow(),
        note=note,
    )

    with store.feed.batch():
        if not append_fact(store, payment):
            payment = fetch_required(store, DebtPayment, payment.id)
        customer = debt_ledger.record_payment(store, payment.customer_id, payment.amount, payment.id)

    logger.info(
        "Committed debt payment %s customer=%s amount=%s warung=%s",
        payment.id, customer.id, money_str(payment.amount), store.warung_id,
    )
    return DebtPaymentReceipt(payment, customer)


# =============================================================================
# REWARD REDEMPTION
# =============================================================================

def redeem_reward(
    store: Store,
    customer_id: str,
    reward_id: str,
    *,
    redemption_id: str | None = None,
) -> loyalty_ledger.RedemptionResult:
    """Delegates to the loyalty ledger; one change event per touched collection."""
    with store.feed.batch():
        result = loyalty_ledger.redeem(store, customer_id, reward_id, redemption_id=redemption_id)
    logger.info(
        "Redeemed reward %s for customer %s (%s points) warung=%s",
        reward_id, customer_id, result.entry.points, store.warung_id,
    )
    return result
