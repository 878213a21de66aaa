# Overview: Replays the fact log against live balances; reports drift and re-drives partially applied facts.

"""
Reconciliation

Live balances are derived state. For every aggregate the fact log must
reproduce them exactly:

    product.stock           == opening_stock
                               - sum(sale lines, base units)
                               + sum(procurement lines)
    customer.debt_balance   == opening_debt
                               + sum(debt_amount of credit sales)
                               - sum(debt payments)
    customer.points_balance == opening_points
                               + sum(earn entries) - sum(redeem entries)

A commit that stopped halfway (process killed, store error after the fact
was written) shows up here as drift. resume_pending() re-drives every fact
through the same idempotent ledger steps, which completes such commits
without double-applying the ones that finished.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from ..models import (
    Customer,
    DebtPayment,
    PointHistory,
    PointReward,
    Procurement,
    Product,
    Transaction,
    POINTS_REDEEM,
)
from ..errors import NotFoundError
from ..storage import Store, append_fact, fetch_all
from ..time_utils import utcnow
from ..validation import money_str
from . import catalog_ledger, debt_ledger
from .concurrency import read_modify_write
from .transaction_service import apply_sale_effects

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Drift:
    entity_type: str
    record_id: str
    field: str
    expected: object
    actual: object

    def to_dict(self) -> dict:
        def _fmt(value):
            return money_str(value) if isinstance(value, Decimal) else value
        return {
            "entity_type": self.entity_type,
            "id": self.record_id,
            "field": self.field,
            "expected": _fmt(self.expected),
            "actual": _fmt(self.actual),
        }


@dataclass
class ReconciliationReport:
    warung_id: str
    checked_products: int = 0
    checked_customers: int = 0
    drifts: list[Drift] = field(default_factory=list)
    repaired: int = 0

    @property
    def is_clean(self) -> bool:
        return not self.drifts

    def to_dict(self) -> dict:
        return {
            "warung_id": self.warung_id,
            "checked_products": self.checked_products,
            "checked_customers": self.checked_customers,
            "is_clean": self.is_clean,
            "drifts": [d.to_dict() for d in self.drifts],
            "repaired": self.repaired,
        }


def expected_stock(store: Store) -> dict[str, int]:
    """Net stock movement per product id according to the fact log."""
    moves: dict[str, int] = {}
    for tx in fetch_all(store, Transaction):
        for item in tx.items:
            moves[item.product_id] = moves.get(item.product_id, 0) - item.base_quantity
    for po in fetch_all(store, Procurement):
        for item in po.items:
            moves[item.product_id] = moves.get(item.product_id, 0) + item.quantity
    return moves


def expected_debt(store: Store) -> dict[str, Decimal]:
    moves: dict[str, Decimal] = {}
    for tx in fetch_all(store, Transaction):
        if tx.customer_id and tx.debt_amount > 0:
            moves[tx.customer_id] = moves.get(tx.customer_id, Decimal("0")) + tx.debt_amount
    for payment in fetch_all(store, DebtPayment):
        moves[payment.customer_id] = moves.get(payment.customer_id, Decimal("0")) - payment.amount
    return moves


def expected_points(store: Store) -> dict[str, int]:
    moves: dict[str, int] = {}
    for entry in fetch_all(store, PointHistory):
        moves[entry.customer_id] = moves.get(entry.customer_id, 0) + entry.signed_points
    return moves


def reconcile(store: Store, *, repair: bool = False) -> ReconciliationReport:
    """
    Compare live balances against the replayed fact log.

    With repair=True every drifting balance is overwritten with the replayed
    value (compare-and-swap, retried). Run resume_pending() first; repair is
    for drift that re-driving cannot explain, e.g. hand-edited records.
    """
    report = ReconciliationReport(warung_id=store.warung_id)
    stock_moves = expected_stock(store)
    debt_moves = expected_debt(store)
    point_moves = expected_points(store)

    for product in fetch_all(store, Product):
        report.checked_products += 1
        expected = product.opening_stock + stock_moves.get(product.id, 0)
        if product.stock != expected:
            report.drifts.append(Drift(Product.ENTITY_TYPE, product.id, "stock", expected, product.stock))

    for customer in fetch_all(store, Customer):
        report.checked_customers += 1
        debt = customer.opening_debt + debt_moves.get(customer.id, Decimal("0"))
        if customer.debt_balance != debt:
            report.drifts.append(Drift(Customer.ENTITY_TYPE, customer.id, "debt_balance", debt, customer.debt_balance))
        points = customer.opening_points + point_moves.get(customer.id, 0)
        if customer.points_balance != points:
            report.drifts.append(Drift(Customer.ENTITY_TYPE, customer.id, "points_balance", points, customer.points_balance))

    if report.drifts:
        logger.warning("Reconciliation found %d drift(s) for warung %s", len(report.drifts), store.warung_id)

    if repair:
        for drift in report.drifts:
            _repair(store, drift)
            report.repaired += 1

    return report


def _repair(store: Store, drift: Drift) -> None:
    model = Product if drift.entity_type == Product.ENTITY_TYPE else Customer

    def _mutate(obj) -> None:
        setattr(obj, drift.field, drift.expected)

    read_modify_write(store, model, drift.record_id, _mutate, missing_ok=True)
    logger.info("Repaired %s %s %s: %s -> %s", drift.entity_type, drift.record_id,
                drift.field, drift.actual, drift.expected)


def _resume_redemptions(store: Store) -> int:
    """Append history entries for redemptions whose reward was taken but never logged."""
    logged = {entry.id for entry in fetch_all(store, PointHistory)}
    customers = fetch_all(store, Customer)
    appended = 0

    for reward in fetch_all(store, PointReward):
        for redemption_id in reward.applied_facts:
            if redemption_id in logged:
                continue
            owner = next((c for c in customers if redemption_id in c.applied_facts), None)
            if owner is None:
                continue
            entry = PointHistory(
                id=redemption_id,
                customer_id=owner.id,
                customer_name=owner.name,
                type=POINTS_REDEEM,
                points=reward.points_needed,
                timestamp=utcnow(),
                reference_id=reward.id,
            )
            if append_fact(store, entry):
                appended += 1
    return appended


def unfinished_redemptions(store: Store) -> list[dict]:
    """
    Redemptions that debited a customer but never took the reward.

    The customer record keeps only the redemption id, not the reward, so
    these cannot be re-driven here. Retrying redeem_reward with the same
    redemption_id completes them (or refunds the points if the reward has
    sold out since).
    """
    known = {tx.id for tx in fetch_all(store, Transaction)}
    known.update(payment.id for payment in fetch_all(store, DebtPayment))
    known.update(entry.id for entry in fetch_all(store, PointHistory))
    for reward in fetch_all(store, PointReward):
        known.update(reward.applied_facts)

    return [
        {"customer_id": customer.id, "redemption_id": fact_id}
        for customer in fetch_all(store, Customer)
        for fact_id in customer.applied_facts
        if fact_id not in known
    ]


def resume_pending(store: Store) -> dict:
    """Re-drive every recorded fact through its ledgers; already-applied steps are skipped."""
    skipped = 0
    with store.feed.batch():
        sales = fetch_all(store, Transaction)
        for tx in sales:
            try:
                apply_sale_effects(store, tx)
            except NotFoundError as exc:
                logger.warning("Cannot resume sale %s: %s", tx.id, exc)
                skipped += 1

        procurements = fetch_all(store, Procurement)
        for po in procurements:
            catalog_ledger.apply_procurement_increase(store, po.items, po.id)

        payments = fetch_all(store, DebtPayment)
        for payment in payments:
            try:
                debt_ledger.record_payment(store, payment.customer_id, payment.amount, payment.id)
            except NotFoundError as exc:
                logger.warning("Cannot resume debt payment %s: %s", payment.id, exc)
                skipped += 1

        redemptions = _resume_redemptions(store)
        unfinished = unfinished_redemptions(store)
        for item in unfinished:
            logger.warning(
                "Redemption %s debited customer %s but took no reward; retry it with the same redemption_id",
                item["redemption_id"], item["customer_id"],
            )

    logger.info(
        "Resumed facts for warung %s: %d sales, %d procurements, %d debt payments, %d redemptions logged",
        store.warung_id, len(sales), len(procurements), len(payments), redemptions,
    )
    return {
        "transactions": len(sales),
        "procurements": len(procurements),
        "debt_payments": len(payments),
        "redemptions_logged": redemptions,
        "unfinished_redemptions": unfinished,
        "skipped": skipped,
    }
