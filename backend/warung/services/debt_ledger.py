# Overview: Debt ledger; keeps Customer.debt_balance in line with credit extended and payments received.

"""
Debt Ledger

- Credit sales (debt: full total, split: total - cash_paid) increase
  debt_balance; debt payments decrease it.
- No floor at zero: overpayment may drive the balance negative. Whether to
  allow that is the caller's policy (see transaction_service).
- The in-memory helpers (add_credit, add_spend) mutate a Customer that the
  caller loaded and will persist once; the store-level functions do their own
  compare-and-swap read-modify-write. A missing customer is fatal here.
"""

from __future__ import annotations

from decimal import Decimal

from ..errors import ValidationError
from ..models import Customer
from ..storage import Store
from .concurrency import read_modify_write


def add_credit(customer: Customer, amount: Decimal) -> None:
    if amount <= 0:
        raise ValidationError("Credit amount must be positive")
    customer.debt_balance += amount


def add_spend(customer: Customer, total: Decimal) -> None:
    if total < 0:
        raise ValidationError("Spend total must not be negative")
    customer.total_spent += total


def extend_credit(store: Store, customer_id: str, amount: Decimal, fact_id: str) -> Customer:
    """Increase a customer's debt by amount, once per fact_id."""
    if amount <= 0:
        raise ValidationError("Credit amount must be positive")

    def _mutate(customer: Customer) -> bool:
        if fact_id in customer.applied_facts:
            return False
        add_credit(customer, amount)
        customer.applied_facts.append(fact_id)
        return True

    return read_modify_write(store, Customer, customer_id, _mutate)


def record_payment(store: Store, customer_id: str, amount: Decimal, fact_id: str) -> Customer:
    """Decrease a customer's debt by amount, once per fact_id. No floor at zero."""
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")

    def _mutate(customer: Customer) -> bool:
        if fact_id in customer.applied_facts:
            return False
        customer.debt_balance -= amount
        customer.applied_facts.append(fact_id)
        return True

    return read_modify_write(store, Customer, customer_id, _mutate)
