# Overview: Customer master data, membership enrollment and debtor listing.

from __future__ import annotations

import logging

from ..errors import ConflictError, ValidationError
from ..models import Customer, VALID_TIERS, TIER_BRONZE
from ..storage import Store, fetch, fetch_all, fetch_required, persist
from ..time_utils import utcnow
from ..validation import coerce_bool, coerce_int, coerce_money, coerce_str
from .concurrency import read_modify_write
from .identifier_service import PREFIX_CUSTOMER, PREFIX_MEMBER, new_id

logger = logging.getLogger(__name__)

# Balances are ledger-owned; only master data is patchable
CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "tier"}


def _coerce_tier(value) -> str:
    tier = coerce_str(value, "tier", required=False) or TIER_BRONZE
    for valid in VALID_TIERS:
        if tier.lower() == valid.lower():
            return valid
    raise ValidationError(f"Invalid tier: {tier}. Must be one of {VALID_TIERS}")


def list_customers(store: Store, *, members_only: bool = False) -> list[Customer]:
    customers = fetch_all(store, Customer)
    if members_only:
        customers = [c for c in customers if c.is_member]
    return sorted(customers, key=lambda c: (c.name.lower(), c.id))


def list_debtors(store: Store) -> list[Customer]:
    """Customers with outstanding debt, largest balance first."""
    return sorted(
        (c for c in fetch_all(store, Customer) if c.debt_balance > 0),
        key=lambda c: (-c.debt_balance, c.name.lower()),
    )


def get_customer(store: Store, customer_id: str) -> Customer:
    return fetch_required(store, Customer, customer_id)


def create_customer(store: Store, data: dict) -> Customer:
    """
    Opening balances (debt_balance, points_balance, total_spent) are accepted
    for customers brought over from a notebook; they are recorded as the
    opening_* values the reconciliation starts from.
    """
    debt = coerce_money(data.get("debt_balance", 0), "debt_balance")
    points = coerce_int(data.get("points_balance", 0), "points_balance", minimum=0)
    is_member = coerce_bool(data.get("is_member", False), "is_member")

    customer = Customer(
        id=data.get("id") or new_id(PREFIX_CUSTOMER),
        name=coerce_str(data.get("name"), "name"),
        phone=coerce_str(data.get("phone"), "phone", required=False, max_length=32) or "",
        tier=_coerce_tier(data.get("tier")),
        total_spent=coerce_money(data.get("total_spent", 0), "total_spent"),
        debt_balance=debt,
        is_member=is_member,
        points_balance=points,
        member_id=(data.get("member_id") or new_id(PREFIX_MEMBER)) if is_member else None,
        joined_at=utcnow() if is_member else None,
        opening_debt=debt,
        opening_points=points,
    )
    persist(store, customer)
    logger.info("Created customer %s warung=%s", customer.id, store.warung_id)
    return customer


def update_customer(store: Store, customer_id: str, patch: dict) -> Customer:
    ledger_fields = {"debt_balance", "points_balance", "total_spent"} & set(patch)
    if ledger_fields:
        raise ValidationError(
            "Balances are maintained by the ledgers and cannot be edited",
            details={"fields": sorted(ledger_fields)},
        )

    def _mutate(customer: Customer) -> None:
        for key, value in patch.items():
            if key not in CUSTOMER_MUTABLE_FIELDS:
                continue
            if key == "tier":
                value = _coerce_tier(value)
            elif key == "name":
                value = coerce_str(value, "name")
            else:
                value = coerce_str(value, key, required=False, max_length=32) or ""
            setattr(customer, key, value)

    return read_modify_write(store, Customer, customer_id, _mutate)


def enroll_member(store: Store, customer_id: str, *, tier: str | None = None) -> Customer:
    """Turn a customer into a loyalty member. Already-enrolled customers keep their member_id."""
    def _mutate(customer: Customer) -> bool:
        changed = False
        if not customer.is_member:
            customer.is_member = True
            customer.member_id = customer.member_id or new_id(PREFIX_MEMBER)
            customer.joined_at = utcnow()
            changed = True
        if tier is not None:
            new_tier = _coerce_tier(tier)
            if new_tier != customer.tier:
                customer.tier = new_tier
                changed = True
        return changed

    customer = read_modify_write(store, Customer, customer_id, _mutate)
    logger.info("Customer %s enrolled as member %s warung=%s", customer.id, customer.member_id, store.warung_id)
    return customer


def delete_customer(store: Store, customer_id: str) -> bool:
    """Customers with outstanding debt cannot be removed."""
    customer = fetch(store, Customer, customer_id)
    if customer is None:
        return False
    if customer.debt_balance > 0:
        raise ConflictError(
            "Customer still has outstanding debt",
            details={"debt_balance": str(customer.debt_balance)},
        )
    store.delete(Customer.ENTITY_TYPE, customer_id)
    logger.info("Deleted customer %s warung=%s", customer_id, store.warung_id)
    return True
