# Overview: Record id generation.

from __future__ import annotations

from uuid import uuid4


# Prefixes keep ids recognisable on receipts and in history views
PREFIX_TRANSACTION = "TX"
PREFIX_PROCUREMENT = "PO"
PREFIX_DEBT_PAYMENT = "PAY"
PREFIX_PRODUCT = "P"
PREFIX_CUSTOMER = "C"
PREFIX_SUPPLIER = "S"
PREFIX_REWARD = "REW"
PREFIX_EARN = "EARN"
PREFIX_REDEEM = "REDEEM"
PREFIX_MEMBER = "MBR"


def new_id(prefix: str) -> str:
    """Opaque id unique per tenant, e.g. TX-3F9A1C0B7D2E."""
    return f"{prefix}-{uuid4().hex[:12].upper()}"


def earn_entry_id(transaction_id: str) -> str:
    """Deterministic so a retried sale cannot log the same earn twice."""
    return f"{PREFIX_EARN}-{transaction_id}"
