# Overview: Error taxonomy shared by ledgers, stores and routes.

from __future__ import annotations


class WarungError(Exception):
    """Base class for domain errors. Carries structured details for API responses."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(WarungError, ValueError):
    """400-level input problem. Always raised before any mutation is attempted."""


class InsufficientPayment(ValidationError):
    """Cash tendered is below the sale total."""


class CustomerRequired(ValidationError):
    """Credit (debt/split) sale without an attached customer."""


class InvalidPayment(ValidationError):
    """Payment amounts that violate the rules of the chosen method."""


class InsufficientPoints(ValidationError):
    """Customer points balance below the reward's points_needed."""


class OutOfStock(ValidationError):
    """Reward has no redeemable stock left."""


class ConflictError(WarungError):
    """409-level business rule conflict (e.g. duplicate SKU, supplier still referenced)."""


class NotFoundError(WarungError, LookupError):
    """Unknown product/customer/reward/supplier id."""
    def __init__(self, entity_type: str, record_id: str):
        super().__init__(
            f"{entity_type} {record_id} not found",
            details={"entity_type": entity_type, "id": record_id},
        )
        self.entity_type = entity_type
        self.record_id = record_id


class StorageError(WarungError):
    """Store read/write failure. Never retried by the core."""


class ConcurrencyConflict(StorageError):
    """
    Compare-and-swap failure: the record changed between read and write.

    Ledgers retry their read-modify-write on this error; anything else
    surfaces it unchanged.
    """
    def __init__(self, entity_type: str, record_id: str, expected: int | None, actual: int | None):
        super().__init__(
            f"{entity_type} {record_id} was modified concurrently",
            details={
                "entity_type": entity_type,
                "id": record_id,
                "expected_version": expected,
                "actual_version": actual,
            },
        )
        self.entity_type = entity_type
        self.record_id = record_id
