from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from ..time_utils import to_utc_z, parse_iso_datetime
from ..validation import coerce_money, money_str


TIER_BRONZE = "Bronze"
TIER_SILVER = "Silver"
TIER_GOLD = "Gold"

VALID_TIERS = [TIER_BRONZE, TIER_SILVER, TIER_GOLD]

POINTS_EARN = "earn"
POINTS_REDEEM = "redeem"


@dataclass
class Customer:
    """
    Customer master data, debt account and loyalty balance.

    MUTABLE AGGREGATE: written by the debt and loyalty ledgers through one
    load -> mutate -> save cycle per logical operation.

    - total_spent only ever grows.
    - debt_balance may go negative on overpayment (no floor is enforced).
    - points_balance never goes negative.
    - opening_debt / opening_points hold balances that predate the fact
      stream (imports, demo data) so replay can reproduce the live values.
    """
    ENTITY_TYPE: ClassVar[str] = "customers"

    id: str
    name: str
    phone: str = ""
    tier: str = TIER_BRONZE
    total_spent: Decimal = Decimal("0")
    debt_balance: Decimal = Decimal("0")
    is_member: bool = False
    points_balance: int = 0
    member_id: str | None = None
    joined_at: datetime | None = None
    opening_debt: Decimal = Decimal("0")
    opening_points: int = 0
    applied_facts: list[str] = field(default_factory=list)
    version: int = 0

    @property
    def tier_key(self) -> str:
        """Lower-case key used by the settings tier tables."""
        return (self.tier or TIER_BRONZE).lower()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "tier": self.tier,
            "total_spent": money_str(self.total_spent),
            "debt_balance": money_str(self.debt_balance),
            "is_member": self.is_member,
            "points_balance": self.points_balance,
            "member_id": self.member_id,
            "joined_at": to_utc_z(self.joined_at),
            "opening_debt": money_str(self.opening_debt),
            "opening_points": self.opening_points,
            "applied_facts": list(self.applied_facts),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Customer":
        return cls(
            id=data["id"],
            name=data["name"],
            phone=data.get("phone") or "",
            tier=data.get("tier") or TIER_BRONZE,
            total_spent=coerce_money(data.get("total_spent") or 0, "total_spent"),
            debt_balance=coerce_money(data.get("debt_balance") or 0, "debt_balance", allow_negative=True),
            is_member=bool(data.get("is_member", False)),
            points_balance=int(data.get("points_balance") or 0),
            member_id=data.get("member_id"),
            joined_at=parse_iso_datetime(data.get("joined_at")),
            opening_debt=coerce_money(data.get("opening_debt") or 0, "opening_debt", allow_negative=True),
            opening_points=int(data.get("opening_points") or 0),
            applied_facts=list(data.get("applied_facts", [])),
            version=int(data.get("version", 0)),
        )


@dataclass
class PointReward:
    """Redeemable catalog item. stock counts remaining redemptions."""
    ENTITY_TYPE: ClassVar[str] = "point_rewards"

    id: str
    name: str
    points_needed: int
    stock: int = 0
    description: str = ""
    applied_facts: list[str] = field(default_factory=list)
    version: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "points_needed": self.points_needed,
            "stock": self.stock,
            "description": self.description,
            "applied_facts": list(self.applied_facts),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PointReward":
        return cls(
            id=data["id"],
            name=data["name"],
            points_needed=int(data["points_needed"]),
            stock=int(data.get("stock") or 0),
            description=data.get("description") or "",
            applied_facts=list(data.get("applied_facts", [])),
            version=int(data.get("version", 0)),
        )


@dataclass(frozen=True)
class PointHistory:
    """
    Append-only log of point movements.

    IMMUTABLE: entries are never updated or deleted. points is always
    positive; type says which direction it moved the balance.
    """
    ENTITY_TYPE: ClassVar[str] = "point_history"

    id: str
    customer_id: str
    customer_name: str
    type: str
    points: int
    timestamp: datetime
    reference_id: str

    @property
    def signed_points(self) -> int:
        return self.points if self.type == POINTS_EARN else -self.points

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "type": self.type,
            "points": self.points,
            "timestamp": to_utc_z(self.timestamp),
            "reference_id": self.reference_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PointHistory":
        return cls(
            id=data["id"],
            customer_id=data["customer_id"],
            customer_name=data.get("customer_name") or "",
            type=data["type"],
            points=int(data["points"]),
            timestamp=parse_iso_datetime(data["timestamp"]),
            reference_id=data["reference_id"],
        )
