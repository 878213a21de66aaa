# Overview: Reward catalog management and point history queries.

from __future__ import annotations

from ..models import PointHistory, PointReward
from ..storage import Store, fetch, fetch_all, fetch_required, persist
from ..validation import coerce_int, coerce_str
from .concurrency import read_modify_write
from .identifier_service import PREFIX_REWARD, new_id


def list_rewards(store: Store) -> list[PointReward]:
    return sorted(fetch_all(store, PointReward), key=lambda r: (r.points_needed, r.name))


def create_reward(store: Store, data: dict) -> PointReward:
    reward = PointReward(
        id=data.get("id") or new_id(PREFIX_REWARD),
        name=coerce_str(data.get("name"), "name"),
        points_needed=coerce_int(data.get("points_needed"), "points_needed", minimum=1),
        stock=coerce_int(data.get("stock", 0), "stock", minimum=0),
        description=coerce_str(data.get("description"), "description", required=False, max_length=1000) or "",
    )
    persist(store, reward)
    return reward


def update_reward(store: Store, reward_id: str, patch: dict) -> PointReward:
    """CAS update so a restock never overwrites a concurrent redemption."""
    def _mutate(reward: PointReward) -> None:
        if "name" in patch:
            reward.name = coerce_str(patch["name"], "name")
        if "points_needed" in patch:
            reward.points_needed = coerce_int(patch["points_needed"], "points_needed", minimum=1)
        if "stock" in patch:
            reward.stock = coerce_int(patch["stock"], "stock", minimum=0)
        if "description" in patch:
            reward.description = coerce_str(patch["description"], "description", required=False, max_length=1000) or ""

    return read_modify_write(store, PointReward, reward_id, _mutate)


def get_reward(store: Store, reward_id: str) -> PointReward:
    return fetch_required(store, PointReward, reward_id)


def delete_reward(store: Store, reward_id: str) -> bool:
    if fetch(store, PointReward, reward_id) is None:
        return False
    store.delete(PointReward.ENTITY_TYPE, reward_id)
    return True


def point_history(store: Store, *, customer_id: str | None = None, limit: int | None = None) -> list[PointHistory]:
    """Newest first."""
    entries = fetch_all(store, PointHistory)
    if customer_id:
        entries = [e for e in entries if e.customer_id == customer_id]
    entries.sort(key=lambda e: (e.timestamp, e.id), reverse=True)
    return entries[:limit] if limit else entries
