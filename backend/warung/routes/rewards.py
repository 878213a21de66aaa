# Overview: Flask API routes for the reward catalog, redemptions and point history.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_tenant, require_role, error_response, ROLE_OWNER
from ..errors import WarungError, NotFoundError, ValidationError
from ..models import PointReward
from ..services import rewards_service, transaction_service
from ..storage import get_store

rewards_bp = Blueprint("rewards", __name__, url_prefix="/api/rewards")


@rewards_bp.get("")
@require_tenant
def list_rewards():
    rewards = rewards_service.list_rewards(get_store())
    return {"items": [r.to_dict() for r in rewards], "count": len(rewards)}


@rewards_bp.post("")
@require_tenant
@require_role(ROLE_OWNER)
def create_reward():
    try:
        reward = rewards_service.create_reward(get_store(), request.get_json() or {})
        return jsonify({"reward": reward.to_dict()}), 201
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create reward")
        return jsonify({"error": "Internal server error"}), 500


@rewards_bp.put("/<reward_id>")
@require_tenant
@require_role(ROLE_OWNER)
def update_reward(reward_id: str):
    try:
        reward = rewards_service.update_reward(get_store(), reward_id, request.get_json() or {})
        return {"reward": reward.to_dict()}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update reward")
        return jsonify({"error": "Internal server error"}), 500


@rewards_bp.delete("/<reward_id>")
@require_tenant
@require_role(ROLE_OWNER)
def delete_reward(reward_id: str):
    try:
        if not rewards_service.delete_reward(get_store(), reward_id):
            return error_response(NotFoundError(PointReward.ENTITY_TYPE, reward_id))
        return {"deleted": True}
    except WarungError as e:
        return error_response(e)


@rewards_bp.post("/<reward_id>/redeem")
@require_tenant
def redeem_reward(reward_id: str):
    """
    Body: {"customer_id", "redemption_id"?}

    400 for insufficient points or a sold-out reward, 404 for unknown ids.
    """
    data = request.get_json() or {}
    try:
        customer_id = data.get("customer_id")
        if not customer_id:
            raise ValidationError("customer_id is required")
        result = transaction_service.redeem_reward(
            get_store(), customer_id, reward_id, redemption_id=data.get("redemption_id") or None,
        )
        return jsonify(result.to_dict()), 201
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to redeem reward")
        return jsonify({"error": "Internal server error"}), 500


@rewards_bp.get("/history")
@require_tenant
def point_history():
    """Newest first. Query params: customer_id, limit."""
    entries = rewards_service.point_history(
        get_store(),
        customer_id=request.args.get("customer_id"),
        limit=request.args.get("limit", type=int),
    )
    return {"items": [e.to_dict() for e in entries], "count": len(entries)}
