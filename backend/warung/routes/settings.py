# Overview: Flask API routes for tenant settings.

from flask import Blueprint, request, current_app, jsonify

from ..decorators import require_tenant, require_role, error_response, ROLE_OWNER
from ..errors import WarungError
from ..services import settings_service
from ..storage import get_store

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_tenant
def get_settings():
    """Defaults are returned for a warung that never saved settings."""
    try:
        return {"settings": settings_service.get_settings(get_store()).to_dict()}
    except WarungError as e:
        return error_response(e)


@settings_bp.put("")
@require_tenant
@require_role(ROLE_OWNER)
def save_settings():
    """Partial update; omitted fields keep their current values."""
    try:
        settings = settings_service.save_settings(get_store(), request.get_json() or {})
        return {"settings": settings.to_dict()}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to save settings")
        return jsonify({"error": "Internal server error"}), 500
