# Overview: Owner-only maintenance routes; wipe, demo data, reconciliation and replica sync.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_tenant, require_role, error_response, ROLE_OWNER
from ..errors import WarungError, ValidationError
from ..services import maintenance_service, reconciliation_service
from ..storage import ENTITY_TYPES, ReplicatedStore, get_store

maintenance_bp = Blueprint("maintenance", __name__, url_prefix="/api/maintenance")


@maintenance_bp.post("/wipe")
@require_tenant
@require_role(ROLE_OWNER)
def wipe():
    """Body must contain {"confirm": true}."""
    data = request.get_json() or {}
    if data.get("confirm") is not True:
        return error_response(ValidationError("Wipe requires confirm=true"))
    try:
        deleted = maintenance_service.wipe_all_data(get_store())
        return {"deleted": deleted}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to wipe data")
        return jsonify({"error": "Internal server error"}), 500


@maintenance_bp.post("/demo")
@require_tenant
@require_role(ROLE_OWNER)
def inject_demo():
    try:
        return maintenance_service.inject_demo_data(get_store()), 201
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to inject demo data")
        return jsonify({"error": "Internal server error"}), 500


@maintenance_bp.get("/reconcile")
@require_tenant
@require_role(ROLE_OWNER)
def reconcile():
    try:
        return reconciliation_service.reconcile(get_store()).to_dict()
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reconcile ledgers")
        return jsonify({"error": "Internal server error"}), 500


@maintenance_bp.post("/resume")
@require_tenant
@require_role(ROLE_OWNER)
def resume():
    """Complete half-applied commits, then report what drift remains."""
    try:
        store = get_store()
        resumed = reconciliation_service.resume_pending(store)
        report = reconciliation_service.reconcile(store)
        return {"resumed": resumed, "report": report.to_dict()}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resume pending facts")
        return jsonify({"error": "Internal server error"}), 500


@maintenance_bp.post("/sync")
@require_tenant
@require_role(ROLE_OWNER)
def sync():
    """Push queued replica writes, then optionally pull the remote snapshot ({"pull": true})."""
    store = get_store()
    if not isinstance(store, ReplicatedStore):
        return {"mode": "local-only", "pending": 0}
    data = request.get_json(silent=True) or {}
    try:
        remaining = store.flush_pending()
        if data.get("pull") is True and remaining == 0:
            store.pull(ENTITY_TYPES)
        return {"mode": "replicated", "pending": remaining}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to sync with remote replica")
        return jsonify({"error": "Internal server error"}), 500
