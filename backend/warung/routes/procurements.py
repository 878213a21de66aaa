# Overview: Flask API routes for supplier restocks (procurements).

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_tenant, require_role, error_response, ROLE_OWNER
from ..errors import WarungError, ValidationError
from ..models import Procurement, ProcurementItem
from ..services import transaction_service
from ..storage import get_store, fetch_all, fetch_required

procurements_bp = Blueprint("procurements", __name__, url_prefix="/api/procurements")


@procurements_bp.get("")
@require_tenant
@require_role(ROLE_OWNER)
def list_procurements():
    supplier_id = request.args.get("supplier_id")
    procurements = fetch_all(get_store(), Procurement)
    if supplier_id:
        procurements = [p for p in procurements if p.supplier_id == supplier_id]
    procurements.sort(key=lambda p: (p.timestamp, p.id), reverse=True)
    return {"items": [p.to_dict() for p in procurements], "count": len(procurements)}


@procurements_bp.get("/<procurement_id>")
@require_tenant
@require_role(ROLE_OWNER)
def get_procurement(procurement_id: str):
    try:
        return {"procurement": fetch_required(get_store(), Procurement, procurement_id).to_dict()}
    except WarungError as e:
        return error_response(e)


@procurements_bp.post("")
@require_tenant
@require_role(ROLE_OWNER)
def commit_procurement():
    """
    Record a restock and add it to stock.

    Body: {"supplier_id", "items": [{"product_id", "quantity", "buy_price"}], "procurement_id"?, "note"?}
    quantity is in the product's base unit.
    """
    data = request.get_json() or {}
    try:
        raw_items = data.get("items")
        if not isinstance(raw_items, list):
            raise ValidationError("items must be a list")
        if not data.get("supplier_id"):
            raise ValidationError("supplier_id is required")
        receipt = transaction_service.commit_procurement(
            get_store(),
            data["supplier_id"],
            [ProcurementItem.from_dict(i) for i in raw_items],
            procurement_id=data.get("procurement_id") or None,
            note=data.get("note"),
        )
        return jsonify(receipt.to_dict()), 200 if receipt.replayed else 201
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to commit procurement")
        return jsonify({"error": "Internal server error"}), 500
