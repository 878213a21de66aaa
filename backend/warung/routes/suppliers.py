# Overview: Flask API routes for suppliers (owner-only management).

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_tenant, require_role, error_response, ROLE_OWNER
from ..errors import WarungError, NotFoundError
from ..models import Supplier
from ..services import supplier_service
from ..storage import get_store

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_tenant
def list_suppliers():
    suppliers = supplier_service.list_suppliers(get_store())
    return {"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}


@suppliers_bp.get("/<supplier_id>")
@require_tenant
def get_supplier(supplier_id: str):
    """Supplier with product count and total procurement spend."""
    try:
        return supplier_service.supplier_stats(get_store(), supplier_id)
    except WarungError as e:
        return error_response(e)


@suppliers_bp.post("")
@require_tenant
@require_role(ROLE_OWNER)
def create_supplier():
    try:
        supplier = supplier_service.create_supplier(get_store(), request.get_json() or {})
        return jsonify({"supplier": supplier.to_dict()}), 201
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.put("/<supplier_id>")
@require_tenant
@require_role(ROLE_OWNER)
def update_supplier(supplier_id: str):
    try:
        supplier = supplier_service.update_supplier(get_store(), supplier_id, request.get_json() or {})
        return {"supplier": supplier.to_dict()}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<supplier_id>")
@require_tenant
@require_role(ROLE_OWNER)
def delete_supplier(supplier_id: str):
    try:
        if not supplier_service.delete_supplier(get_store(), supplier_id):
            return error_response(NotFoundError(Supplier.ENTITY_TYPE, supplier_id))
        return {"deleted": True}
    except WarungError as e:
        return error_response(e)
