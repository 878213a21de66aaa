# Overview: Flask API routes for products; parses input and returns JSON responses.

# backend/warung/routes/products.py
"""
Product management routes.

TENANT-SCOPED: every route works on the store of g.warung_id (set by
@require_tenant).

- Read operations are open to owner and staff (the checkout needs them)
- Write operations and stock corrections are owner-only
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_tenant, require_role, error_response, ROLE_OWNER
from ..errors import WarungError, NotFoundError
from ..models import Product
from ..services import products_service
from ..storage import get_store

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_tenant
def list_products():
    """
    Query params:
    - category: str (optional)
    - low_stock: "1" to return only products at or below their alert level
    """
    try:
        store = get_store()
        if request.args.get("low_stock") in ("1", "true"):
            products = products_service.low_stock_products(store)
        else:
            products = products_service.list_products(store, category=request.args.get("category"))
        return {"items": [p.to_dict() for p in products], "count": len(products)}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/sku/<sku>")
@require_tenant
def find_by_sku(sku: str):
    """Barcode scan lookup."""
    product = products_service.find_by_sku(get_store(), sku)
    if product is None:
        return error_response(NotFoundError(Product.ENTITY_TYPE, sku))
    return {"product": product.to_dict()}


@products_bp.get("/<product_id>")
@require_tenant
def get_product(product_id: str):
    try:
        return {"product": products_service.get_product(get_store(), product_id).to_dict()}
    except WarungError as e:
        return error_response(e)


@products_bp.post("")
@require_tenant
@require_role(ROLE_OWNER)
def create_product():
    try:
        product = products_service.create_product(get_store(), request.get_json() or {})
        return jsonify({"product": product.to_dict()}), 201
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<product_id>")
@require_tenant
@require_role(ROLE_OWNER)
def update_product(product_id: str):
    try:
        product = products_service.update_product(get_store(), product_id, request.get_json() or {})
        return {"product": product.to_dict()}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<product_id>/stock")
@require_tenant
@require_role(ROLE_OWNER)
def set_stock(product_id: str):
    """Stock take correction. Body: {"stock": int, "reason": str?}"""
    data = request.get_json() or {}
    try:
        product = products_service.set_stock(get_store(), product_id, data.get("stock"), reason=data.get("reason"))
        return {"product": product.to_dict()}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to correct stock")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<product_id>")
@require_tenant
@require_role(ROLE_OWNER)
def delete_product(product_id: str):
    try:
        if not products_service.delete_product(get_store(), product_id):
            return error_response(NotFoundError(Product.ENTITY_TYPE, product_id))
        return {"deleted": True}
    except WarungError as e:
        return error_response(e)
