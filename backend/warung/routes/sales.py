# Overview: Flask API routes for checkout; parses input and returns JSON responses.

# backend/warung/routes/sales.py
"""
Sales API routes.

POST /api/sales/preview prices a cart with the same function the commit
uses, so the total shown at the counter is the total recorded.
POST /api/sales commits; clients should send a transaction_id so a retry
after a timeout cannot record the sale twice.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_tenant, error_response
from ..errors import WarungError, ValidationError
from ..models import CartItem, Transaction
from ..services import transaction_service
from ..storage import get_store, fetch_required, fetch_all


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_items(data: dict) -> tuple[CartItem, ...]:
    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")
    return tuple(CartItem.from_dict(i) for i in raw_items)


@sales_bp.post("/preview")
@require_tenant
def preview_sale_route():
    """Body: {"items": [...], "customer_id"?}. Nothing is written."""
    data = request.get_json() or {}
    try:
        priced = transaction_service.preview_sale(get_store(), _parse_items(data), data.get("customer_id") or None)
        return priced.to_dict()
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to preview sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("")
@require_tenant
def commit_sale_route():
    """
    Commit a completed sale.

    Body: {"items", "payment_method", "cash_paid"?, "customer_id"?, "note"?, "transaction_id"?}

    Returns 201 with the receipt, or 200 when transaction_id was already
    recorded (the stored sale is returned and its ledger effects completed).
    """
    try:
        sale_request = transaction_service.SaleRequest.from_dict(request.get_json() or {})
        receipt = transaction_service.commit_sale(get_store(), sale_request)
        return jsonify(receipt.to_dict()), 200 if receipt.replayed else 201
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_tenant
def list_sales_route():
    """Newest first. Query params: customer_id (optional), limit (optional)."""
    customer_id = request.args.get("customer_id")
    limit = request.args.get("limit", type=int)
    sales = fetch_all(get_store(), Transaction)
    if customer_id:
        sales = [t for t in sales if t.customer_id == customer_id]
    sales.sort(key=lambda t: (t.timestamp, t.id), reverse=True)
    if limit:
        sales = sales[:limit]
    return {"items": [t.to_dict() for t in sales], "count": len(sales)}


@sales_bp.get("/<transaction_id>")
@require_tenant
def get_sale_route(transaction_id: str):
    try:
        return {"transaction": fetch_required(get_store(), Transaction, transaction_id).to_dict()}
    except WarungError as e:
        return error_response(e)
