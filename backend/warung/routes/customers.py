# Overview: Flask API routes for customers, membership and debt payments.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_tenant, error_response, ROLE_OWNER
from ..errors import WarungError, NotFoundError
from ..models import Customer, DebtPayment
from ..services import customers_service, transaction_service
from ..storage import get_store, fetch_all
from ..validation import coerce_bool, coerce_money

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_tenant
def list_customers():
    members_only = request.args.get("members") in ("1", "true")
    customers = customers_service.list_customers(get_store(), members_only=members_only)
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.get("/debtors")
@require_tenant
def list_debtors():
    customers = customers_service.list_debtors(get_store())
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.get("/<customer_id>")
@require_tenant
def get_customer(customer_id: str):
    try:
        return {"customer": customers_service.get_customer(get_store(), customer_id).to_dict()}
    except WarungError as e:
        return error_response(e)


@customers_bp.post("")
@require_tenant
def create_customer():
    """Staff register customers at the counter, so this is not owner-only."""
    try:
        customer = customers_service.create_customer(get_store(), request.get_json() or {})
        return jsonify({"customer": customer.to_dict()}), 201
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<customer_id>")
@require_tenant
def update_customer(customer_id: str):
    try:
        customer = customers_service.update_customer(get_store(), customer_id, request.get_json() or {})
        return {"customer": customer.to_dict()}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<customer_id>/enroll")
@require_tenant
def enroll_member(customer_id: str):
    data = request.get_json(silent=True) or {}
    try:
        customer = customers_service.enroll_member(get_store(), customer_id, tier=data.get("tier"))
        return {"customer": customer.to_dict()}
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to enroll member")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<customer_id>")
@require_tenant
def delete_customer(customer_id: str):
    try:
        if not customers_service.delete_customer(get_store(), customer_id):
            return error_response(NotFoundError(Customer.ENTITY_TYPE, customer_id))
        return {"deleted": True}
    except WarungError as e:
        return error_response(e)


@customers_bp.get("/<customer_id>/payments")
@require_tenant
def list_debt_payments(customer_id: str):
    payments = [p for p in fetch_all(get_store(), DebtPayment) if p.customer_id == customer_id]
    payments.sort(key=lambda p: p.timestamp, reverse=True)
    return {"items": [p.to_dict() for p in payments], "count": len(payments)}


@customers_bp.post("/<customer_id>/payments")
@require_tenant
def record_debt_payment(customer_id: str):
    """
    Record a debt payment.

    Body: {"amount", "payment_id"?, "note"?, "allow_overpayment"?}
    allow_overpayment is honoured for owners only.

    Returns 201 for a new payment, 200 when payment_id was already recorded.
    """
    data = request.get_json() or {}
    try:
        allow_overpayment = coerce_bool(data.get("allow_overpayment", False), "allow_overpayment")
        receipt = transaction_service.commit_debt_payment(
            get_store(),
            customer_id,
            coerce_money(data.get("amount"), "amount"),
            payment_id=data.get("payment_id") or None,
            note=data.get("note"),
            allow_overpayment=allow_overpayment and g.role == ROLE_OWNER,
        )
        return jsonify(receipt.to_dict()), 200 if receipt.replayed else 201
    except WarungError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record debt payment")
        return jsonify({"error": "Internal server error"}), 500
