# Overview: Flask API routes for sale transactions; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import LedgerError, ServerError
from ..schemas import SaleInput
from ..services import reporting_service, sales_service
from ..decorators import require_auth


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.post("")
@require_auth
def create_transaction_route():
    """
    Record a sale; the lot is named in the body.

    Request body: {"lot_id": 1, "sold_items": [{"color", "size", "quantity"}], ...}
    """
    try:
        data = SaleInput.from_payload(request.get_json(silent=True))
        transaction, lot = sales_service.record_sale(
            g.tenant_id,
            g.current_user.id,
            data.lot_id,
            data.items,
            customer_name=data.customer_name,
            invoice_number=data.invoice_number,
        )
        return jsonify({
            "transaction": reporting_service.get_transaction(g.tenant_id, transaction.id),
            "lot": lot.to_dict(),
        }), 201

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return ServerError().to_response()


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    List transactions, newest first.

    Query params: lot_id, search, page, per_page
    """
    try:
        result = reporting_service.list_transactions(
            g.tenant_id,
            lot_id=request.args.get("lot_id", type=int),
            search=request.args.get("search"),
            page=request.args.get("page", default=1, type=int),
            per_page=request.args.get("per_page", default=10, type=int),
        )
        return jsonify(result), 200

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return ServerError().to_response()


@transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int):
    try:
        transaction = reporting_service.get_transaction(g.tenant_id, transaction_id)
        return jsonify({"transaction": transaction}), 200

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to get transaction")
        return ServerError().to_response()
