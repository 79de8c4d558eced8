# Overview: Flask API routes for lot operations; parses input and returns JSON responses.

# backend/lotledger/routes/lots.py
"""
Lot API routes

MULTI-TENANT: every route runs under @require_auth and passes g.tenant_id to
the services. A lot of another tenant answers 404, exactly like a missing lot.

Money is integer cents on the wire (purchase_cost_cents, sell_cost_cents).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import LedgerError, ServerError
from ..schemas import LotInput, SaleInput
from ..services import lot_service, reporting_service, sales_service
from ..decorators import require_auth


lots_bp = Blueprint("lots", __name__, url_prefix="/api/lots")


@lots_bp.get("")
@require_auth
def list_lots_route():
    """
    List lots, newest first.

    Query params: search (lot number substring), page, per_page
    """
    try:
        result = reporting_service.list_lots(
            g.tenant_id,
            search=request.args.get("search"),
            page=request.args.get("page", default=1, type=int),
            per_page=request.args.get("per_page", default=10, type=int),
        )
        return jsonify(result), 200

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list lots")
        return ServerError().to_response()


@lots_bp.post("")
@require_auth
def create_lot_route():
    """
    Create a lot.

    Request body:
    {
        "lot_number": "LOT-0001",
        "items": [
            {"color": "Red", "sizes": [
                {"size": "M", "quantity": 10, "purchase_cost_cents": 500, "sell_cost_cents": 800}
            ]}
        ]
    }
    """
    try:
        data = LotInput.from_payload(request.get_json(silent=True))
        lot = lot_service.create_lot(g.tenant_id, g.current_user.id, data.lot_number, data.items)
        return jsonify({"lot": lot.to_dict()}), 201

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create lot")
        return ServerError().to_response()


@lots_bp.post("/generate-number")
@require_auth
def generate_lot_number_route():
    """Suggest the next lot number. Nothing is reserved."""
    try:
        lot_number = lot_service.generate_lot_number(g.tenant_id)
        return jsonify({"lot_number": lot_number}), 200

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to generate lot number")
        return ServerError().to_response()


@lots_bp.get("/<int:lot_id>")
@require_auth
def get_lot_route(lot_id: int):
    try:
        lot = lot_service.get_lot(g.tenant_id, lot_id)
        return jsonify({"lot": lot.to_dict()}), 200

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to get lot")
        return ServerError().to_response()


@lots_bp.put("/<int:lot_id>")
@require_auth
def replace_lot_route(lot_id: int):
    """
    Replace a lot's number and items.

    WARNING: every remaining quantity is reset to the new full quantity.
    """
    try:
        data = LotInput.from_payload(request.get_json(silent=True))
        lot = lot_service.replace_lot(g.tenant_id, lot_id, data.lot_number, data.items)
        return jsonify({"lot": lot.to_dict()}), 200

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to replace lot")
        return ServerError().to_response()


@lots_bp.delete("/<int:lot_id>")
@require_auth
def delete_lot_route(lot_id: int):
    """Delete a lot (admin or creator). Its transactions remain readable."""
    try:
        lot_service.delete_lot(g.tenant_id, g.current_user.id, g.role, lot_id)
        return jsonify({"message": "Lot deleted successfully"}), 200

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to delete lot")
        return ServerError().to_response()


@lots_bp.post("/<int:lot_id>/sell")
@require_auth
def sell_route(lot_id: int):
    """
    Record a sale against this lot.

    Request body:
    {
        "items": [{"color": "Red", "size": "M", "quantity": 3}],
        "customer_name": "...",     // optional
        "invoice_number": "..."     // optional
    }

    Prices come from the lot; any client-sent price is ignored.
    """
    try:
        data = SaleInput.from_payload(request.get_json(silent=True), lot_id=lot_id)
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
