# Overview: Flask API routes for dashboard projections; read-only.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import LedgerError, ServerError, ValidationError
from ..services import reporting_service
from ..decorators import require_auth
from lotledger.time_utils import parse_iso_datetime


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
def stats_route():
    try:
        return jsonify(reporting_service.dashboard_stats(g.tenant_id)), 200
    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to load dashboard stats")
        return ServerError().to_response()


@dashboard_bp.get("/recent-transactions")
@require_auth
def recent_transactions_route():
    try:
        limit = request.args.get("limit", default=10, type=int)
        items = reporting_service.recent_transactions(g.tenant_id, limit=limit)
        return jsonify({"items": items, "count": len(items)}), 200
    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to load recent transactions")
        return ServerError().to_response()


@dashboard_bp.get("/chart-data")
@require_auth
def chart_data_route():
    """
    Chart series for the dashboard.

    Query params:
        days: window length in days (1-365, default 30)
        end: ISO-8601 end of the window (default now, UTC)
    """
    try:
        days = request.args.get("days", default=30, type=int)
        if days < 1 or days > 365:
            raise ValidationError("days must be between 1 and 365", details={"field": "days"})

        try:
            end = parse_iso_datetime(request.args.get("end"))
        except ValueError:
            raise ValidationError("end must be an ISO-8601 datetime", details={"field": "end"})

        return jsonify(reporting_service.chart_data(g.tenant_id, days=days, end=end)), 200
    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to load chart data")
        return ServerError().to_response()
