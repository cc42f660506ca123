"""
Dashboard blueprint — read-only portfolio metrics.

  GET /api/v1/dashboard/kpis
  GET /api/v1/dashboard/spend-by-year      (?start_year&end_year)
  GET /api/v1/dashboard/variance-alerts    (?limit=10)
  GET /api/v1/dashboard/gantt              (?year&objective_id)
  GET /api/v1/dashboard/spend-analysis
"""

from flask import Blueprint, jsonify, request

from oversight.middleware.role_required import require_auth
from oversight.services import dashboard_service

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")


@dashboard_bp.route("/kpis", methods=["GET"])
@require_auth
def kpis():
    return jsonify(dashboard_service.get_kpis())


@dashboard_bp.route("/spend-by-year", methods=["GET"])
@require_auth
def spend_by_year():
    return jsonify({"items": dashboard_service.get_spend_by_year(
        start_year=request.args.get("start_year", type=int),
        end_year=request.args.get("end_year", type=int),
    )})


@dashboard_bp.route("/variance-alerts", methods=["GET"])
@require_auth
def variance_alerts():
    return jsonify({"items": dashboard_service.get_variance_alerts(
        request.args.get("limit", 10, type=int),
    )})


@dashboard_bp.route("/gantt", methods=["GET"])
@require_auth
def gantt():
    return jsonify({"items": dashboard_service.get_gantt(
        year=request.args.get("year", type=int),
        objective_id=request.args.get("objective_id", type=int),
    )})


@dashboard_bp.route("/spend-analysis", methods=["GET"])
@require_auth
def spend_analysis():
    return jsonify(dashboard_service.get_spend_analysis())
