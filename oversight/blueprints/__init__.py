"""
Donor Oversight Platform
Blueprint registry and shared request helpers.
"""

from flask import request

from oversight.utils.helpers import client_ip


def page_args(default_limit=50, max_limit=500):
    """Read ``page`` / ``limit`` query params, falling back on bad input.

    Returns:
        (page, limit)
    """
    try:
        page = max(int(request.args.get("page", 1)), 1)
    except (ValueError, TypeError):
        page = 1
    try:
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    return page, limit


def json_body():
    """Request body as a dict, or None when it is missing or not a JSON object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def bool_arg(name):
    """Tri-state boolean query param: True, False, or None when absent."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes")


def request_meta():
    """(ip_address, user_agent) for session and audit records."""
    return client_ip(), request.headers.get("User-Agent", "")[:500]


def all_blueprints():
    from oversight.blueprints.activity_bp import activity_bp
    from oversight.blueprints.actual_bp import actual_bp
    from oversight.blueprints.approval_bp import approval_bp
    from oversight.blueprints.attachment_bp import attachment_bp
    from oversight.blueprints.audit_bp import audit_bp
    from oversight.blueprints.auth_bp import auth_bp
    from oversight.blueprints.comment_bp import comment_bp
    from oversight.blueprints.dashboard_bp import dashboard_bp
    from oversight.blueprints.export_bp import export_bp
    from oversight.blueprints.health_bp import health_bp
    from oversight.blueprints.import_bp import import_bp
    from oversight.blueprints.notification_bp import notification_bp
    from oversight.blueprints.objective_bp import objective_bp
    from oversight.blueprints.report_bp import report_bp
    from oversight.blueprints.settings_bp import settings_bp
    from oversight.blueprints.user_bp import user_bp

    return [
        auth_bp, user_bp, objective_bp, activity_bp, actual_bp, attachment_bp,
        approval_bp, comment_bp, notification_bp, settings_bp, audit_bp,
        dashboard_bp, export_bp, report_bp, import_bp, health_bp,
    ]
