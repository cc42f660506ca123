"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in oversight/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from oversight.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

LOGIN_LIMIT = "10/minute"
WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

# Blueprints whose traffic is dominated by POST/PUT/DELETE
WRITE_BLUEPRINTS = (
    "users", "objectives", "activities", "actuals", "attachments",
    "approvals", "comments", "settings", "import",
)

# Dashboards, exports and feeds polled by the SPA
READ_BLUEPRINTS = ("dashboard", "export", "reports", "audit", "notifications")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Login:            10/minute  (credential stuffing)
        - Write endpoints:  60/minute
        - Read endpoints:   200/minute
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    login_view = app.view_functions.get("auth.login")
    if login_view:
        limiter.limit(LOGIN_LIMIT)(login_view)

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    for bp_name in READ_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — login: %s, write: %s, read: %s",
        LOGIN_LIMIT, WRITE_LIMIT, READ_LIMIT,
    )
