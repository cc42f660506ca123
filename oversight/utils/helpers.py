"""Shared utility functions for services and blueprints.

parse_date:        returns None on bad input
parse_date_input:  raises ValueError on bad input (service validation)
parse_money:       Decimal coercion with 2-dp rounding
paginate:          page/limit pagination envelope
client_ip:         X-Forwarded-For aware remote address
"""
import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from flask import has_request_context, request

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value):
    """Parse a date, raising ValueError on bad input.

    Same as parse_date() but raises instead of returning None, so the
    caller can attach the failure to a field.
    """
    if value is None or value == "":
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError("Invalid date format. Use YYYY-MM-DD.")
    return parsed


def parse_money(value) -> Decimal:
    """Coerce a JSON number/string to a 2-dp Decimal.

    Raises ValueError for non-numeric input.
    """
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError) as exc:
        raise ValueError("Amount must be a number") from exc
    if not amount.is_finite():
        raise ValueError("Amount must be a number")
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def paginate(query, page: int = 1, limit: int = 50, max_limit: int = 500) -> dict:
    """Apply page/limit pagination to a SQLAlchemy query.

    Returns:
        {"items": [...models...], "total": int, "page": int, "limit": int, "pages": int}
    """
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or 1), 1), max_limit)
    total = query.order_by(None).count()
    items = query.limit(limit).offset((page - 1) * limit).all()
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit if total else 0,
    }


def client_ip() -> str | None:
    """Return real client IP, honouring X-Forwarded-For from load balancers."""
    if not has_request_context():
        return None
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.remote_addr
