"""
User Service — CRUD operations, password management, preferences.

All writes are audited; password values never appear in audit rows.
"""

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, or_

from oversight.constants import USER_ROLES
from oversight.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from oversight.models import db
from oversight.models.audit import write_audit
from oversight.models.user import PREFERENCE_FIELDS, User
from oversight.services.jwt_service import revoke_all_user_sessions
from oversight.utils.crypto import hash_password, password_problems, verify_password
from oversight.utils.helpers import paginate

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("email", "full_name", "role", "is_active")


def normalize_email(email) -> str:
    if not email or not isinstance(email, str):
        raise ValidationError("Email is required", details={"email": "required"})
    try:
        valid = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)}) from e
    return valid.normalized.lower()


def _check_password(password):
    problems = password_problems(password or "")
    if problems:
        raise ValidationError(
            "Password must contain " + ", ".join(problems),
            details={"password": problems},
        )


def _check_role(role):
    if role not in USER_ROLES:
        raise ValidationError(
            f"Invalid role: {role}",
            details={"role": f"must be one of {', '.join(USER_ROLES)}"},
        )


# ═══════════════════════════════════════════════════════════════
# Lookups
# ═══════════════════════════════════════════════════════════════
def get_user_by_id(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def get_user_by_email(email: str) -> User | None:
    if not email:
        return None
    return User.query.filter(func.lower(User.email) == email.strip().lower()).first()


def authenticate_user(email: str, password: str) -> User | None:
    """Return the active user matching the credentials, else None."""
    user = get_user_by_email(email)
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def list_users(*, role=None, is_active=None, search=None, page=1, limit=50) -> dict:
    q = User.query
    if role:
        q = q.filter(User.role == role)
    if is_active is not None:
        q = q.filter(User.is_active.is_(is_active))
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(User.full_name.ilike(term), User.email.ilike(term)))
    result = paginate(q.order_by(User.full_name, User.id), page, limit)
    result["items"] = [u.to_dict(include_preferences=True) for u in result["items"]]
    return result


# ═══════════════════════════════════════════════════════════════
# User CRUD
# ═══════════════════════════════════════════════════════════════
def create_user(data: dict, *, audit=True) -> User:
    """Create a new user.  ``data`` carries email, password, full_name, role."""
    email = normalize_email(data.get("email"))
    full_name = (data.get("full_name") or "").strip()
    if not full_name:
        raise ValidationError("Full name is required", details={"full_name": "required"})
    role = data.get("role") or "ProjectManager"
    _check_role(role)
    _check_password(data.get("password"))

    if get_user_by_email(email):
        raise ConflictError(resource="User", field="email", value=email)

    user = User(
        email=email,
        password_hash=hash_password(data["password"]),
        full_name=full_name[:200],
        role=role,
        is_active=bool(data.get("is_active", True)),
    )
    for field in PREFERENCE_FIELDS:
        if field in data:
            setattr(user, field, bool(data[field]))
    db.session.add(user)
    db.session.flush()

    if audit:
        write_audit(action="Create", object_type="User", object_id=user.id,
                    new_values={"email": user.email, "full_name": user.full_name,
                                "role": user.role, "is_active": user.is_active})
    db.session.commit()
    logger.info("User created: %s (%s)", user.email, user.role, extra={"user_id": user.id})
    return user


def update_user(user_id: int, data: dict) -> User:
    user = get_user_by_id(user_id)
    previous, new = {}, {}

    if "email" in data:
        email = normalize_email(data["email"])
        other = get_user_by_email(email)
        if other and other.id != user.id:
            raise ConflictError(resource="User", field="email", value=email)
        data = {**data, "email": email}
    if "full_name" in data and not (data["full_name"] or "").strip():
        raise ValidationError("Full name is required", details={"full_name": "required"})
    if "role" in data:
        _check_role(data["role"])

    for field in _UPDATABLE_FIELDS + PREFERENCE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in PREFERENCE_FIELDS or field == "is_active":
            value = bool(value)
        elif field == "full_name":
            value = value.strip()[:200]
        if getattr(user, field) != value:
            previous[field] = getattr(user, field)
            new[field] = value
            setattr(user, field, value)

    if new:
        write_audit(action="Update", object_type="User", object_id=user.id,
                    previous_values=previous, new_values=new)
    db.session.commit()

    if new.get("is_active") is False:
        revoke_all_user_sessions(user.id)
    return user


def reset_password(user_id: int, new_password: str) -> User:
    """Admin reset — no current password required."""
    user = get_user_by_id(user_id)
    _check_password(new_password)
    user.password_hash = hash_password(new_password)
    write_audit(action="Update", object_type="User", object_id=user.id,
                comment="Password reset by administrator")
    db.session.commit()
    revoke_all_user_sessions(user.id)
    return user


def change_own_password(user: User, current_password: str, new_password: str) -> None:
    if not current_password or not new_password:
        raise ValidationError("Both current and new password are required")
    if not verify_password(current_password, user.password_hash):
        raise PermissionDeniedError("Current password is incorrect")
    _check_password(new_password)
    user.password_hash = hash_password(new_password)
    write_audit(action="Update", object_type="User", object_id=user.id,
                comment="Password changed")
    db.session.commit()


def update_preferences(user: User, prefs: dict) -> dict:
    unknown = sorted(set(prefs) - set(PREFERENCE_FIELDS))
    if unknown:
        raise ValidationError("Unknown preference", details={k: "unknown" for k in unknown})
    previous, new = {}, {}
    for field, value in prefs.items():
        value = bool(value)
        if getattr(user, field) != value:
            previous[field] = getattr(user, field)
            new[field] = value
            setattr(user, field, value)
    if new:
        write_audit(action="Update", object_type="User", object_id=user.id,
                    previous_values=previous, new_values=new,
                    comment="Notification preferences")
    db.session.commit()
    return user.preferences


def update_last_login(user: User) -> None:
    user.last_login_at = datetime.now(timezone.utc)
