"""
Auth Service — login, refresh-token rotation and logout.

Login writes a ``Session/Create`` audit row, logout a ``Session/Delete``.
Every failure path raises AuthenticationError (HTTP 401).
"""

import logging

import jwt as pyjwt

from oversight.core.exceptions import AuthenticationError
from oversight.models import db
from oversight.models.audit import write_audit
from oversight.models.user import Session, User
from oversight.services.jwt_service import (
    create_session,
    decode_refresh_token,
    generate_token_pair,
    get_active_session_by_token,
    hash_token,
    revoke_session,
    rotate_session,
)
from oversight.services.user_service import authenticate_user, update_last_login

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def _token_response(tokens: dict) -> dict:
    return {
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
        "token_type": tokens["token_type"],
        "expires_in": tokens["expires_in"],
    }


def login(email: str, password: str, ip_address=None, user_agent=None) -> dict:
    user = authenticate_user(email, password)
    if user is None:
        logger.warning("Failed login for %s", email, extra={"remote_addr": ip_address})
        raise AuthenticationError(INVALID_CREDENTIALS)

    tokens = generate_token_pair(user)
    session = create_session(user.id, tokens["token_hash"], ip_address, user_agent,
                             tokens["expires_at"])
    update_last_login(user)
    write_audit(action="Create", object_type="Session", object_id=session.id,
                actor_id=user.id, actor_role=user.role, ip_address=ip_address,
                comment="User logged in")
    db.session.commit()
    logger.info("User logged in: %s", user.email, extra={"user_id": user.id})

    return {**_token_response(tokens), "user": user.to_dict(include_preferences=True)}


def refresh(refresh_token: str, ip_address=None, user_agent=None) -> dict:
    try:
        payload = decode_refresh_token(refresh_token)
        user_id = int(payload["sub"])
    except (pyjwt.InvalidTokenError, KeyError, ValueError) as exc:
        raise AuthenticationError("Invalid or expired refresh token") from exc

    session = get_active_session_by_token(user_id, hash_token(refresh_token))
    if session is None:
        raise AuthenticationError("Session not found or revoked")
    if session.is_expired:
        revoke_session(session)
        raise AuthenticationError("Session expired")

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        revoke_session(session)
        raise AuthenticationError("User inactive or not found")

    tokens = generate_token_pair(user)
    rotate_session(session, tokens["token_hash"], tokens["expires_at"], ip_address, user_agent)
    return _token_response(tokens)


def logout(refresh_token: str | None, user: User) -> None:
    """Revoke the given refresh-token session, or every session of *user*."""
    q = Session.query.filter_by(user_id=user.id, is_active=True)
    if refresh_token:
        q = q.filter_by(token_hash=hash_token(refresh_token))
    sessions = q.all()
    for session in sessions:
        session.is_active = False
        write_audit(action="Delete", object_type="Session", object_id=session.id,
                    comment="User logged out")
    db.session.commit()
