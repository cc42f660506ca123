"""
Crypto utilities — bcrypt password hashing, password policy & Fernet encryption.

Password hashing:
  bcrypt ($2b$), 12 rounds.

Symmetric encryption (secret settings such as ``smtpPassword``):
  `encrypt_secret` / `decrypt_secret` use Fernet (AES-128-CBC + HMAC-SHA256)
  keyed by the ENCRYPTION_KEY environment variable.

  WARNING: ENCRYPTION_KEY must be a 32-byte URL-safe base64 key generated via:
    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
  Store it in the environment — never hard-code or commit it.
"""

import os
import re

import bcrypt
from cryptography.fernet import Fernet

ENCRYPTED_PREFIX = "fernet:"


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its bcrypt hash."""
    if not password_hash or not plain_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        return False


def password_problems(password: str) -> list[str]:
    """Return the list of unmet password rules (empty when strong enough)."""
    problems = []
    if not password or len(password) < 8:
        problems.append("at least 8 characters")
    if not re.search(r"[A-Z]", password or ""):
        problems.append("an uppercase letter")
    if not re.search(r"[a-z]", password or ""):
        problems.append("a lowercase letter")
    if not re.search(r"\d", password or ""):
        problems.append("a digit")
    return problems


# ── Fernet symmetric encryption (secret settings) ────────────────────────────


def encryption_available() -> bool:
    return bool(os.getenv("ENCRYPTION_KEY"))


def _get_fernet() -> Fernet:
    """Return a Fernet instance keyed by the ENCRYPTION_KEY env var.

    Raises RuntimeError if ENCRYPTION_KEY is not set.
    """
    raw_key = os.getenv("ENCRYPTION_KEY")
    if not raw_key:
        raise RuntimeError(
            "ENCRYPTION_KEY environment variable is not set. "
            "Generate one with: python -c \""
            "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
        )
    return Fernet(raw_key.encode() if isinstance(raw_key, str) else raw_key)


def encrypt_secret(plaintext: str) -> str:
    """Encrypt a plaintext secret and return a prefixed URL-safe token.

    The ``fernet:`` prefix lets readers tell encrypted values from legacy
    plaintext rows.

    Raises:
        RuntimeError: If ENCRYPTION_KEY is not set.
    """
    token = _get_fernet().encrypt(plaintext.encode("utf-8")).decode("utf-8")
    return ENCRYPTED_PREFIX + token


def decrypt_secret(ciphertext: str) -> str:
    """Decrypt a value produced by encrypt_secret(); plaintext passes through.

    Raises:
        RuntimeError: If ENCRYPTION_KEY is not set.
        cryptography.fernet.InvalidToken: If ciphertext is tampered or
            encrypted with a different key.
    """
    if not ciphertext or not ciphertext.startswith(ENCRYPTED_PREFIX):
        return ciphertext
    token = ciphertext[len(ENCRYPTED_PREFIX):]
    return _get_fernet().decrypt(token.encode("utf-8")).decode("utf-8")
