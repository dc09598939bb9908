"""
Crypto utilities — bcrypt password hashing.

Only bcrypt ($2a$/$2b$) hashes are accepted; anything else fails
verification.
"""

import bcrypt

BCRYPT_PREFIXES = ("$2b$", "$2a$")


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its bcrypt hash."""
    if not password_hash or not password_hash.startswith(BCRYPT_PREFIXES):
        return False
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        password_hash.encode("utf-8"),
    )
