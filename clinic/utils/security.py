"""Password hashing helpers."""

import hashlib
import hmac


def hash_password(password: str) -> str:
    """Return the hex SHA-256 digest of a password."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored digest in constant time."""
    return hmac.compare_digest(hash_password(password), password_hash)
