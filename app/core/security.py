"""Password hashing and random token helpers."""

import base64
import hashlib
import secrets

import bcrypt

from app.core.config import settings


def _pre_hash(password: str) -> bytes:
    """Collapse any-length password to 44 bytes, below bcrypt's 72-byte limit."""
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str) -> str:
    """Hash a password with a fresh salt at the configured bcrypt cost."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_pre_hash(password), salt).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored hash (constant time)."""
    try:
        return bcrypt.checkpw(_pre_hash(password), password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash
        return False


def generate_hex_token(nbytes: int = 32) -> str:
    """Generate a high-entropy hex token (64 chars for the default 32 bytes)."""
    return secrets.token_hex(nbytes)
