"""
Password hashing utilities using bcrypt
"""

import secrets
from typing import Optional

import bcrypt

# bcrypt only considers the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """One-way password digests for local accounts"""

    @staticmethod
    def hash_password(password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password as string
        """
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt)
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(password: str, hashed_password: Optional[str]) -> bool:
        """
        Verify a password against its hash.

        Accounts created through Google sign-in have no usable hash and never
        match.

        Args:
            password: Plain text password
            hashed_password: Previously hashed password

        Returns:
            True if password matches, False otherwise
        """
        if not hashed_password or not password:
            return False
        try:
            return bcrypt.checkpw(
                password.encode("utf-8")[:_BCRYPT_MAX_BYTES],
                hashed_password.encode("utf-8"),
            )
        except ValueError:
            return False

    @staticmethod
    def unusable_password_hash() -> str:
        """Hash of a random secret nobody knows, for federated accounts."""
        return PasswordHasher.hash_password(secrets.token_urlsafe(32))
