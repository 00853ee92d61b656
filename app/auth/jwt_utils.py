"""
JWT Utilities
-------------
Core JWT operations for minting and validating bearer credentials and the
short-lived document stream tokens.

Validation is purely cryptographic (no database lookups). Any failure,
whether a bad signature, expiry, malformed claims or a wrong token type,
collapses into the same ``Unauthenticated("Invalid or expired token")`` so
callers never learn which check failed.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from jose import JWTError, jwt
from loguru import logger
from pydantic import ValidationError

from app.auth.models import AuthTokenPayload
from app.core.config_manager import settings
from app.core.exceptions import Unauthenticated

ACCESS_TOKEN_TYPE = "access"
DOCUMENT_TOKEN_TYPE = "document"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _encode(claims: Dict[str, Any]) -> str:
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    user: Mapping[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a bearer credential for a user row.

    Args:
        user: Mapping with id, email, name, role and org_id
        expires_delta: Optional lifetime override (default 7 days)

    Returns:
        Signed JWT string
    """
    issued_at = _now()
    expire = issued_at + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {
        "sub": str(user["id"]),
        "user_id": str(user["id"]),
        "email": user["email"],
        "name": user.get("name") or "",
        "role": str(user["role"]).upper(),
        "org_id": user.get("org_id") or settings.default_org_id,
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
        "type": ACCESS_TOKEN_TYPE,
    }
    token = _encode(claims)
    logger.debug(f"Access token created for user {claims['user_id']} ({claims['role']})")
    return token


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> AuthTokenPayload:
    """
    Decode and validate a bearer credential.

    Raises:
        Unauthenticated: For every kind of failure
    """
    try:
        claims = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
        if claims.get("type") != expected_type:
            raise ValueError("token type mismatch")
        return AuthTokenPayload(
            user_id=claims.get("user_id") or claims["sub"],
            email=claims["email"],
            name=claims.get("name", ""),
            role=str(claims["role"]).upper(),
            org_id=claims["org_id"],
            exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            type=claims["type"],
        )
    except (JWTError, KeyError, ValueError, TypeError, ValidationError) as e:
        logger.debug(f"Credential rejected: {type(e).__name__}")
        raise Unauthenticated()


def create_document_token(document_id: str, object_key: str) -> str:
    """Signed, short-lived token authorizing one document stream."""
    issued_at = _now()
    claims = {
        "doc_id": document_id,
        "key": object_key,
        "iat": int(issued_at.timestamp()),
        "exp": int(
            (issued_at + timedelta(seconds=settings.document_url_ttl_seconds)).timestamp()
        ),
        "type": DOCUMENT_TOKEN_TYPE,
    }
    return _encode(claims)


def decode_document_token(token: str, document_id: str) -> str:
    """
    Validate a document stream token.

    Returns:
        The object key the token grants access to

    Raises:
        Unauthenticated: If the token is invalid, expired or for another document
    """
    try:
        claims = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise Unauthenticated("Invalid or expired document link")
    if claims.get("type") != DOCUMENT_TOKEN_TYPE or claims.get("doc_id") != document_id:
        raise Unauthenticated("Invalid or expired document link")
    return claims["key"]
