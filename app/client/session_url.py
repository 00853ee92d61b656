"""
Session URL Codec
-----------------
Encodes a session id and a route into a fixed 128 hex character token so
browser URLs do not show the underlying route or session id.

This is obfuscation, not encryption: the XOR key travels in the same token
as the ciphertext, so any holder of the token can recover the session id.
Never use it for access control or confidentiality.

Token layout (hex offsets):
    [0:64)    random prefix, its first 16 bytes are the XOR key
    [64:96)   session id bytes XOR key
    [96:100)  route code, zero padded
    [100:112) low 48 bits of the epoch milliseconds
    [112:128) random suffix
"""

import re
import secrets
import time
import uuid
from typing import Dict, Optional, Tuple

from loguru import logger

TOKEN_LENGTH = 128
DEFAULT_ROUTE = "/dashboard"
UNMAPPED_ROUTE_CODE = "00"

ROUTE_CODES: Dict[str, str] = {
    "/dashboard": "01",
    "/profile": "02",
    "/notifications": "03",
    "/help-desk": "04",
    "/change-password": "05",
    "/customer/apply-expert": "10",
    "/customer/application-status": "11",
    "/expert/dashboard": "20",
    "/expert/portfolio": "21",
    "/expert/certifications": "22",
    "/expert/tasks": "23",
    "/expert/earnings": "24",
    "/analyst/dashboard": "30",
    "/analyst/verification": "31",
    "/admin/dashboard": "40",
    "/admin/users": "41",
    "/admin/expert-review": "42",
    "/admin/task-assignment": "43",
    "/admin/reports": "44",
    "/superadmin/dashboard": "50",
    "/superadmin/admins": "51",
    "/superadmin/config": "52",
    "/superadmin/logs": "53",
}

ROUTES_BY_CODE: Dict[str, str] = {code: route for route, code in ROUTE_CODES.items()}

_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{128}$", re.IGNORECASE)


def route_code(route: str) -> str:
    """Two digit code of a route, ``"00"`` when the route is not mapped."""
    return ROUTE_CODES.get(route, UNMAPPED_ROUTE_CODE)


def is_route_mapped(route: str) -> bool:
    return route in ROUTE_CODES


def is_valid_token(token: Optional[str]) -> bool:
    """True iff ``token`` is exactly 128 hex characters (any case)."""
    return isinstance(token, str) and _TOKEN_PATTERN.match(token) is not None


def _xor(data: bytes, key: bytes) -> bytes:
    return bytes(byte ^ key[index % len(key)] for index, byte in enumerate(data))


def encode(session_id: str, route: str, now_ms: Optional[int] = None) -> str:
    """
    Build the opaque URL token for a session and route.

    Args:
        session_id: UUID formatted session id (36 characters)
        route: Frontend path; unmapped paths encode as route code "00"
        now_ms: Epoch milliseconds, defaults to the current time

    Returns:
        str: 128 lowercase hex characters

    Raises:
        ValueError: If session_id is not a UUID
    """
    session_bytes = uuid.UUID(session_id).bytes
    prefix = secrets.token_hex(32)
    key = bytes.fromhex(prefix[:32])
    ciphertext = _xor(session_bytes, key).hex()

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    timestamp = format(now_ms & 0xFFFFFFFFFFFF, "012x")
    suffix = secrets.token_hex(8)

    token = prefix + ciphertext + route_code(route).zfill(4) + timestamp + suffix
    return token[:TOKEN_LENGTH].lower()


def decode(token: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Recover ``(session_id, route)`` from a token.

    Malformed tokens yield ``(None, None)``; decoding never raises. Unknown
    route codes resolve to the dashboard.
    """
    if not is_valid_token(token):
        return None, None
    try:
        token = token.lower()
        key = bytes.fromhex(token[:32])
        session_bytes = _xor(bytes.fromhex(token[64:96]), key)
        session_id = str(uuid.UUID(bytes=session_bytes))
        route = ROUTES_BY_CODE.get(token[96:100][-2:], DEFAULT_ROUTE)
        return session_id, route
    except ValueError as e:
        logger.debug(f"Failed to decode session token: {e}")
        return None, None
