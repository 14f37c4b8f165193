"""HS256 bearer tokens as issued by the auth collaborator.

The drive service never logs users in; it only verifies tokens signed with the
shared secret and reads the ``sub`` claim as the user id. ``create_token``
exists for local tooling and tests.
"""

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

ISSUER = "studydrive"


@dataclass(frozen=True)
class TokenPayload:
    sub: str
    exp: datetime


def create_token(user_id: str, secret: str, expires_hours: int = 24) -> str:
    """Sign a token for *user_id* that expires after *expires_hours*."""
    now = int(time.time())
    claims = {"sub": user_id, "iat": now, "exp": now + expires_hours * 3600, "iss": ISSUER}
    header = _encode_segment({"alg": "HS256", "typ": "JWT"})
    body = _encode_segment(claims)
    signature = _sign(header + b"." + body, secret)
    return b".".join([header, body, _b64encode(signature)]).decode()


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    """Verify signature and expiry. Returns ``None`` for any invalid token."""
    if algorithm != "HS256":
        return None
    try:
        header, body, signature = token.encode().split(b".")
    except ValueError:
        return None

    try:
        if not hmac.compare_digest(_sign(header + b"." + body, secret), _b64decode(signature)):
            return None
        claims = json.loads(_b64decode(body))
    except (ValueError, TypeError):
        return None

    exp = claims.get("exp")
    sub = claims.get("sub")
    if not isinstance(exp, (int, float)) or not sub or time.time() > exp:
        return None

    return TokenPayload(sub=str(sub), exp=datetime.fromtimestamp(exp, tz=timezone.utc))


def _sign(signing_input: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()


def _encode_segment(data: dict) -> bytes:
    return _b64encode(json.dumps(data, separators=(",", ":")).encode())


def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    return base64.urlsafe_b64decode(data + b"=" * (-len(data) % 4))
