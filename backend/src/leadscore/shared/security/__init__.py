"""Security utilities: JWT issue and verification."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from leadscore.domain.exceptions import AuthenticationError

ADMIN_ROLES = ("admin", "super_admin")


# ── JWT ──────────────────────────────────────────────────────
def create_access_token(
    data: dict[str, Any],
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 30,
) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as exc:
        raise AuthenticationError(f"Invalid token: {exc}") from exc
    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token: not an access token")
    return payload  # type: ignore[no-any-return]

