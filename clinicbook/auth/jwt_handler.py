from datetime import datetime, timedelta, timezone

import jwt

from clinicbook.core import config

REQUIRED_CLAIMS = ["exp", "iat", "sub"]


def create_access_token(email: str, role: str | None = None, expires_minutes: int | None = None) -> str:
    """Issue a bearer token whose subject is the user's normalized email."""
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)

    payload = {"sub": email.strip().lower(), "iat": issued_at, "exp": issued_at + lifetime}
    if role:
        payload["role"] = role.strip().lower()

    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": REQUIRED_CLAIMS},
    )
