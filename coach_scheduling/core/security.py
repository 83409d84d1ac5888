from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from coach_scheduling.core.config import settings


def create_access_token(
    subject: str,
    name: str | None = None,
    email: str | None = None,
    expires_minutes: int = 15,
) -> str:
    """Mint a token the same shape the auth service issues (used by dev tooling and tests)."""
    expire = datetime.now(UTC) + timedelta(minutes=expires_minutes)
    to_encode = {"sub": str(subject), "exp": expire, "type": "access"}
    if name:
        to_encode["name"] = name
    if email:
        to_encode["email"] = email
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict | None:
    """Returns the claims of a valid access token, or None."""
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.algorithm]
        )
        if payload.get("type") != "access":
            return None
        if not payload.get("sub"):
            return None
        return payload
    except JWTError:
        return None
