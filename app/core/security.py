from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.core.config import settings

ALGO = "HS256"


def create_access_token(subject: str, expires_minutes: int | None = None, **claims) -> str:
    """Bearer token naming the acting user; issued by the identity service in production."""
    minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    payload = {
        **claims,
        "sub": subject,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGO)


def token_subject(token: str) -> str:
    """User id carried by an access token. Raises JWTError when the token is unusable."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGO])
    if payload.get("type") != "access" or not payload.get("sub"):
        raise JWTError("not an access token")
    return str(payload["sub"])
