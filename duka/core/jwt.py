from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from duka.core.config import settings

TOKEN_TYPE = "access"


def create_access_token(user_id: int, role: str, expires_delta: timedelta | None = None) -> str:
    """Bearer token for a staff user. Tokens are minted by the seed script."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    claims = {
        "sub": str(user_id),
        "role": role,
        "type": TOKEN_TYPE,
        "iat": now,
        "exp": expire,
    }

    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> int | None:
    """Return the user id carried by a valid access token, else None."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None

    if payload.get("type") != TOKEN_TYPE:
        return None

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None
