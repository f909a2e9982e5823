from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from crudkit.core.config import settings

ALGORITHM = "HS256"


class MissingSecretError(RuntimeError):
    pass


class InvalidTokenError(Exception):
    pass


class TokenExpiredError(InvalidTokenError):
    pass


class Claims(BaseModel):
    sub: str
    iss: str
    iat: int
    nbf: int
    exp: int | None = None


def _secret(secret: str | None = None) -> str:
    value = secret if secret is not None else settings.JWT_SECRET
    if not value:
        raise MissingSecretError("JWT_SECRET is not configured")
    return value


def create_token(subject: str, ttl: timedelta | None = None, *, secret: str | None = None) -> str:
    if not subject:
        raise ValueError("subject is required")
    key = _secret(secret)
    now = int(datetime.now(timezone.utc).timestamp())
    data = {"sub": subject, "iss": settings.JWT_ISSUER, "iat": now, "nbf": now}
    if ttl is not None and ttl.total_seconds() > 0:
        data["exp"] = now + int(ttl.total_seconds())
    return jwt.encode(data, key, algorithm=ALGORITHM)


def decode_token(token: str, *, secret: str | None = None) -> Claims:
    if not token:
        raise InvalidTokenError("empty token")
    key = _secret(secret)
    try:
        payload = jwt.decode(token, key, algorithms=[ALGORITHM], issuer=settings.JWT_ISSUER)
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("token expired") from exc
    except JWTError as exc:
        raise InvalidTokenError(str(exc)) from exc
    return Claims(**payload)
