from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError

BEARER_PREFIX = "bearer "
TOKEN_ISSUER = "gameslot"
DEFAULT_TOKEN_LIFETIME = timedelta(minutes=30)


def create_access_token(
    *,
    user_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iss": TOKEN_ISSUER,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or DEFAULT_TOKEN_LIFETIME),
    }
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_access_token(token: str, *, secret: str, algorithms: Sequence[str]) -> int:
    """Return the user id carried in `sub`. Raises ValueError for any bad token."""
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=list(algorithms),
            issuer=TOKEN_ISSUER,
            options={"require": ["sub", "exp"]},
        )
    except InvalidTokenError as exc:
        raise ValueError("invalid token") from exc

    try:
        return int(claims["sub"])
    except (TypeError, ValueError) as exc:
        raise ValueError("token subject is not a user id") from exc


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        raise ValueError("bearer token required")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise ValueError("bearer token required")
    return token
