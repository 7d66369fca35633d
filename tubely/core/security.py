from datetime import datetime, timedelta, timezone
from typing import Mapping

from jose import JWTError, jwt

ALGORITHM = "HS256"
TOKEN_ISSUER = "tubely-access"


class AuthError(Exception):
    pass


def get_bearer_token(headers: Mapping[str, str]) -> str:
    """
    Pull the token out of an `Authorization: Bearer <token>` header.

    Raises:
        AuthError: If the header is missing or not a bearer credential
    """
    auth_header = headers.get("authorization")
    if not auth_header:
        raise AuthError("no auth header included in request")

    scheme, _, token = auth_header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise AuthError("malformed authorization header")

    return token


def validate_token(token: str, secret: str) -> str:
    """
    Verify signature, expiry and issuer of an access token.

    Returns:
        str: The user id carried in the `sub` claim

    Raises:
        AuthError: If the token cannot be trusted
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], issuer=TOKEN_ISSUER)
    except JWTError as e:
        raise AuthError(f"invalid token: {e}") from e

    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("token missing 'sub' claim")
    return user_id


def make_access_token(user_id: str, secret: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "iss": TOKEN_ISSUER,
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)
