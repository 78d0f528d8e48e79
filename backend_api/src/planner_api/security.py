"""Demo-grade local auth: salted password hashes and HMAC-signed bearer tokens.

Not a substitute for a real identity provider; enough to scope every request to
one user and to reject unauthenticated calls before any data is read.
"""
import base64
import hashlib
import hmac
import json
import logging
import secrets
import time
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlmodel import Session

from . import config
from .db import get_session
from .models import User

logger = logging.getLogger(__name__)

_PBKDF2_ITERATIONS = 120_000


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algo, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    if algo != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _unb64(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _sign(body: str) -> str:
    return hmac.new(config.SECRET_KEY.encode(), body.encode(), hashlib.sha256).hexdigest()


def create_token(user: User, now: Optional[float] = None) -> str:
    """Token of the form ``<base64 payload>.<hmac>`` valid for TOKEN_TTL_DAYS."""
    issued = int(now if now is not None else time.time())
    payload = {"id": user.id, "email": user.email, "exp": issued + config.TOKEN_TTL_DAYS * 86400}
    body = _b64(json.dumps(payload, separators=(",", ":")).encode())
    return f"{body}.{_sign(body)}"


def decode_token(token: str, now: Optional[float] = None) -> Optional[int]:
    """Return the user id of a valid, unexpired token, else None."""
    try:
        body, signature = token.split(".")
    except ValueError:
        return None
    if not hmac.compare_digest(_sign(body), signature):
        return None
    try:
        payload = json.loads(_unb64(body))
        user_id = int(payload["id"])
        expires = int(payload["exp"])
    except (ValueError, KeyError, TypeError):
        return None
    if expires < (now if now is not None else time.time()):
        return None
    return user_id


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    authorization: Optional[str] = Header(None),
    session: Session = Depends(get_session),
) -> User:
    """Resolve the bearer token to a User or reject with 401."""
    if not authorization:
        raise _unauthorized()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized()
    user_id = decode_token(token.strip())
    if user_id is None:
        logger.warning("Rejected request with invalid or expired token")
        raise _unauthorized()
    user = session.get(User, user_id)
    if not user:
        logger.warning("Rejected token for missing user %s", user_id)
        raise _unauthorized()
    return user
