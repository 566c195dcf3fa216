import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from task_manager.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from task_manager.errors import UnauthorizedError
from task_manager.models import User

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


@dataclass(frozen=True)
class Identity:
    """
    The caller as described by their token.

    These claims are not re-read from the database, so a username or email
    changed after login shows up here only once a new token is issued.
    """
    user_id: str
    username: str
    email: str


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": user.id,
        "username": user.username,
        "email": user.email,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> Identity:
    """
    Decodes and validates a bearer token.

    Raises UnauthorizedError when the token is malformed, signed with a
    different key, expired, or missing the subject claim.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        logger.warning("Rejected bearer token: %s", exc)
        raise UnauthorizedError("Token is invalid or expired.")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Token is invalid or expired.")
    return Identity(
        user_id=user_id,
        username=payload.get("username", ""),
        email=payload.get("email", ""),
    )


def get_current_identity(token: str = Depends(oauth2_scheme)) -> Identity:
    return verify_token(token)
