import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, or_

from task_manager.auth import create_access_token
from task_manager.errors import ConflictError, NotFoundError, UnauthorizedError
from task_manager.models import User
from task_manager.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


@dataclass
class AuthResult:
    user: User
    token: str


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def register(db: Session, username: str, email: str, password: str) -> AuthResult:
    """
    Creates a user and issues a token for it.

    Raises ConflictError if the username or the (case-insensitive) email is
    already taken.
    """
    username = username.strip()
    email = _normalize_email(email)

    existing = db.exec(select(User).where(or_(User.email == email, User.username == username))).first()
    if existing:
        field = "Email" if existing.email == email else "Username"
        logger.info("Registration rejected, %s already in use", field.lower())
        raise ConflictError(f"{field} is already in use")

    db_user = User(
        username=username,
        email=email,
        hashed_password=get_password_hash(password),
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration
        db.rollback()
        raise ConflictError("Username or email is already in use")
    db.refresh(db_user)
    logger.info("User registered: %s (%s)", db_user.username, db_user.id)

    return AuthResult(user=db_user, token=create_access_token(db_user))


def login(db: Session, email: str, password: str) -> AuthResult:
    """
    Authenticates by email and password.

    Unknown email and wrong password fail the same way so callers cannot
    probe which accounts exist.
    """
    user = db.exec(select(User).where(User.email == _normalize_email(email))).first()
    if not user or not verify_password(password, user.hashed_password):
        logger.warning("Failed login attempt")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    logger.info("User logged in: %s", user.id)
    return AuthResult(user=user, token=create_access_token(user))


def get_profile(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def update_profile(
    db: Session,
    user_id: str,
    username: Optional[str] = None,
    avatar: Optional[str] = None,
) -> User:
    """
    Changes the username and/or avatar. A blank username is ignored; an
    empty avatar string clears the avatar.
    """
    username = username.strip() if username else None
    if username:
        taken = db.exec(select(User).where(User.username == username, User.id != user_id)).first()
        if taken:
            raise ConflictError("Username is already in use")

    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    if username:
        user.username = username
    if avatar is not None:
        user.avatar = avatar

    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Username is already in use")
    db.refresh(user)
    logger.info("Profile updated: %s", user.id)
    return user
