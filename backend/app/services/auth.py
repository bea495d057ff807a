"""
Authentication service - password hashing, access tokens and account lookup.

Access tokens carry the user id as ``sub`` and the account email as
``email``; the summarization workflow relies on both to find (or
provision) the caller's record.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.user import User
from app.repositories.users import SqlUserStore
from app.schemas.auth import TokenData

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a JWT with the given claims.

    Args:
        data: Claims to encode ("sub" and "email")
        expires_delta: Lifetime; defaults to JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT string
    """
    lifetime = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_user_token(user: User) -> str:
    """Create an access token bound to a user's id and email."""
    return create_access_token(data={"sub": str(user.id), "email": user.email})


def decode_access_token(token: str) -> Optional[TokenData]:
    """
    Verify a JWT and extract the caller's identity.

    Returns:
        TokenData, or None if the token is malformed, forged, expired or
        has no subject
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None

    if payload.get("sub") is None:
        return None
    return TokenData(user_id=payload["sub"], email=payload.get("email"))


def get_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
    return SqlUserStore(db).find_by_id(user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return SqlUserStore(db).find_by_email(email)


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Check an email and password pair.

    Accounts provisioned from a token alone have no password and can not
    log in with one.
    """
    user = get_user_by_email(db, email)
    if user is None or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_user(
    db: Session,
    email: str,
    password: str,
    display_name: Optional[str] = None,
) -> User:
    """
    Register an account together with its starting credit allowance.

    Args:
        db: Database session
        email: Unique email address
        password: Plain text password (stored as a bcrypt hash)
        display_name: Defaults to the email's local part

    Returns:
        Created User
    """
    email = email.strip().lower()
    return SqlUserStore(db).create(
        User(
            email=email,
            password_hash=get_password_hash(password),
            display_name=display_name or email.split("@")[0],
            credits=settings.DEFAULT_USER_CREDITS,
        )
    )
