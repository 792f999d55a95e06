"""
Authentication Service

Accounts and bearer tokens for the catalog editors and reviewers.

- Passwords are stored as passlib hashes, never in clear
- A token carries the user id as its subject and expires after
  `jwt_expire_minutes`
- Any token that fails to decode, has expired or names a missing user
  resolves to no user at all
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models import User
from app.schemas.user import UserCreate

MIN_PASSWORD_LENGTH = 6

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def issue_token(user: User, lifetime: Optional[timedelta] = None) -> str:
    """Signed bearer token for user."""
    settings = get_settings()
    lifetime = lifetime if lifetime is not None else timedelta(minutes=settings.jwt_expire_minutes)
    claims = {
        "sub": str(user.id),  # JWT subjects are strings
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def user_for_token(db: Session, token: str) -> Optional[User]:
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        user_id = int(claims["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        return None
    return db.get(User, user_id)


def register_user(db: Session, data: UserCreate) -> User:
    """
    Create an account.

    Raises:
        HTTPException: 400 if the password is too short or the email is taken
    """
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = User(
        email=data.email,
        hashed_password=pwd_context.hash(data.password),
        name=data.name or data.email.split("@")[0],
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def check_credentials(db: Session, email: str, password: str) -> User:
    """
    The active user owning email and password.

    Raises:
        HTTPException: 401 on a wrong email or password, 403 if disabled
    """
    user = db.query(User).filter(User.email == email).first()
    if user is None or not user.hashed_password or not pwd_context.verify(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled"
        )

    return user
