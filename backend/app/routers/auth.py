"""
Authentication API endpoints.

Register, log in, and the user behind a bearer token.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from app.database import get_db
from app.models import User
from app.schemas.user import User as UserSchema, UserCreate
from app.services.auth import check_credentials, issue_token, register_user, user_for_token

router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# ============== Dependencies ==============

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """The token's user, or None for anonymous requests and bad tokens."""
    if credentials is None:
        return None
    return user_for_token(db, credentials.credentials)


async def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """An active user, else 401 (no or bad token) or 403 (disabled)."""
    user = user_for_token(db, credentials.credentials) if credentials else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token" if credentials else "Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled"
        )

    return user


# ============== Endpoints ==============

@router.post("/register", response_model=UserSchema, status_code=status.HTTP_201_CREATED)
def register(data: UserCreate, db: Session = Depends(get_db)):
    """
    Create an account.

    - **email**: Valid email address
    - **password**: At least 6 characters
    - **name**: Optional display name, defaults to the email's local part
    """
    return register_user(db, data)


@router.post("/login", response_model=Token)
def login(data: UserLogin, db: Session = Depends(get_db)):
    """Exchange email and password for a bearer token."""
    user = check_credentials(db, data.email, data.password)
    return Token(access_token=issue_token(user))


@router.get("/me", response_model=UserSchema)
def get_me(user: User = Depends(require_auth)):
    return user
