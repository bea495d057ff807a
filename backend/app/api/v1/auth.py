"""
Authentication API endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.auth import Token, UserLogin, UserOut, UserRegister, UserWithToken
from app.services.audit import AuditAction, TargetType, get_client_info, log_action
from app.services.auth import (
    authenticate_user,
    create_user,
    create_user_token,
    get_user_by_email,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _audit(
    db: Session,
    request: Request,
    action: str,
    user: Optional[User] = None,
    details: Optional[dict] = None,
) -> None:
    ip_address, user_agent = get_client_info(request)
    log_action(
        db=db,
        action=action,
        user_id=user.id if user else None,
        target_type=TargetType.USER,
        target_id=str(user.id) if user else None,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
    )


def _session_for(user: User) -> UserWithToken:
    return UserWithToken(
        user=UserOut(
            id=str(user.id),
            email=user.email,
            display_name=user.display_name,
            credits=user.credits,
        ),
        token=Token(
            access_token=create_user_token(user),
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        ),
    )


@router.post("/register", response_model=UserWithToken, status_code=status.HTTP_201_CREATED)
def register(data: UserRegister, request: Request, db: Session = Depends(get_db)):
    """
    Create an account and sign it in.

    - **email**: Unique email address
    - **password**: 8+ characters with uppercase, lowercase and a digit
    - **display_name**: Optional display name

    The account starts with the default credit allowance.
    """
    if get_user_by_email(db, data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists",
        )

    user = create_user(
        db=db,
        email=data.email,
        password=data.password,
        display_name=data.display_name,
    )
    _audit(db, request, AuditAction.REGISTER, user, {"email": user.email})

    return _session_for(user)


@router.post("/login", response_model=UserWithToken)
def login(data: UserLogin, request: Request, db: Session = Depends(get_db)):
    """
    Exchange an email and password for an access token.
    """
    user = authenticate_user(db, data.email, data.password)
    if not user:
        _audit(db, request, AuditAction.LOGIN_FAILED, details={"email": data.email})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    _audit(db, request, AuditAction.LOGIN, user, {"email": user.email})
    return _session_for(user)


@router.post("/logout")
def logout(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Record a logout.

    Tokens are stateless; the client discards its token.
    """
    _audit(db, request, AuditAction.LOGOUT, current_user)
    return {"message": "Logged out"}
