"""
Current-user profile endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.auth import UserOut
from app.schemas.user import ProfileUpdate

router = APIRouter(prefix="/users", tags=["users"])


def _user_out(user: User) -> UserOut:
    return UserOut(
        id=str(user.id),
        email=user.email,
        display_name=user.display_name,
        credits=user.credits,
    )


@router.get("/me", response_model=UserOut)
def read_me(current_user: User = Depends(get_current_user)):
    """Get the current user's profile and credit balance."""
    return _user_out(current_user)


@router.patch("/me", response_model=UserOut)
def update_me(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update the current user's profile.

    Only the display name can be changed; credits are managed by the
    summarization workflow.
    """
    if data.display_name is not None:
        current_user.display_name = data.display_name.strip() or current_user.display_name
        db.commit()
        db.refresh(current_user)

    return _user_out(current_user)
