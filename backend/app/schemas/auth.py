import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

# Password complexity requirements
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 72  # bcrypt only hashes the first 72 bytes


def _check_password_complexity(v: str) -> str:
    if len(v) < PASSWORD_MIN_LENGTH:
        raise ValueError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )

    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain a lowercase letter")

    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain an uppercase letter")

    if not re.search(r"\d", v):
        raise ValueError("Password must contain a digit")

    common_passwords = {"password", "12345678", "qwerty123", "admin123", "password123"}
    if v.lower() in common_passwords:
        raise ValueError("This password is too common")

    return v


class UserRegister(BaseModel):
    """Sign-up request"""

    email: EmailStr
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH
    )
    display_name: Optional[str] = Field(None, max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password_complexity(cls, v: str) -> str:
        """
        Validate password meets complexity requirements:
        - At least 8 characters
        - At least one lowercase letter
        - At least one uppercase letter
        - At least one digit
        """
        return _check_password_complexity(v)


class UserLogin(BaseModel):
    """Login request"""

    email: EmailStr
    password: str


class Token(BaseModel):
    """Access token response"""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class TokenData(BaseModel):
    """JWT payload"""

    user_id: Optional[str] = None
    email: Optional[str] = None


class UserOut(BaseModel):
    """User profile response"""

    id: str
    email: str
    display_name: Optional[str] = None
    credits: int

    class Config:
        from_attributes = True


class UserWithToken(BaseModel):
    """Login/register response (profile + token)"""

    user: UserOut
    token: Token
