from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
import re

from app.modules.users.schemas import Gender

_PHONE_PATTERN = re.compile(r"^010-?(\d{4})-?(\d{4})$")


def normalize_phone(phone: str) -> str:
    """Return the phone number as 010-XXXX-XXXX; dashes are optional on input."""
    match = _PHONE_PATTERN.match((phone or "").strip())
    if not match:
        raise ValueError("Phone number must be in format 010-XXXX-XXXX")
    return f"010-{match.group(1)}-{match.group(2)}"


class PhoneRequest(BaseModel):
    phone: str

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return normalize_phone(v)


class SendCodeRequest(PhoneRequest):
    pass


class VerifyCodeRequest(PhoneRequest):
    code: str = Field(..., pattern=r"^\d{6}$")


class ExistingUserVerifyRequest(BaseModel):
    code: str = Field(..., pattern=r"^\d{6}$")


class SendCodeResponse(BaseModel):
    phone: str
    expires_in_minutes: int
    message: str = "Verification code sent"


class VerifyCodeResponse(BaseModel):
    phone: str
    verified: bool = True
    message: str = "Phone number verified successfully"


class RegisterRequest(PhoneRequest):
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)
    gender: Gender
    age: int = Field(..., ge=18, le=100)


class RegisterResponse(BaseModel):
    user_id: str
    email: str
    name: str
    message: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user_id: str
    email: str


class MeResponse(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    phone_verified: bool = False
    gender: Optional[str] = None
    age: Optional[int] = None
    is_super_user: bool = False
    created_at: Optional[datetime] = None
