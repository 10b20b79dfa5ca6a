from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from councilhub.members.schemas import check_password_strength


class RegisterIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    recaptcha_token: Optional[str] = None

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)


class RegisterOut(BaseModel):
    user_id: int
    email: str
    email_sent: bool


class ResendIn(BaseModel):
    email: EmailStr


class Token(BaseModel):
    success: bool = True
    access_token: str
    refresh_token: str
    token_type: str


class RefreshIn(BaseModel):
    refresh_token: str
