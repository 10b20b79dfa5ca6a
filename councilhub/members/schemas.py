from __future__ import annotations

import re
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from councilhub.members.enums import AdminAction, Bucket, MemberStatus, Role

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"\d")


def check_password_strength(value: str) -> str:
    if not (_UPPER.search(value) and _LOWER.search(value) and _DIGIT.search(value)):
        raise ValueError(
            "Password must contain at least one uppercase letter, "
            "one lowercase letter and one number"
        )
    return value


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    role: Role
    member_status: MemberStatus
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    bio: Optional[str] = None
    active: bool
    email_verified: bool
    approved: bool
    approved_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    bucket: Bucket

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=200)
    password: str = Field(..., min_length=12, max_length=128)
    role: Role = Role.EDITOR
    member_status: MemberStatus = MemberStatus.VISITOR


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Optional[Role] = None
    member_status: Optional[MemberStatus] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    zip: Optional[str] = Field(None, max_length=20)
    bio: Optional[str] = None

    @field_validator("email", "name", "role", "member_status")
    @classmethod
    def _required(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else check_password_strength(value)


class RejectIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class VerifyEmailAction(BaseModel):
    action: AdminAction = AdminAction.VERIFY

    @field_validator("action", mode="before")
    @classmethod
    def _alias_resend(cls, value):
        return AdminAction.RESEND_VERIFICATION if value == "resend" else value

    @field_validator("action")
    @classmethod
    def _only_verify_or_resend(cls, value: AdminAction) -> AdminAction:
        if value not in (AdminAction.VERIFY, AdminAction.RESEND_VERIFICATION):
            raise ValueError("action must be 'verify' or 'resend'")
        return value


class MigrationStatus(BaseModel):
    legacy_users_count: int
    needs_migration: bool


class UserListOut(BaseModel):
    users: List[UserOut]
    counts: Dict[Bucket, int]
