from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class GmailConfigure(BaseModel):
    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    connected_email: EmailStr


class GmailStatus(BaseModel):
    is_connected: bool
    connected_email: Optional[str] = None
    connected_at: Optional[str] = None
    has_env_config: bool = False
    using_env_config: bool = False


class GcsConfigure(BaseModel):
    project_id: str = Field(..., min_length=1)
    client_email: EmailStr
    private_key: str = Field(..., min_length=1)
    bucket_name: str = Field(..., min_length=3, max_length=222)


class GcsStatus(BaseModel):
    is_connected: bool
    project_id: Optional[str] = None
    bucket_name: Optional[str] = None
    connected_at: Optional[str] = None
    has_env_config: bool = False
    using_env_config: bool = False


class RecaptchaConfigure(BaseModel):
    site_key: str = Field(..., min_length=1)
    secret_key: str = Field(..., min_length=1)
    threshold: float = Field(0.5, ge=0.0, le=1.0)
    enabled: bool = True


class RecaptchaStatus(BaseModel):
    is_connected: bool
    enabled: bool
    site_key: Optional[str] = None
    threshold: float = 0.5
    has_env_config: bool = False
    using_env_config: bool = False


class RecaptchaResult(BaseModel):
    success: bool
    score: Optional[float] = None
    error: Optional[str] = None


class CheckEmailIn(BaseModel):
    to: EmailStr


class ConnectionCheck(BaseModel):
    success: bool
    message: str
