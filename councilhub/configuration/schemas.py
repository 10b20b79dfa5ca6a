from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SiteConfig(BaseModel):
    """
    Typed view over the settings rows.

    The store keeps everything as strings; this model is validated once per
    load so callers get real booleans and numbers. Unknown keys are kept.
    """

    model_config = ConfigDict(extra="allow")

    site_name: Optional[str] = None
    tagline: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    facebook_url: Optional[str] = None
    instagram_url: Optional[str] = None

    recaptcha_enabled: bool = False
    recaptcha_site_key: Optional[str] = None
    recaptcha_secret_key: Optional[str] = None
    recaptcha_threshold: float = Field(0.5, ge=0.0, le=1.0)

    gmail_client_id: Optional[str] = None
    gmail_client_secret: Optional[str] = None
    gmail_refresh_token: Optional[str] = None
    gmail_connected_email: Optional[str] = None
    gmail_connected_at: Optional[str] = None

    gcs_project_id: Optional[str] = None
    gcs_client_email: Optional[str] = None
    gcs_private_key: Optional[str] = None
    gcs_bucket_name: Optional[str] = None
    gcs_connected_at: Optional[str] = None


class SettingsUpdate(BaseModel):
    values: Dict[str, object]
