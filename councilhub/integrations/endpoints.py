from typing import Optional

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.db.dependencies import get_db_session
from councilhub.integrations.gcs import GcsIntegration
from councilhub.integrations.gmail import GmailIntegration
from councilhub.integrations.recaptcha import RecaptchaIntegration
from councilhub.integrations.schemas import (
    CheckEmailIn,
    ConnectionCheck,
    GcsConfigure,
    GcsStatus,
    GmailConfigure,
    GmailStatus,
    RecaptchaConfigure,
    RecaptchaStatus,
)
from councilhub.mail.base import MailResult
from councilhub.members.models import User
from councilhub.members.permissions import require_super_admin
from councilhub.utils import ok
from councilhub.web.api.envelope import Envelope
from councilhub.web.api.errors import translate_service_errors

router = APIRouter()


def get_http_client() -> Optional[httpx.AsyncClient]:
    """Overridden in tests with a mock transport; None means a client per call."""
    return None


async def get_gmail(
    session: AsyncSession = Depends(get_db_session),
    client: Optional[httpx.AsyncClient] = Depends(get_http_client),
) -> GmailIntegration:
    return GmailIntegration(session, client)


async def get_gcs(
    session: AsyncSession = Depends(get_db_session),
    client: Optional[httpx.AsyncClient] = Depends(get_http_client),
) -> GcsIntegration:
    return GcsIntegration(session, client)


async def get_recaptcha_integration(
    session: AsyncSession = Depends(get_db_session),
    client: Optional[httpx.AsyncClient] = Depends(get_http_client),
) -> RecaptchaIntegration:
    return RecaptchaIntegration(session, client)


# -----------------------
# Gmail
# -----------------------
@router.get("/gmail/status", response_model=Envelope[GmailStatus])
async def gmail_status(
    current_user: User = Depends(require_super_admin),
    gmail: GmailIntegration = Depends(get_gmail),
):
    return ok(await gmail.status())


@router.post("/gmail/configure", response_model=Envelope[GmailStatus])
@translate_service_errors
async def gmail_configure(
    payload: GmailConfigure,
    current_user: User = Depends(require_super_admin),
    gmail: GmailIntegration = Depends(get_gmail),
):
    return ok(await gmail.configure(payload), message="Gmail connected")


@router.post("/gmail/disconnect", response_model=Envelope[GmailStatus])
async def gmail_disconnect(
    current_user: User = Depends(require_super_admin),
    gmail: GmailIntegration = Depends(get_gmail),
):
    await gmail.disconnect()
    return ok(await gmail.status(), message="Gmail disconnected")


@router.post("/gmail/test", response_model=Envelope[MailResult])
@translate_service_errors
async def gmail_test(
    payload: CheckEmailIn,
    current_user: User = Depends(require_super_admin),
    gmail: GmailIntegration = Depends(get_gmail),
):
    result = await gmail.test(str(payload.to))
    return ok(result, message=f"Test email sent to {payload.to}")


# -----------------------
# Google Cloud Storage
# -----------------------
@router.get("/gcs/status", response_model=Envelope[GcsStatus])
async def gcs_status(
    current_user: User = Depends(require_super_admin),
    gcs: GcsIntegration = Depends(get_gcs),
):
    return ok(await gcs.status())


@router.post("/gcs/configure", response_model=Envelope[GcsStatus])
@translate_service_errors
async def gcs_configure(
    payload: GcsConfigure,
    current_user: User = Depends(require_super_admin),
    gcs: GcsIntegration = Depends(get_gcs),
):
    return ok(await gcs.configure(payload), message="Google Cloud Storage connected")


@router.post("/gcs/disconnect", response_model=Envelope[GcsStatus])
async def gcs_disconnect(
    current_user: User = Depends(require_super_admin),
    gcs: GcsIntegration = Depends(get_gcs),
):
    await gcs.disconnect()
    return ok(await gcs.status(), message="Google Cloud Storage disconnected")


@router.post("/gcs/test", response_model=Envelope[ConnectionCheck])
@translate_service_errors
async def gcs_test(
    current_user: User = Depends(require_super_admin),
    gcs: GcsIntegration = Depends(get_gcs),
):
    return ok(await gcs.test())


# -----------------------
# reCAPTCHA
# -----------------------
@router.get("/recaptcha/status", response_model=Envelope[RecaptchaStatus])
async def recaptcha_status(
    current_user: User = Depends(require_super_admin),
    recaptcha: RecaptchaIntegration = Depends(get_recaptcha_integration),
):
    return ok(await recaptcha.status())


@router.post("/recaptcha/configure", response_model=Envelope[RecaptchaStatus])
@translate_service_errors
async def recaptcha_configure(
    payload: RecaptchaConfigure,
    current_user: User = Depends(require_super_admin),
    recaptcha: RecaptchaIntegration = Depends(get_recaptcha_integration),
):
    return ok(await recaptcha.configure(payload), message="reCAPTCHA configured")


@router.post("/recaptcha/disconnect", response_model=Envelope[RecaptchaStatus])
async def recaptcha_disconnect(
    current_user: User = Depends(require_super_admin),
    recaptcha: RecaptchaIntegration = Depends(get_recaptcha_integration),
):
    await recaptcha.disconnect()
    return ok(await recaptcha.status(), message="reCAPTCHA disconnected")


@router.post("/recaptcha/test", response_model=Envelope[ConnectionCheck])
@translate_service_errors
async def recaptcha_test(
    current_user: User = Depends(require_super_admin),
    recaptcha: RecaptchaIntegration = Depends(get_recaptcha_integration),
):
    return ok(await recaptcha.test())
