"""Gmail send-as integration and the mailer built on it."""
from __future__ import annotations

import base64
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import httpx
from loguru import logger
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.configuration import services as settings_service
from councilhub.configuration.crypto import encrypt
from councilhub.integrations.base import HTTP_TIMEOUT, Integration
from councilhub.integrations.schemas import GmailConfigure, GmailStatus
from councilhub.mail.base import EmailMessage, MailResult
from councilhub.mail.templates import connection_check_email
from councilhub.settings import settings
from councilhub.utils import CollaboratorError, utcnow

TOKEN_URL = "https://oauth2.googleapis.com/token"
SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"


class GmailCredentials(BaseModel):
    client_id: str
    client_secret: str
    refresh_token: str
    sender: Optional[str] = None


def build_raw_message(message: EmailMessage, sender: Optional[str]) -> str:
    """MIME-encode the message the way the Gmail API's ``raw`` field expects."""
    mime = MIMEMultipart("alternative")
    mime["To"] = message.to
    mime["Subject"] = message.subject
    if sender:
        mime["From"] = f"{settings.site_name} <{sender}>"
    if message.text:
        mime.attach(MIMEText(message.text, "plain", "utf-8"))
    mime.attach(MIMEText(message.html, "html", "utf-8"))
    return base64.urlsafe_b64encode(mime.as_bytes()).decode("ascii").rstrip("=")


class GmailMailer:
    """Sends mail through the Gmail REST API with a stored refresh token."""

    def __init__(
        self,
        credentials: Optional[GmailCredentials],
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.credentials = credentials
        self._client = http_client

    async def _send(self, client: httpx.AsyncClient, message: EmailMessage) -> MailResult:
        creds = self.credentials
        token_resp = await client.post(
            TOKEN_URL,
            data={
                "client_id": creds.client_id,
                "client_secret": creds.client_secret,
                "refresh_token": creds.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if token_resp.status_code != 200:
            return MailResult(
                sent=False,
                error=f"Gmail token refresh failed: {token_resp.text}",
            )
        access_token = token_resp.json()["access_token"]
        send_resp = await client.post(
            SEND_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            json={"raw": build_raw_message(message, creds.sender)},
        )
        if send_resp.status_code != 200:
            return MailResult(sent=False, error=f"Gmail send failed: {send_resp.text}")
        return MailResult(sent=True, message_id=send_resp.json().get("id"))

    async def send(self, message: EmailMessage) -> MailResult:
        if self.credentials is None:
            logger.warning(f"Gmail not configured, cannot send '{message.subject}'")
            return MailResult(sent=False, error="Gmail is not configured")
        try:
            if self._client is not None:
                result = await self._send(self._client, message)
            else:
                async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
                    result = await self._send(client, message)
        except httpx.HTTPError as e:
            result = MailResult(sent=False, error=f"Gmail request failed: {e}")
        if result.sent:
            logger.info(f"Email '{message.subject}' sent to {message.to}")
        else:
            logger.error(f"Email '{message.subject}' to {message.to} failed: {result.error}")
        return result


def _env_credentials() -> Optional[GmailCredentials]:
    if settings.gmail_client_id and settings.gmail_client_secret and settings.gmail_refresh_token:
        return GmailCredentials(
            client_id=settings.gmail_client_id,
            client_secret=settings.gmail_client_secret,
            refresh_token=settings.gmail_refresh_token,
            sender=settings.gmail_sender,
        )
    return None


class GmailIntegration(Integration):
    prefix = "gmail_"

    async def stored_credentials(self) -> Optional[GmailCredentials]:
        config = await self.config()
        secret = self.reveal(config.gmail_client_secret)
        refresh = self.reveal(config.gmail_refresh_token)
        if not (config.gmail_client_id and secret and refresh):
            return None
        return GmailCredentials(
            client_id=config.gmail_client_id,
            client_secret=secret,
            refresh_token=refresh,
            sender=config.gmail_connected_email,
        )

    async def credentials(self) -> Optional[GmailCredentials]:
        return await self.stored_credentials() or _env_credentials()

    async def mailer(self) -> GmailMailer:
        return GmailMailer(await self.credentials(), http_client=self._client)

    async def status(self) -> GmailStatus:
        config = await self.config()
        stored = await self.stored_credentials()
        env = _env_credentials()
        return GmailStatus(
            is_connected=stored is not None or env is not None,
            connected_email=config.gmail_connected_email if stored else settings.gmail_sender,
            connected_at=config.gmail_connected_at if stored else None,
            has_env_config=env is not None,
            using_env_config=stored is None and env is not None,
        )

    async def configure(self, payload: GmailConfigure) -> GmailStatus:
        await settings_service.upsert_many(
            self.session,
            {
                "gmail_client_id": payload.client_id,
                "gmail_client_secret": encrypt(payload.client_secret),
                "gmail_refresh_token": encrypt(payload.refresh_token),
                "gmail_connected_email": str(payload.connected_email),
                "gmail_connected_at": utcnow().isoformat(),
            },
        )
        return await self.status()

    async def test(self, to: str) -> MailResult:
        mailer = await self.mailer()
        result = await mailer.send(connection_check_email(to))
        if not result.sent:
            raise CollaboratorError(result.error or "Failed to send test email")
        return result


async def load_mailer(
    session: AsyncSession, http_client: Optional[httpx.AsyncClient] = None
) -> GmailMailer:
    return await GmailIntegration(session, http_client).mailer()
