"""reCAPTCHA v3 verification and its admin configuration."""
from __future__ import annotations

from typing import Optional

import httpx
from loguru import logger

from councilhub.configuration import services as settings_service
from councilhub.configuration.crypto import encrypt
from councilhub.integrations.base import Integration
from councilhub.integrations.schemas import (
    ConnectionCheck,
    RecaptchaConfigure,
    RecaptchaResult,
    RecaptchaStatus,
)
from councilhub.settings import settings
from councilhub.utils import CollaboratorError

VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class RecaptchaIntegration(Integration):
    prefix = "recaptcha_"

    async def _resolve(self) -> tuple[bool, Optional[str], Optional[str], float]:
        """Returns (enabled, site_key, secret, threshold); env keys take precedence."""
        config = await self.config()
        if settings.recaptcha_secret_key:
            return (
                True,
                settings.recaptcha_site_key,
                settings.recaptcha_secret_key,
                config.recaptcha_threshold,
            )
        return (
            config.recaptcha_enabled,
            config.recaptcha_site_key,
            self.reveal(config.recaptcha_secret_key),
            config.recaptcha_threshold,
        )

    async def status(self) -> RecaptchaStatus:
        enabled, site_key, secret, threshold = await self._resolve()
        has_env = bool(settings.recaptcha_secret_key)
        return RecaptchaStatus(
            is_connected=secret is not None,
            enabled=enabled,
            site_key=site_key,
            threshold=threshold,
            has_env_config=has_env,
            using_env_config=has_env,
        )

    async def configure(self, payload: RecaptchaConfigure) -> RecaptchaStatus:
        await settings_service.upsert_many(
            self.session,
            {
                "recaptcha_enabled": payload.enabled,
                "recaptcha_site_key": payload.site_key,
                "recaptcha_secret_key": encrypt(payload.secret_key),
                "recaptcha_threshold": payload.threshold,
            },
        )
        return await self.status()

    async def _siteverify(
        self, secret: str, token: str, remote_ip: Optional[str] = None
    ) -> dict:
        data = {"secret": secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip
        try:
            async with self.http() as client:
                resp = await client.post(VERIFY_URL, data=data)
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"reCAPTCHA request failed: {exc}") from exc
        return resp.json()

    async def verify(self, token: Optional[str], remote_ip: Optional[str] = None) -> RecaptchaResult:
        """
        Check a client token.

        Passes with a score of 1.0 when reCAPTCHA is disabled or has no secret.
        """
        enabled, _, secret, threshold = await self._resolve()
        if not enabled or not secret:
            return RecaptchaResult(success=True, score=1.0)
        if not token:
            return RecaptchaResult(success=False, error="reCAPTCHA token is missing")
        try:
            body = await self._siteverify(secret, token, remote_ip)
        except CollaboratorError as exc:
            logger.error(str(exc))
            return RecaptchaResult(success=False, error="reCAPTCHA verification failed")
        if not body.get("success"):
            codes = ", ".join(body.get("error-codes", []))
            return RecaptchaResult(success=False, error=f"reCAPTCHA rejected: {codes}")
        score = body.get("score")
        if score is not None and score < threshold:
            logger.warning(f"reCAPTCHA score {score} below threshold {threshold}")
            return RecaptchaResult(success=False, score=score, error="reCAPTCHA score too low")
        return RecaptchaResult(success=True, score=score)

    async def test(self) -> ConnectionCheck:
        """Checks that Google accepts the secret key."""
        _, _, secret, _ = await self._resolve()
        if not secret:
            raise CollaboratorError("reCAPTCHA is not configured")
        body = await self._siteverify(secret, "connection-test")
        if "invalid-input-secret" in body.get("error-codes", []):
            raise CollaboratorError("reCAPTCHA secret key was rejected by Google")
        return ConnectionCheck(success=True, message="reCAPTCHA secret key accepted")
