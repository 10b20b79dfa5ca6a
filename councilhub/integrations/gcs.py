"""Google Cloud Storage integration (service-account credentials)."""
from __future__ import annotations

import time
from typing import Optional

import httpx
from jose import jwt
from jose.exceptions import JOSEError
from loguru import logger
from pydantic import BaseModel

from councilhub.configuration import services as settings_service
from councilhub.configuration.crypto import encrypt
from councilhub.integrations.base import Integration
from councilhub.integrations.schemas import ConnectionCheck, GcsConfigure, GcsStatus
from councilhub.settings import settings
from councilhub.utils import CollaboratorError, utcnow

TOKEN_URL = "https://oauth2.googleapis.com/token"
STORAGE_SCOPE = "https://www.googleapis.com/auth/devstorage.read_write"
UPLOAD_URL = "https://storage.googleapis.com/upload/storage/v1/b/{bucket}/o"
OBJECT_URL = "https://storage.googleapis.com/storage/v1/b/{bucket}/o/{name}"
TEST_OBJECT = ".councilhub-connection-test.txt"


class GcsCredentials(BaseModel):
    project_id: str
    client_email: str
    private_key: str
    bucket_name: str


def _env_credentials() -> Optional[GcsCredentials]:
    if (
        settings.gcs_project_id
        and settings.gcs_client_email
        and settings.gcs_private_key
        and settings.gcs_bucket_name
    ):
        return GcsCredentials(
            project_id=settings.gcs_project_id,
            client_email=settings.gcs_client_email,
            # keys pasted into env files usually carry escaped newlines
            private_key=settings.gcs_private_key.replace("\\n", "\n"),
            bucket_name=settings.gcs_bucket_name,
        )
    return None


class GcsIntegration(Integration):
    prefix = "gcs_"

    async def stored_credentials(self) -> Optional[GcsCredentials]:
        config = await self.config()
        private_key = self.reveal(config.gcs_private_key)
        if not (
            config.gcs_project_id
            and config.gcs_client_email
            and private_key
            and config.gcs_bucket_name
        ):
            return None
        return GcsCredentials(
            project_id=config.gcs_project_id,
            client_email=config.gcs_client_email,
            private_key=private_key,
            bucket_name=config.gcs_bucket_name,
        )

    async def credentials(self) -> Optional[GcsCredentials]:
        return await self.stored_credentials() or _env_credentials()

    async def status(self) -> GcsStatus:
        config = await self.config()
        stored = await self.stored_credentials()
        env = _env_credentials()
        active = stored or env
        return GcsStatus(
            is_connected=active is not None,
            project_id=active.project_id if active else None,
            bucket_name=active.bucket_name if active else None,
            connected_at=config.gcs_connected_at if stored else None,
            has_env_config=env is not None,
            using_env_config=stored is None and env is not None,
        )

    async def configure(self, payload: GcsConfigure) -> GcsStatus:
        """Store the credentials, then keep them only if a round trip succeeds."""
        await settings_service.upsert_many(
            self.session,
            {
                "gcs_project_id": payload.project_id,
                "gcs_client_email": str(payload.client_email),
                "gcs_private_key": encrypt(payload.private_key),
                "gcs_bucket_name": payload.bucket_name,
                "gcs_connected_at": utcnow().isoformat(),
            },
        )
        try:
            await self.test()
        except CollaboratorError:
            await self.disconnect()
            raise
        return await self.status()

    async def _access_token(self, client: httpx.AsyncClient, creds: GcsCredentials) -> str:
        now = int(time.time())
        claims = {
            "iss": creds.client_email,
            "scope": STORAGE_SCOPE,
            "aud": TOKEN_URL,
            "iat": now,
            "exp": now + 3600,
        }
        try:
            assertion = jwt.encode(claims, creds.private_key, algorithm="RS256")
        except JOSEError as exc:
            raise CollaboratorError(f"Invalid service account private key: {exc}") from exc
        resp = await client.post(
            TOKEN_URL,
            data={
                "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                "assertion": assertion,
            },
        )
        if resp.status_code != 200:
            raise CollaboratorError(f"Google token request failed: {resp.text}")
        return resp.json()["access_token"]

    async def test(self) -> ConnectionCheck:
        """Upload and delete a small object in the configured bucket."""
        creds = await self.credentials()
        if creds is None:
            raise CollaboratorError("Google Cloud Storage is not configured")
        try:
            async with self.http() as client:
                token = await self._access_token(client, creds)
                headers = {"Authorization": f"Bearer {token}"}
                upload = await client.post(
                    UPLOAD_URL.format(bucket=creds.bucket_name),
                    params={"uploadType": "media", "name": TEST_OBJECT},
                    headers={**headers, "Content-Type": "text/plain"},
                    content=b"connection test",
                )
                if upload.status_code not in (200, 201):
                    raise CollaboratorError(f"Test upload failed: {upload.text}")
                await client.delete(
                    OBJECT_URL.format(bucket=creds.bucket_name, name=TEST_OBJECT),
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"Google Cloud Storage request failed: {exc}") from exc
        logger.info(f"GCS connection test passed for bucket {creds.bucket_name}")
        return ConnectionCheck(
            success=True,
            message=f"Connected to bucket {creds.bucket_name}",
        )
