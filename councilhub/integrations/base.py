from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.configuration import services as settings_service
from councilhub.configuration.crypto import DecryptionError, decrypt
from councilhub.configuration.schemas import SiteConfig

HTTP_TIMEOUT = 15.0


class Integration:
    """
    Shared plumbing for the admin-configurable integrations.

    Each subclass stores its credentials under ``prefix`` in the settings
    table and implements ``status``/``configure``/``disconnect``/``test``.
    """

    prefix: str = ""

    def __init__(
        self,
        session: AsyncSession,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.session = session
        self._client = http_client

    @asynccontextmanager
    async def http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
            yield client

    async def config(self) -> SiteConfig:
        return await settings_service.load_site_config(self.session)

    @staticmethod
    def reveal(value: Optional[str]) -> Optional[str]:
        """Decrypt a stored secret; ``None`` if it is absent or unreadable."""
        if not value:
            return None
        try:
            return decrypt(value)
        except DecryptionError:
            return None

    async def disconnect(self) -> int:
        return await settings_service.delete_prefix(self.session, self.prefix)
