from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.configuration.models import Setting
from councilhub.configuration.schemas import SiteConfig
from councilhub.utils import ValidationFailed

# never returned by the public settings endpoint
SECRET_KEYS = frozenset(
    {
        "recaptcha_secret_key",
        "gmail_client_secret",
        "gmail_refresh_token",
        "gcs_private_key",
    }
)


def _stringify(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


async def get_all(session: AsyncSession) -> Dict[str, str]:
    result = await session.execute(select(Setting))
    return {row.key: row.value for row in result.scalars().all()}


async def get_public(session: AsyncSession) -> Dict[str, str]:
    values = await get_all(session)
    return {k: v for k, v in values.items() if k not in SECRET_KEYS}


async def get_value(session: AsyncSession, key: str) -> Optional[str]:
    result = await session.execute(select(Setting.value).where(Setting.key == key))
    return result.scalar_one_or_none()


async def upsert_many(session: AsyncSession, values: Mapping[str, object]) -> Dict[str, str]:
    """Insert or overwrite each key; values are stored as strings."""
    if not values:
        return await get_all(session)
    existing = await session.execute(
        select(Setting).where(Setting.key.in_(list(values)))
    )
    by_key = {row.key: row for row in existing.scalars().all()}
    for key, value in values.items():
        text = _stringify(value)
        row = by_key.get(key)
        if row is None:
            session.add(Setting(key=key, value=text))
        else:
            row.value = text
    await session.flush()
    return await get_all(session)


async def delete_keys(session: AsyncSession, keys: Iterable[str]) -> int:
    result = await session.execute(delete(Setting).where(Setting.key.in_(list(keys))))
    await session.flush()
    return result.rowcount or 0


async def delete_prefix(session: AsyncSession, prefix: str) -> int:
    result = await session.execute(
        delete(Setting).where(Setting.key.startswith(prefix))
    )
    await session.flush()
    return result.rowcount or 0


def parse_site_config(values: Mapping[str, str]) -> SiteConfig:
    # empty strings mean "unset" in the store
    cleaned = {k: v for k, v in values.items() if v != ""}
    try:
        return SiteConfig.model_validate(cleaned)
    except ValidationError as exc:
        raise ValidationFailed(f"Invalid site settings: {exc.errors()[0]['msg']}") from exc


async def load_site_config(session: AsyncSession) -> SiteConfig:
    return parse_site_config(await get_all(session))
