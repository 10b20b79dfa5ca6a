from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.configuration import services
from councilhub.configuration.schemas import SettingsUpdate
from councilhub.db.dependencies import get_db_session
from councilhub.members.models import User
from councilhub.members.permissions import require_admin
from councilhub.utils import ValidationFailed, ok
from councilhub.web.api.envelope import Envelope
from councilhub.web.api.errors import translate_service_errors

router = APIRouter()


@router.get("", response_model=Envelope[Dict[str, str]])
async def get_settings(session: AsyncSession = Depends(get_db_session)):
    """Public organization settings; credentials are never included."""
    return ok(await services.get_public(session))


@router.post("", response_model=Envelope[Dict[str, str]])
@translate_service_errors
async def update_settings(
    payload: SettingsUpdate,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Upsert each key. Integration credentials go through /api/integrations."""
    protected = sorted(k for k in payload.values if k in services.SECRET_KEYS)
    if protected:
        raise ValidationFailed(
            f"Use the integration endpoints to set {', '.join(protected)}"
        )
    updated = await services.upsert_many(session, payload.values)
    # reject values the typed config cannot read before they are committed
    services.parse_site_config(updated)
    public = {k: v for k, v in updated.items() if k not in services.SECRET_KEYS}
    return ok(public, message="Settings saved")
