from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.db.dependencies import get_db_session
from councilhub.integrations.gmail import load_mailer
from councilhub.mail.base import Mailer
from councilhub.mail.queue import QueuedMailer


async def get_mailer(session: AsyncSession = Depends(get_db_session)) -> Mailer:
    """Mailer for sends whose outcome the caller has to report."""
    return await load_mailer(session)


def get_notification_mailer() -> Mailer:
    """Fire-and-forget mailer for best-effort notifications."""
    return QueuedMailer()
