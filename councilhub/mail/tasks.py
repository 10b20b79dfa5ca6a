from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession
from taskiq import TaskiqDepends

from councilhub.db.dependencies import get_db_session
from councilhub.integrations.gmail import load_mailer
from councilhub.mail.base import EmailMessage
from councilhub.tkq import broker


@broker.task
async def send_email_task(
    message: dict,
    session: AsyncSession = TaskiqDepends(get_db_session),
) -> dict:
    """Deliver a queued notification with the currently configured mailer."""
    mailer = await load_mailer(session)
    result = await mailer.send(EmailMessage.model_validate(message))
    if not result.sent:
        logger.warning(f"Queued email to {message.get('to')} not sent: {result.error}")
    return result.model_dump()
