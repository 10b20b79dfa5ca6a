from councilhub.mail.base import EmailMessage, MailResult
from councilhub.mail.tasks import send_email_task


class QueuedMailer:
    """Hands messages to the task broker instead of sending them inline."""

    async def send(self, message: EmailMessage) -> MailResult:
        await send_email_task.kiq(message.model_dump())
        return MailResult(sent=True, queued=True)
