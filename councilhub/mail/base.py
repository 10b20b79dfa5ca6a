from __future__ import annotations

from typing import Optional, Protocol

from pydantic import BaseModel


class EmailMessage(BaseModel):
    to: str
    subject: str
    html: str
    text: Optional[str] = None


class MailResult(BaseModel):
    sent: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    queued: bool = False


class Mailer(Protocol):
    """Anything that can deliver an ``EmailMessage``."""

    async def send(self, message: EmailMessage) -> MailResult:
        ...


class Notifier(Protocol):
    """Receives user-facing feedback from service operations."""

    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class MessageCollector:
    """Notifier that keeps the messages so a response can carry them."""

    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def as_dict(self) -> dict:
        return {"messages": self.successes, "warnings": self.errors}
