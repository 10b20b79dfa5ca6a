from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


# ---- Custom exceptions ----
class ServiceError(Exception):
    """Base class for service errors."""


class NotFound(ServiceError):
    pass


class Conflict(ServiceError):
    pass


class ActionNotAllowed(Conflict):
    """The action is not in the permitted set for the record's current state."""


class PermissionDenied(ServiceError):
    pass


class ValidationFailed(ServiceError):
    pass


class CollaboratorError(ServiceError):
    """An external provider (mailer, storage, captcha) reported a failure."""


# ---- Utilities ----
async def _get_or_404(session: AsyncSession, model, pk: int):
    obj = await session.get(model, pk)
    if obj is None:
        raise NotFound(f"{model.__name__} with id={pk} not found")
    return obj


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes read back from the database as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def ok(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict:
    """Builds the success envelope returned by every JSON endpoint."""
    body: dict = {"success": True, "data": data}
    if message is not None:
        body["message"] = message
    body.update(extra)
    return body
