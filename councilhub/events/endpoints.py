from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.auth.dependencies import get_current_user_db
from councilhub.db.dependencies import get_db_session
from councilhub.events import services
from councilhub.events.enums import EventStatus, TaskStatus
from councilhub.events.schemas import (
    CalendarOut,
    EventCreate,
    EventOut,
    EventUpdate,
    TaskCreate,
    TaskOut,
    TaskUpdate,
)
from councilhub.mail.base import Mailer, MessageCollector
from councilhub.mail.dependencies import get_notification_mailer
from councilhub.members.models import User
from councilhub.members.permissions import require_editor
from councilhub.utils import ok, utcnow
from councilhub.web.api.envelope import Envelope
from councilhub.web.api.errors import translate_service_errors

router = APIRouter()
tasks_router = APIRouter()


# -----------------------
# Event endpoints
# -----------------------
@router.get("", response_model=Envelope[List[EventOut]])
async def list_events(
    published: Optional[bool] = None,
    category: Optional[str] = None,
    status: Optional[EventStatus] = None,
    limit: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """Public listing ordered by start date."""
    events = await services.list_events(
        session, published=published, category=category, status=status, limit=limit
    )
    return ok([EventOut.model_validate(e) for e in events])


@router.get("/calendar", response_model=Envelope[CalendarOut])
@translate_service_errors
async def get_calendar(
    year: Optional[int] = Query(None, ge=2, le=9998),
    month: Optional[int] = Query(None, ge=1, le=12),
    event_status: Optional[EventStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user_db),
    session: AsyncSession = Depends(get_db_session),
):
    """Month grid (42 days), the month list and per-status counts."""
    today = utcnow().date()
    data = await services.calendar_month(
        session,
        year=year or today.year,
        month=month or today.month,
        status=event_status,
    )
    return ok(CalendarOut.model_validate(data, from_attributes=True))


@router.post("", response_model=Envelope[EventOut], status_code=status.HTTP_201_CREATED)
@translate_service_errors
async def create_event(
    payload: EventCreate,
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
):
    event = await services.create_event(
        session, created_by_id=current_user.id, **payload.model_dump()
    )
    return ok(EventOut.model_validate(event), message="Event created")


@router.get("/slug/{slug}", response_model=Envelope[EventOut])
@translate_service_errors
async def get_event_by_slug(slug: str, session: AsyncSession = Depends(get_db_session)):
    return ok(EventOut.model_validate(await services.get_event_by_slug(session, slug)))


@router.get("/{event_id}", response_model=Envelope[EventOut])
@translate_service_errors
async def get_event(event_id: int, session: AsyncSession = Depends(get_db_session)):
    return ok(EventOut.model_validate(await services.get_event(session, event_id)))


@router.patch("/{event_id}", response_model=Envelope[EventOut])
@translate_service_errors
async def update_event(
    event_id: int,
    payload: EventUpdate,
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
):
    event = await services.update_event(
        session, event_id, **payload.model_dump(exclude_unset=True)
    )
    return ok(EventOut.model_validate(event), message="Event updated")


@router.delete("/{event_id}", response_model=Envelope[None])
@translate_service_errors
async def delete_event(
    event_id: int,
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
):
    await services.delete_event(session, event_id)
    return ok(message="Event deleted")


# -----------------------
# Task endpoints
# -----------------------
@tasks_router.get("", response_model=Envelope[List[TaskOut]])
async def list_tasks(
    status: Optional[TaskStatus] = None,
    assigned_to: Optional[int] = None,
    event_id: Optional[int] = None,
    current_user: User = Depends(get_current_user_db),
    session: AsyncSession = Depends(get_db_session),
):
    tasks = await services.list_tasks(
        session, status=status, assigned_to_id=assigned_to, event_id=event_id
    )
    return ok([TaskOut.model_validate(t) for t in tasks])


@tasks_router.post("", response_model=Envelope[TaskOut], status_code=status.HTTP_201_CREATED)
@translate_service_errors
async def create_task(
    payload: TaskCreate,
    current_user: User = Depends(require_editor),
    session: AsyncSession = Depends(get_db_session),
    notification_mailer: Mailer = Depends(get_notification_mailer),
):
    notes = MessageCollector()
    task = await services.create_task(
        session,
        created_by_id=current_user.id,
        mailer=notification_mailer,
        notifier=notes,
        **payload.model_dump(),
    )
    return ok(TaskOut.model_validate(task), **notes.as_dict())


@tasks_router.get("/{task_id}", response_model=Envelope[TaskOut])
@translate_service_errors
async def get_task(
    task_id: int,
    current_user: User = Depends(get_current_user_db),
    session: AsyncSession = Depends(get_db_session),
):
    return ok(TaskOut.model_validate(await services.get_task(session, task_id)))


@tasks_router.patch("/{task_id}", response_model=Envelope[TaskOut])
@translate_service_errors
async def update_task(
    task_id: int,
    payload: TaskUpdate,
    current_user: User = Depends(get_current_user_db),
    session: AsyncSession = Depends(get_db_session),
    notification_mailer: Mailer = Depends(get_notification_mailer),
):
    notes = MessageCollector()
    task = await services.update_task(
        session,
        actor=current_user,
        task_id=task_id,
        mailer=notification_mailer,
        notifier=notes,
        **payload.model_dump(exclude_unset=True),
    )
    return ok(TaskOut.model_validate(task), **notes.as_dict())


@tasks_router.delete("/{task_id}", response_model=Envelope[None])
@translate_service_errors
async def delete_task(
    task_id: int,
    current_user: User = Depends(get_current_user_db),
    session: AsyncSession = Depends(get_db_session),
):
    await services.delete_task(session, actor=current_user, task_id=task_id)
    return ok(message="Task deleted")
