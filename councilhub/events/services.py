from __future__ import annotations

import re
import time
from datetime import date, datetime, time as dtime, timezone
from typing import List, Optional, Sequence

from loguru import logger
from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.events import calendar
from councilhub.events.enums import EventStatus, Priority, TaskStatus
from councilhub.events.models import Event, Task
from councilhub.mail import templates
from councilhub.mail.base import Mailer, Notifier
from councilhub.members.enums import Role
from councilhub.members.models import User
from councilhub.members.services import notify_best_effort
from councilhub.utils import (
    NotFound,
    PermissionDenied,
    ValidationFailed,
    _get_or_404,
    as_aware,
    utcnow,
)


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "event"


async def _unique_slug(session: AsyncSession, title: str, exclude_id: Optional[int] = None) -> str:
    slug = slugify(title)
    q = select(Event.id).where(Event.slug == slug)
    if exclude_id is not None:
        q = q.where(Event.id != exclude_id)
    if (await session.execute(q)).first() is None:
        return slug
    return f"{slug}-{int(time.time() * 1000)}"


# ---- Events ----
async def create_event(session: AsyncSession, *, created_by_id: int, **fields) -> Event:
    event = Event(
        slug=await _unique_slug(session, fields["title"]),
        created_by_id=created_by_id,
        **fields,
    )
    session.add(event)
    await session.flush()
    await session.refresh(event)
    logger.info(f"Event {event.id} '{event.title}' created by {created_by_id}")
    return event


async def get_event(session: AsyncSession, event_id: int) -> Event:
    return await _get_or_404(session, Event, event_id)


async def get_event_by_slug(session: AsyncSession, slug: str) -> Event:
    event = (await session.execute(select(Event).where(Event.slug == slug))).scalars().first()
    if event is None:
        raise NotFound(f"Event '{slug}' not found")
    return event


async def list_events(
    session: AsyncSession,
    *,
    published: Optional[bool] = None,
    category: Optional[str] = None,
    status: Optional[EventStatus] = None,
    limit: Optional[int] = None,
) -> Sequence[Event]:
    q = select(Event)
    if published is not None:
        q = q.where(Event.published.is_(published))
    if category:
        q = q.where(Event.category == category)
    if status is not None:
        q = q.where(Event.status == status)
    q = q.order_by(Event.start_date.asc(), Event.id.asc())
    if limit:
        q = q.limit(limit)
    return (await session.execute(q)).scalars().all()


async def update_event(session: AsyncSession, event_id: int, **patch) -> Event:
    event = await _get_or_404(session, Event, event_id)
    start = patch.get("start_date", event.start_date)
    end = patch.get("end_date", event.end_date)
    if as_aware(end) < as_aware(start):
        raise ValidationFailed("end_date must not be before start_date")
    if "title" in patch and patch["title"] != event.title:
        event.slug = await _unique_slug(session, patch["title"], exclude_id=event.id)
    for k, v in patch.items():
        setattr(event, k, v)
    await session.flush()
    await session.refresh(event)
    return event


async def delete_event(session: AsyncSession, event_id: int) -> None:
    event = await _get_or_404(session, Event, event_id)
    await session.delete(event)
    await session.flush()


async def events_in_range(session: AsyncSession, first: date, last: date) -> Sequence[Event]:
    """Events overlapping ``[first, last]`` (whole days)."""
    lower = datetime.combine(first, dtime.min, tzinfo=timezone.utc)
    upper = datetime.combine(last, dtime.max, tzinfo=timezone.utc)
    q = (
        select(Event)
        .where(Event.start_date <= upper, Event.end_date >= lower)
        .order_by(Event.start_date.asc())
    )
    return (await session.execute(q)).scalars().all()


async def calendar_month(
    session: AsyncSession,
    *,
    year: int,
    month: int,
    status: Optional[EventStatus] = None,
) -> dict:
    """Grid cells with their events, the month's list view and status counts."""
    grid = calendar.build_month_grid(year, month)
    events = list(await events_in_range(session, grid[0].date, grid[-1].date))
    in_month = calendar.month_events(year, month, events)
    counts = calendar.status_counts(in_month)
    shown = calendar.filter_by_status(events, status)
    days = []
    for cell in grid:
        summary = calendar.summarize_cell(cell.date, shown)
        days.append(
            {
                "date": cell.date,
                "is_current_month": cell.is_current_month,
                "events": summary.visible,
                "overflow": summary.overflow,
                "overflow_label": summary.overflow_label,
            }
        )
    return {
        "year": year,
        "month": month,
        "status": status,
        "days": days,
        "month_events": calendar.filter_by_status(in_month, status),
        "status_counts": counts,
    }


# ---- Tasks ----
def _can_edit_task(user: User, task: Task) -> bool:
    return (
        user.role in (Role.ADMIN, Role.SUPER_ADMIN)
        or task.assigned_to_id == user.id
        or task.created_by_id == user.id
    )


async def _notify_assignee(
    session: AsyncSession, task: Task, mailer: Mailer, notifier: Notifier
) -> None:
    assignee = await session.get(User, task.assigned_to_id)
    event = await session.get(Event, task.event_id)
    if assignee is None or event is None:
        return
    await notify_best_effort(
        mailer,
        notifier,
        templates.task_assignment_email(
            assignee.email,
            assignee_name=assignee.name,
            task_title=task.title,
            event_title=event.title,
        ),
        "Task saved, but the assignment email could not be sent",
    )


async def create_task(
    session: AsyncSession,
    *,
    created_by_id: int,
    mailer: Mailer,
    notifier: Notifier,
    title: str,
    event_id: int,
    description: Optional[str] = None,
    status: TaskStatus = TaskStatus.TODO,
    priority: Priority = Priority.MEDIUM,
    due_date: Optional[date] = None,
    assigned_to_id: Optional[int] = None,
) -> Task:
    await _get_or_404(session, Event, event_id)
    if assigned_to_id is not None:
        await _get_or_404(session, User, assigned_to_id)
    task = Task(
        title=title,
        description=description,
        status=status,
        priority=priority,
        due_date=due_date,
        event_id=event_id,
        assigned_to_id=assigned_to_id,
        created_by_id=created_by_id,
        completed_at=utcnow() if status == TaskStatus.COMPLETED else None,
    )
    session.add(task)
    await session.flush()
    await session.refresh(task)
    if assigned_to_id is not None and assigned_to_id != created_by_id:
        await _notify_assignee(session, task, mailer, notifier)
    return task


async def get_task(session: AsyncSession, task_id: int) -> Task:
    return await _get_or_404(session, Task, task_id)


async def list_tasks(
    session: AsyncSession,
    *,
    status: Optional[TaskStatus] = None,
    assigned_to_id: Optional[int] = None,
    event_id: Optional[int] = None,
) -> List[Task]:
    priority_rank = case(
        (Task.priority == Priority.HIGH, 0),
        (Task.priority == Priority.MEDIUM, 1),
        else_=2,
    )
    q = select(Task)
    if status is not None:
        q = q.where(Task.status == status)
    if assigned_to_id is not None:
        q = q.where(Task.assigned_to_id == assigned_to_id)
    if event_id is not None:
        q = q.where(Task.event_id == event_id)
    q = q.order_by(priority_rank, Task.due_date.asc().nulls_last(), Task.id)
    return list((await session.execute(q)).scalars().all())


async def update_task(
    session: AsyncSession,
    *,
    actor: User,
    task_id: int,
    mailer: Mailer,
    notifier: Notifier,
    **patch,
) -> Task:
    """Assignee, creator or an admin may update; completion is timestamped."""
    task = await _get_or_404(session, Task, task_id)
    if not _can_edit_task(actor, task):
        raise PermissionDenied("Only the assignee, the creator or an admin can update this task")
    new_assignee = patch.get("assigned_to_id")
    if new_assignee is not None and new_assignee != task.assigned_to_id:
        await _get_or_404(session, User, new_assignee)
    else:
        new_assignee = None
    if "status" in patch and patch["status"] != task.status:
        task.completed_at = utcnow() if patch["status"] == TaskStatus.COMPLETED else None
    for k, v in patch.items():
        setattr(task, k, v)
    await session.flush()
    await session.refresh(task)
    if new_assignee is not None and new_assignee != actor.id:
        await _notify_assignee(session, task, mailer, notifier)
    return task


async def delete_task(session: AsyncSession, *, actor: User, task_id: int) -> None:
    task = await _get_or_404(session, Task, task_id)
    if actor.role not in (Role.ADMIN, Role.SUPER_ADMIN) and task.created_by_id != actor.id:
        raise PermissionDenied("Only the creator or an admin can delete this task")
    await session.delete(task)
    await session.flush()
