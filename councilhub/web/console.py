"""
Server-rendered admin console.

Pages authenticate with the JWT kept in the session cookie. Anonymous
visitors are sent to /login; signed-in users without the needed role are
sent back to the dashboard.
"""
from datetime import timedelta
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.auth import security
from councilhub.auth.dependencies import get_optional_user
from councilhub.auth.endpoints import sign_in
from councilhub.db.dependencies import get_db_session
from councilhub.events import calendar
from councilhub.events import services as events_service
from councilhub.events.enums import EventStatus
from councilhub.mail.base import Mailer, MessageCollector
from councilhub.mail.dependencies import get_mailer, get_notification_mailer
from councilhub.members import services as members_service
from councilhub.members.enums import AdminAction, Bucket
from councilhub.members.lifecycle import permitted_actions
from councilhub.members.models import User
from councilhub.members.permissions import PermissionChecker
from councilhub.settings import settings
from councilhub.utils import ServiceError, utcnow

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

router = APIRouter(include_in_schema=False)

BUCKET_LABELS = {
    Bucket.PENDING_APPROVAL: "Pending approval",
    Bucket.UNVERIFIED: "Unverified",
    Bucket.LEGACY: "Legacy",
    Bucket.ACTIVE: "Active",
}


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


def _with_flash(url: str, notes: MessageCollector, **params) -> str:
    query: List[tuple] = [(k, v) for k, v in params.items() if v is not None]
    query += [("notice", m) for m in notes.successes]
    query += [("error", m) for m in notes.errors]
    return f"{url}?{urlencode(query)}" if query else url


def _flash(request: Request) -> dict:
    return {
        "notices": request.query_params.getlist("notice"),
        "errors": request.query_params.getlist("error"),
    }


# -----------------------
# Session
# -----------------------
@router.get("/", response_class=HTMLResponse)
async def index(user: Optional[User] = Depends(get_optional_user)):
    return _redirect("/admin/dashboard" if user else "/login")


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, user: Optional[User] = Depends(get_optional_user)):
    if user is not None:
        return _redirect("/admin/dashboard")
    return templates.TemplateResponse(
        request, "login.html", {"error": None, "email": "", "site_name": settings.site_name}
    )


@router.post("/login", response_class=HTMLResponse)
async def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        user = await sign_in(session, email, password)
    except HTTPException as e:
        return templates.TemplateResponse(
            request,
            "login.html",
            {"error": e.detail, "email": email, "site_name": settings.site_name},
            status_code=e.status_code,
        )
    response = _redirect("/admin/dashboard")
    response.set_cookie(
        settings.session_cookie_name,
        security.create_access_token(data={"sub": str(user.id)}),
        httponly=True,
        samesite="lax",
        secure=settings.site_url.startswith("https://"),
        max_age=settings.access_token_expire_minutes * 60,
    )
    return response


@router.post("/logout")
async def logout():
    response = _redirect("/login")
    response.delete_cookie(settings.session_cookie_name)
    return response


# -----------------------
# Pages
# -----------------------
@router.get("/admin/dashboard", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_db_session),
):
    if user is None:
        return _redirect("/login")
    counts = None
    if PermissionChecker.is_admin(user):
        counts = await members_service.bucket_counts(session)
    today = utcnow().date()
    upcoming = await events_service.events_in_range(session, today, today + timedelta(days=60))
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": user,
            "counts": counts,
            "labels": BUCKET_LABELS,
            "upcoming": upcoming[:10],
            "site_name": settings.site_name,
            **_flash(request),
        },
    )


@router.get("/admin/users", response_class=HTMLResponse)
async def users_page(
    request: Request,
    bucket: Bucket = Bucket.PENDING_APPROVAL,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_db_session),
):
    if user is None:
        return _redirect("/login")
    if not PermissionChecker.is_admin(user):
        return _redirect("/admin/dashboard")
    rows = await members_service.list_users(session, bucket=bucket)
    counts = await members_service.bucket_counts(session)
    return templates.TemplateResponse(
        request,
        "users.html",
        {
            "user": user,
            "bucket": bucket,
            "buckets": list(BUCKET_LABELS),
            "labels": BUCKET_LABELS,
            "counts": counts,
            "rows": [
                (
                    row,
                    sorted(
                        (a for a in permitted_actions(
                            row.bucket, is_self=row.id == user.id, active=row.active
                        ) if a != AdminAction.EDIT),
                        key=lambda a: a.value,
                    ),
                )
                for row in rows
            ],
            "show_migrate": PermissionChecker.is_super_admin(user)
            and counts[Bucket.LEGACY] > 0,
            "site_name": settings.site_name,
            **_flash(request),
        },
    )


@router.post("/admin/users/migrate")
async def migrate_submit(
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_db_session),
):
    if user is None:
        return _redirect("/login")
    if not PermissionChecker.is_admin(user):
        return _redirect("/admin/dashboard")
    notes = MessageCollector()
    try:
        await members_service.migrate_legacy_users(session, actor=user, notifier=notes)
    except ServiceError as e:
        notes.error(str(e))
    return _redirect(_with_flash("/admin/users", notes, bucket=Bucket.ACTIVE.value))


@router.post("/admin/users/{user_id}/actions/{action}")
async def action_submit(
    user_id: int,
    action: AdminAction,
    bucket: Optional[Bucket] = None,
    reason: Optional[str] = Form(None),
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_db_session),
    mailer: Mailer = Depends(get_mailer),
    notification_mailer: Mailer = Depends(get_notification_mailer),
):
    if user is None:
        return _redirect("/login")
    if not PermissionChecker.is_admin(user):
        return _redirect("/admin/dashboard")
    notes = MessageCollector()
    try:
        await members_service.execute_action(
            session,
            actor=user,
            user_id=user_id,
            action=action,
            mailer=mailer,
            notification_mailer=notification_mailer,
            notifier=notes,
            reason=reason,
        )
    except ServiceError as e:
        notes.error(str(e))
    return _redirect(
        _with_flash("/admin/users", notes, bucket=bucket.value if bucket else None)
    )


@router.get("/admin/calendar", response_class=HTMLResponse)
async def calendar_page(
    request: Request,
    year: Optional[int] = None,
    month: Optional[int] = None,
    status: Optional[EventStatus] = None,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_db_session),
):
    if user is None:
        return _redirect("/login")
    today = utcnow().date()
    year, month = year or today.year, month or today.month
    if not 1 <= month <= 12 or not 1 < year < 9999:
        return _redirect("/admin/calendar")
    data = await events_service.calendar_month(session, year=year, month=month, status=status)
    prev_year, prev_month = calendar.shift_month(year, month, -1)
    next_year, next_month = calendar.shift_month(year, month, 1)
    return templates.TemplateResponse(
        request,
        "calendar.html",
        {
            "user": user,
            "data": data,
            "today": today,
            "statuses": list(EventStatus),
            "prev": (prev_year, prev_month),
            "next": (next_year, next_month),
            "weekdays": ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"],
            "site_name": settings.site_name,
        },
    )
