from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.auth.dependencies import get_current_user_db
from councilhub.db.dependencies import get_db_session
from councilhub.mail.base import Mailer, MessageCollector
from councilhub.mail.dependencies import get_mailer, get_notification_mailer
from councilhub.members import services
from councilhub.members.enums import AdminAction, Bucket
from councilhub.members.models import User
from councilhub.members.permissions import (
    PermissionChecker,
    require_admin,
    require_super_admin,
)
from councilhub.members.schemas import (
    MigrationStatus,
    RejectIn,
    UserCreate,
    UserListOut,
    UserOut,
    UserUpdate,
    VerifyEmailAction,
)
from councilhub.utils import ok
from councilhub.web.api.envelope import Envelope
from councilhub.web.api.errors import translate_service_errors

router = APIRouter()
admin_router = APIRouter()


def _user_envelope(user: Optional[User], notes: MessageCollector) -> dict:
    data = UserOut.model_validate(user) if user is not None else None
    return ok(data, **notes.as_dict())


@router.get("", response_model=Envelope[UserListOut])
@translate_service_errors
async def list_users(
    bucket: Optional[Bucket] = None,
    search: Optional[str] = None,
    limit: int = 200,
    offset: int = 0,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """List users, optionally restricted to one lifecycle bucket."""
    users = await services.list_users(
        session, bucket=bucket, search=search, limit=limit, offset=offset
    )
    counts = await services.bucket_counts(session)
    return ok(
        UserListOut(users=[UserOut.model_validate(u) for u in users], counts=counts)
    )


@router.post("", response_model=Envelope[UserOut], status_code=status.HTTP_201_CREATED)
@translate_service_errors
async def create_user(
    payload: UserCreate,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    user = await services.create_user(
        session,
        actor=current_user,
        email=str(payload.email),
        name=payload.name,
        password=payload.password,
        role=payload.role,
        member_status=payload.member_status,
    )
    return ok(UserOut.model_validate(user), message="User created")


@router.get("/{user_id}", response_model=Envelope[UserOut])
@translate_service_errors
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user_db),
    session: AsyncSession = Depends(get_db_session),
):
    if user_id != current_user.id and not PermissionChecker.is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")
    return ok(UserOut.model_validate(await services.get_user(session, user_id)))


@router.patch("/{user_id}", response_model=Envelope[UserOut])
@translate_service_errors
async def patch_user(
    user_id: int,
    payload: UserUpdate,
    current_user: User = Depends(get_current_user_db),
    session: AsyncSession = Depends(get_db_session),
):
    data = payload.model_dump(exclude_unset=True)
    if "email" in data and data["email"] is not None:
        data["email"] = str(data["email"])
    user = await services.update_user(session, actor=current_user, user_id=user_id, **data)
    return ok(UserOut.model_validate(user), message="User updated")


@router.delete("/{user_id}", response_model=Envelope[None])
@translate_service_errors
async def delete_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    notes = MessageCollector()
    await services.delete_user(session, actor=current_user, user_id=user_id, notifier=notes)
    return ok(None, **notes.as_dict())


@router.post("/{user_id}/approve", response_model=Envelope[UserOut])
@translate_service_errors
async def approve_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    notification_mailer: Mailer = Depends(get_notification_mailer),
):
    notes = MessageCollector()
    user = await services.approve_user(
        session,
        actor=current_user,
        user_id=user_id,
        mailer=notification_mailer,
        notifier=notes,
    )
    return _user_envelope(user, notes)


@router.post("/{user_id}/reject", response_model=Envelope[None])
@translate_service_errors
async def reject_user(
    user_id: int,
    payload: Optional[RejectIn] = None,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    notification_mailer: Mailer = Depends(get_notification_mailer),
):
    notes = MessageCollector()
    await services.reject_user(
        session,
        actor=current_user,
        user_id=user_id,
        mailer=notification_mailer,
        notifier=notes,
        reason=payload.reason if payload else None,
    )
    return ok(None, **notes.as_dict())


@router.post("/{user_id}/verify-email", response_model=Envelope[UserOut])
@translate_service_errors
async def admin_verify_email(
    user_id: int,
    payload: VerifyEmailAction,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    mailer: Mailer = Depends(get_mailer),
    notification_mailer: Mailer = Depends(get_notification_mailer),
):
    """Mark an address verified, or send the verification link again."""
    notes = MessageCollector()
    user = await services.execute_action(
        session,
        actor=current_user,
        user_id=user_id,
        action=payload.action,
        mailer=mailer,
        notification_mailer=notification_mailer,
        notifier=notes,
    )
    return _user_envelope(user, notes)


@router.post("/{user_id}/actions/{action}", response_model=Envelope[UserOut])
@translate_service_errors
async def run_action(
    user_id: int,
    action: AdminAction,
    payload: Optional[RejectIn] = None,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    mailer: Mailer = Depends(get_mailer),
    notification_mailer: Mailer = Depends(get_notification_mailer),
):
    """Generic entry point for every lifecycle action; ``data`` is null once removed."""
    notes = MessageCollector()
    user = await services.execute_action(
        session,
        actor=current_user,
        user_id=user_id,
        action=action,
        mailer=mailer,
        notification_mailer=notification_mailer,
        notifier=notes,
        reason=payload.reason if payload else None,
    )
    return _user_envelope(user, notes)


# -----------------------
# Legacy migration
# -----------------------
@admin_router.get("/migrate-users", response_model=Envelope[MigrationStatus])
async def migration_status(
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    count = await services.legacy_user_count(session)
    return ok(MigrationStatus(legacy_users_count=count, needs_migration=count > 0))


@admin_router.post("/migrate-users", response_model=Envelope[services.MigrationResult])
@translate_service_errors
async def migrate_users(
    current_user: User = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
):
    notes = MessageCollector()
    result = await services.migrate_legacy_users(session, actor=current_user, notifier=notes)
    return ok(result, **notes.as_dict())
