from __future__ import annotations

import random
import secrets
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.auth import security
from councilhub.mail import templates
from councilhub.mail.base import EmailMessage, Mailer, Notifier
from councilhub.members.enums import (
    OFFICER_STATUSES,
    AdminAction,
    Bucket,
    MemberStatus,
    Role,
)
from councilhub.members.lifecycle import bucket_filter, ensure_permitted
from councilhub.members.models import User
from councilhub.settings import settings
from councilhub.utils import (
    CollaboratorError,
    Conflict,
    PermissionDenied,
    ValidationFailed,
    _get_or_404,
    as_aware,
    utcnow,
)

ADMIN_ROLES = (Role.ADMIN, Role.SUPER_ADMIN)

# fields a profile patch may touch; lifecycle flags only change through the executors
PROFILE_FIELDS = frozenset(
    ("email", "name", "password", "role", "member_status",
     "phone", "address", "city", "state", "zip", "bio")
)
REQUIRED_PROFILE_FIELDS = frozenset(("email", "name", "role", "member_status"))


class MigrationResult(BaseModel):
    migrated_count: int
    errors: List[str] = []


# ---- Helpers ----
def new_verification_token() -> Tuple[str, datetime]:
    token = secrets.token_hex(32)
    return token, utcnow() + timedelta(hours=settings.verification_token_hours)


def _token_is_live(user: User) -> bool:
    expires = as_aware(user.email_verification_expires)
    return bool(user.email_verification_token) and (
        expires is None or expires > utcnow()
    )


def _ensure_can_manage(actor: User, target: User) -> None:
    if target.role in ADMIN_ROLES and actor.role != Role.SUPER_ADMIN:
        raise PermissionDenied("Only super admins can manage admin accounts")


async def notify_best_effort(
    mailer: Mailer, notifier: Notifier, message: EmailMessage, failure: str
) -> bool:
    """Send ``message``; a failure is reported to ``notifier`` but never raised."""
    try:
        result = await mailer.send(message)
    except Exception as e:
        logger.exception(f"{failure} ({message.to})")
        notifier.error(f"{failure}: {e}")
        return False
    if not result.sent:
        logger.warning(f"{failure} ({message.to}): {result.error}")
        notifier.error(f"{failure}: {result.error}")
        return False
    return True


# ---- Queries ----
async def get_user(session: AsyncSession, user_id: int) -> User:
    return await _get_or_404(session, User, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    q = select(User).where(User.email == email.strip().lower())
    result = await session.execute(q)
    return result.scalars().first()


async def list_users(
    session: AsyncSession,
    *,
    bucket: Optional[Bucket] = None,
    search: Optional[str] = None,
    limit: int = 200,
    offset: int = 0,
) -> Sequence[User]:
    q = select(User)
    if bucket is not None:
        q = q.where(bucket_filter(bucket))
    if search:
        pattern = f"%{search.strip()}%"
        q = q.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    q = q.order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset(offset)
    result = await session.execute(q)
    return result.scalars().all()


async def bucket_counts(session: AsyncSession) -> Dict[Bucket, int]:
    counts = {}
    for bucket in Bucket:
        q = select(func.count(User.id)).where(bucket_filter(bucket))
        counts[bucket] = (await session.execute(q)).scalar_one()
    return counts


async def legacy_user_count(session: AsyncSession) -> int:
    q = select(func.count(User.id)).where(bucket_filter(Bucket.LEGACY))
    return (await session.execute(q)).scalar_one()


async def admin_notification_recipients(session: AsyncSession) -> List[str]:
    if settings.notification_email:
        return [settings.notification_email]
    q = select(User.email).where(User.role.in_(ADMIN_ROLES), User.active.is_(True))
    return list((await session.execute(q)).scalars().all())


# ---- Authentication ----
async def authenticate_user(
    session: AsyncSession, email: str, password: str
) -> Optional[User]:
    """Returns the user if the credentials match, otherwise None."""
    user = await get_user_by_email(session, email)
    if not user or not user.password_hash:
        return None
    if not security.verify_password(password, str(user.password_hash)):
        return None
    return user


def ensure_can_sign_in(user: User) -> None:
    if not user.email_verified:
        raise PermissionDenied("Please verify your email address before signing in")
    if not user.approved:
        raise PermissionDenied("Your account is awaiting admin approval")
    if not user.active:
        raise PermissionDenied("Your account has been deactivated")


async def record_login(session: AsyncSession, user: User) -> None:
    user.last_login = utcnow()
    await session.flush()


# ---- Registration ----
async def register_user(
    session: AsyncSession,
    *,
    email: str,
    name: str,
    password: str,
    mailer: Mailer,
    notifier: Notifier,
) -> Tuple[User, bool]:
    """
    Create a self-registered account and send its verification email.

    The account starts unverified, unapproved and inactive. Returns the user
    and whether the verification email went out.
    """
    email = email.strip().lower()
    if await get_user_by_email(session, email):
        raise Conflict("An account with this email already exists")
    token, expires = new_verification_token()
    user = User(
        email=email,
        name=name.strip(),
        password_hash=security.get_password_hash(password),
        role=Role.EDITOR,
        member_status=MemberStatus.VISITOR,
        active=False,
        email_verified=False,
        approved=False,
        email_verification_token=token,
        email_verification_expires=expires,
        refresh_token_param=random.randint(1, 1_000_000_000),
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise Conflict("An account with this email already exists") from exc
    await session.refresh(user)
    sent = await notify_best_effort(
        mailer,
        notifier,
        templates.verification_email(user.email, user.name, token),
        "Failed to send verification email",
    )
    if sent:
        notifier.success("Registration successful. Check your email to verify your address.")
    return user, sent


async def verify_email_token(
    session: AsyncSession,
    *,
    token: str,
    notification_mailer: Mailer,
    notifier: Notifier,
) -> User:
    """Confirm an address from the emailed link and tell the admins."""
    q = select(User).where(User.email_verification_token == token)
    user = (await session.execute(q)).scalars().first()
    if user is None:
        raise ValidationFailed("Invalid or expired verification token")
    expires = as_aware(user.email_verification_expires)
    if expires is not None and expires < utcnow():
        raise ValidationFailed("Verification link has expired. Please request a new one.")
    await session.execute(
        update(User)
        .where(User.id == user.id, User.email_verification_token == token)
        .values(
            email_verified=True,
            email_verification_token=None,
            email_verification_expires=None,
        )
        .execution_options(synchronize_session=False)
    )
    await session.refresh(user)
    for recipient in await admin_notification_recipients(session):
        await notify_best_effort(
            notification_mailer,
            notifier,
            templates.new_registration_email(
                recipient, user_name=user.name, user_email=user.email
            ),
            "Failed to notify admins",
        )
    notifier.success("Email verified. An administrator will review your account.")
    return user


async def _send_verification(session: AsyncSession, user: User, mailer: Mailer) -> User:
    """
    Email a verification link, reusing the current token while it is live.

    A fresh token is only written after the mailer accepted the message.
    """
    if _token_is_live(user):
        token, expires = user.email_verification_token, None
    else:
        token, expires = new_verification_token()
    result = await mailer.send(templates.verification_email(user.email, user.name, token))
    if not result.sent:
        raise CollaboratorError(result.error or "Failed to send verification email")
    if expires is not None:
        await session.execute(
            update(User)
            .where(User.id == user.id, User.email_verified.is_(False))
            .values(email_verification_token=token, email_verification_expires=expires)
            .execution_options(synchronize_session=False)
        )
        await session.refresh(user)
    return user


async def resend_verification_public(
    session: AsyncSession, *, email: str, mailer: Mailer
) -> None:
    """Self-service resend. Unknown or verified addresses are silently ignored."""
    user = await get_user_by_email(session, email)
    if user is None or user.email_verified:
        return
    try:
        await _send_verification(session, user, mailer)
    except CollaboratorError as e:
        # the response must look the same whether or not the address exists
        logger.error(f"Verification resend to {user.email} failed: {e}")


# ---- Admin action executors ----
async def verify_user(
    session: AsyncSession, *, actor: User, user_id: int, notifier: Notifier
) -> User:
    target = await _get_or_404(session, User, user_id)
    if target.email_verified:
        notifier.success(f"{target.email} is already verified")
        return target
    ensure_permitted(AdminAction.VERIFY, target.bucket, is_self=target.id == actor.id)
    await session.execute(
        update(User)
        .where(User.id == user_id, User.email_verified.is_(False))
        .values(
            email_verified=True,
            email_verification_token=None,
            email_verification_expires=None,
        )
        .execution_options(synchronize_session=False)
    )
    await session.refresh(target)
    logger.info(f"User {user_id} manually verified by {actor.id}")
    notifier.success(f"{target.email} marked as verified")
    return target


async def resend_verification(
    session: AsyncSession,
    *,
    actor: User,
    user_id: int,
    mailer: Mailer,
    notifier: Notifier,
) -> User:
    target = await _get_or_404(session, User, user_id)
    ensure_permitted(
        AdminAction.RESEND_VERIFICATION, target.bucket, is_self=target.id == actor.id
    )
    await _send_verification(session, target, mailer)
    notifier.success(f"Verification email sent to {target.email}")
    return target


async def approve_user(
    session: AsyncSession,
    *,
    actor: User,
    user_id: int,
    mailer: Mailer,
    notifier: Notifier,
) -> User:
    """Approve a verified registration. Approving an active user changes nothing."""
    target = await _get_or_404(session, User, user_id)
    is_self = target.id == actor.id
    if target.bucket == Bucket.ACTIVE and not is_self:
        notifier.success(f"{target.name} is already approved")
        return target
    ensure_permitted(AdminAction.APPROVE, target.bucket, is_self=is_self)
    result = await session.execute(
        update(User)
        .where(
            User.id == user_id,
            User.approved.is_(False),
            User.email_verified.is_(True),
        )
        .values(
            approved=True,
            approved_at=utcnow(),
            approved_by_id=actor.id,
            active=True,
        )
        .execution_options(synchronize_session=False)
    )
    await session.refresh(target)
    if result.rowcount:
        logger.info(f"User {user_id} approved by {actor.id}")
        await notify_best_effort(
            mailer,
            notifier,
            templates.account_approved_email(target.email, target.name),
            "User approved, but the approval email could not be sent",
        )
    notifier.success(f"{target.name} approved")
    return target


async def reject_user(
    session: AsyncSession,
    *,
    actor: User,
    user_id: int,
    mailer: Mailer,
    notifier: Notifier,
    reason: Optional[str] = None,
) -> None:
    """Remove a pending registration and tell the applicant."""
    target = await _get_or_404(session, User, user_id)
    ensure_permitted(AdminAction.REJECT, target.bucket, is_self=target.id == actor.id)
    email, name = target.email, target.name
    result = await session.execute(
        delete(User)
        .where(User.id == user_id, User.approved.is_(False))
        .execution_options(synchronize_session=False)
    )
    session.expunge(target)
    if not result.rowcount:
        return
    logger.info(f"Registration {user_id} rejected by {actor.id}")
    reason = reason.strip() if reason else None
    await notify_best_effort(
        mailer,
        notifier,
        templates.account_rejected_email(email, name, reason or None),
        "Registration rejected, but the rejection email could not be sent",
    )
    notifier.success(f"Registration for {email} rejected")


async def set_active(
    session: AsyncSession,
    *,
    actor: User,
    user_id: int,
    active: bool,
    notifier: Notifier,
) -> User:
    action = AdminAction.ACTIVATE if active else AdminAction.DEACTIVATE
    target = await _get_or_404(session, User, user_id)
    is_self = target.id == actor.id
    if is_self:
        ensure_permitted(action, target.bucket, is_self=True)
    _ensure_can_manage(actor, target)
    if target.active == active:
        notifier.success(f"{target.name} is already {'active' if active else 'inactive'}")
        return target
    ensure_permitted(action, target.bucket, is_self=False, active=target.active)
    values = {"active": active}
    if not active:
        # outstanding refresh tokens stop working
        values["refresh_token_param"] = User.refresh_token_param + 1
    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.refresh(target)
    notifier.success(f"{target.name} {'activated' if active else 'deactivated'}")
    return target


async def delete_user(
    session: AsyncSession, *, actor: User, user_id: int, notifier: Notifier
) -> None:
    target = await _get_or_404(session, User, user_id)
    is_self = target.id == actor.id
    if is_self:
        ensure_permitted(AdminAction.DELETE, target.bucket, is_self=True)
    _ensure_can_manage(actor, target)
    ensure_permitted(AdminAction.DELETE, target.bucket, is_self=False)
    email = target.email
    await session.delete(target)
    await session.flush()
    logger.info(f"User {user_id} deleted by {actor.id}")
    notifier.success(f"{email} deleted")


def _ensure_super_admin(actor: User) -> None:
    if actor.role != Role.SUPER_ADMIN:
        raise PermissionDenied("Only super admins can migrate legacy users")


def _migrate_values(actor: User) -> dict:
    return {
        "email_verified": True,
        "approved": True,
        "approved_at": utcnow(),
        "approved_by_id": actor.id,
    }


async def migrate_user(
    session: AsyncSession, *, actor: User, user_id: int, notifier: Notifier
) -> User:
    _ensure_super_admin(actor)
    target = await _get_or_404(session, User, user_id)
    ensure_permitted(AdminAction.MIGRATE, target.bucket, is_self=target.id == actor.id)
    await session.execute(
        update(User)
        .where(User.id == user_id, bucket_filter(Bucket.LEGACY))
        .values(**_migrate_values(actor))
        .execution_options(synchronize_session=False)
    )
    await session.refresh(target)
    notifier.success(f"{target.email} migrated")
    return target


async def migrate_legacy_users(
    session: AsyncSession, *, actor: User, notifier: Notifier
) -> MigrationResult:
    """
    Mark every legacy account as verified and approved.

    Each row is updated in its own savepoint; a failing row is reported and
    the rest still migrate.
    """
    _ensure_super_admin(actor)
    ids = (
        await session.execute(
            select(User.id).where(bucket_filter(Bucket.LEGACY)).order_by(User.id)
        )
    ).scalars().all()
    migrated = 0
    errors: List[str] = []
    for user_id in ids:
        try:
            async with session.begin_nested():
                result = await session.execute(
                    update(User)
                    .where(User.id == user_id, bucket_filter(Bucket.LEGACY))
                    .values(**_migrate_values(actor))
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as e:
            logger.error(f"Legacy migration failed for user {user_id}: {e}")
            errors.append(f"user {user_id}: {e}")
            continue
        migrated += result.rowcount
    logger.info(f"Migrated {migrated} legacy users ({len(errors)} failed)")
    if migrated:
        notifier.success(f"Migrated {migrated} legacy users")
    for error in errors:
        notifier.error(error)
    return MigrationResult(migrated_count=migrated, errors=errors)


async def execute_action(
    session: AsyncSession,
    *,
    actor: User,
    user_id: int,
    action: AdminAction,
    mailer: Mailer,
    notification_mailer: Mailer,
    notifier: Notifier,
    reason: Optional[str] = None,
) -> Optional[User]:
    """Run any admin action; returns the user, or None when it was removed."""
    if action == AdminAction.VERIFY:
        return await verify_user(session, actor=actor, user_id=user_id, notifier=notifier)
    if action == AdminAction.RESEND_VERIFICATION:
        return await resend_verification(
            session, actor=actor, user_id=user_id, mailer=mailer, notifier=notifier
        )
    if action == AdminAction.APPROVE:
        return await approve_user(
            session,
            actor=actor,
            user_id=user_id,
            mailer=notification_mailer,
            notifier=notifier,
        )
    if action == AdminAction.REJECT:
        await reject_user(
            session,
            actor=actor,
            user_id=user_id,
            mailer=notification_mailer,
            notifier=notifier,
            reason=reason,
        )
        return None
    if action == AdminAction.MIGRATE:
        return await migrate_user(session, actor=actor, user_id=user_id, notifier=notifier)
    if action in (AdminAction.ACTIVATE, AdminAction.DEACTIVATE):
        return await set_active(
            session,
            actor=actor,
            user_id=user_id,
            active=action == AdminAction.ACTIVATE,
            notifier=notifier,
        )
    if action == AdminAction.DELETE:
        await delete_user(session, actor=actor, user_id=user_id, notifier=notifier)
        return None
    raise ValidationFailed("Edit users with PATCH /api/users/{id}")


# ---- Profile management ----
async def create_user(
    session: AsyncSession,
    *,
    actor: User,
    email: str,
    name: str,
    password: str,
    role: Role = Role.EDITOR,
    member_status: MemberStatus = MemberStatus.VISITOR,
) -> User:
    """Admin-created accounts skip verification and approval."""
    if role in ADMIN_ROLES and actor.role != Role.SUPER_ADMIN:
        raise PermissionDenied("Only super admins can create admin accounts")
    email = email.strip().lower()
    if await get_user_by_email(session, email):
        raise Conflict("An account with this email already exists")
    user = User(
        email=email,
        name=name.strip(),
        password_hash=security.get_password_hash(password),
        role=role,
        member_status=member_status,
        active=True,
        email_verified=True,
        approved=True,
        approved_at=utcnow(),
        approved_by_id=actor.id,
        refresh_token_param=random.randint(1, 1_000_000_000),
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise Conflict("An account with this email already exists") from exc
    await session.refresh(user)
    return user


async def update_user(
    session: AsyncSession, *, actor: User, user_id: int, **patch
) -> User:
    """
    Patch a profile.

    Members may edit themselves; admins may edit others. Roles are only
    changed by super admins and nobody grants themselves a board position.
    """
    unknown = sorted(set(patch) - PROFILE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Cannot update field(s): {', '.join(unknown)}")
    nulled = sorted(k for k in REQUIRED_PROFILE_FIELDS if k in patch and patch[k] is None)
    if nulled:
        raise ValidationFailed(f"Field(s) may not be null: {', '.join(nulled)}")
    target = await _get_or_404(session, User, user_id)
    is_self = target.id == actor.id
    is_admin = actor.role in ADMIN_ROLES
    if not is_self and not is_admin:
        raise PermissionDenied("Operation not permitted")
    if not is_self:
        _ensure_can_manage(actor, target)
    if "role" in patch and patch["role"] != target.role and actor.role != Role.SUPER_ADMIN:
        raise PermissionDenied("Only super admins can change roles")
    if "member_status" in patch and patch["member_status"] != target.member_status:
        if not is_admin:
            raise PermissionDenied("Only admins can change membership status")
        if is_self and patch["member_status"] in OFFICER_STATUSES:
            raise PermissionDenied("You cannot assign yourself an officer position")
    if patch.get("email"):
        email = patch["email"].strip().lower()
        existing = await get_user_by_email(session, email)
        if existing is not None and existing.id != target.id:
            raise Conflict("Email is already in use")
        patch["email"] = email

    for k, v in patch.items():
        if k == "password":
            if v is not None:
                target.password_hash = security.get_password_hash(v)
                # changing the password invalidates old refresh tokens
                target.refresh_token_param = target.refresh_token_param + 1
        else:
            setattr(target, k, v)
    session.add(target)
    await session.flush()
    await session.refresh(target)
    return target
