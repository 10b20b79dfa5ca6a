"""
User lifecycle classification and the admin actions each state allows.

Everything here is pure: no I/O, no session. The services module applies
these rules before mutating anything.
"""
from __future__ import annotations

from typing import FrozenSet

from sqlalchemy import and_, not_
from sqlalchemy.sql.elements import ColumnElement

from councilhub.members.enums import AdminAction, Bucket
from councilhub.utils import ActionNotAllowed, PermissionDenied


def classify(email_verified: bool, has_token: bool, approved: bool) -> Bucket:
    """
    Map a user's three lifecycle flags to exactly one bucket.

    ``approved`` wins over everything else, including the
    approved-but-unverified rows some old imports left behind.
    """
    if approved:
        return Bucket.ACTIVE
    if not email_verified:
        return Bucket.UNVERIFIED if has_token else Bucket.LEGACY
    return Bucket.PENDING_APPROVAL


def bucket_filter(bucket: Bucket) -> ColumnElement[bool]:
    """SQL predicate selecting the users that ``classify`` puts in ``bucket``."""
    from councilhub.members.models import User

    has_token = User.email_verification_token.is_not(None)
    if bucket == Bucket.ACTIVE:
        return User.approved.is_(True)
    if bucket == Bucket.UNVERIFIED:
        return and_(not_(User.approved), not_(User.email_verified), has_token)
    if bucket == Bucket.LEGACY:
        return and_(
            not_(User.approved),
            not_(User.email_verified),
            User.email_verification_token.is_(None),
        )
    return and_(not_(User.approved), User.email_verified.is_(True))


_BUCKET_ACTIONS = {
    Bucket.UNVERIFIED: frozenset({AdminAction.VERIFY, AdminAction.RESEND_VERIFICATION}),
    Bucket.PENDING_APPROVAL: frozenset({AdminAction.APPROVE, AdminAction.REJECT}),
    Bucket.LEGACY: frozenset({AdminAction.MIGRATE}),
}

SELF_GUARDED = frozenset(
    {
        AdminAction.APPROVE,
        AdminAction.REJECT,
        AdminAction.ACTIVATE,
        AdminAction.DEACTIVATE,
        AdminAction.DELETE,
    }
)


def permitted_actions(
    bucket: Bucket, *, is_self: bool = False, active: bool = True
) -> FrozenSet[AdminAction]:
    """Actions an admin may take on a user in ``bucket``."""
    if bucket == Bucket.ACTIVE:
        toggle = AdminAction.DEACTIVATE if active else AdminAction.ACTIVATE
        actions = frozenset({toggle, AdminAction.DELETE, AdminAction.EDIT})
    else:
        actions = _BUCKET_ACTIONS[bucket]
    if is_self:
        actions = actions - SELF_GUARDED
    return actions


def ensure_permitted(
    action: AdminAction, bucket: Bucket, *, is_self: bool, active: bool = True
) -> None:
    """Raise unless ``action`` is allowed; self-actions are refused first."""
    if is_self and action in SELF_GUARDED:
        raise PermissionDenied(f"You cannot {action.value} your own account")
    if action not in permitted_actions(bucket, is_self=is_self, active=active):
        raise ActionNotAllowed(
            f"Action '{action.value}' is not available for {bucket.value} users"
        )
