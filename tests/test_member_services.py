from datetime import timedelta

import pytest

from councilhub.mail.base import MessageCollector
from councilhub.members import services
from councilhub.members.enums import AdminAction, Bucket, Role
from councilhub.members.models import User
from councilhub.utils import (
    ActionNotAllowed,
    CollaboratorError,
    Conflict,
    PermissionDenied,
    ValidationFailed,
    utcnow,
)
from tests.conftest import FakeMailer, make_user


@pytest.mark.anyio
async def test_register_creates_unverified_account(dbsession, mailer):
    notes = MessageCollector()
    user, sent = await services.register_user(
        dbsession,
        email="  New.Member@Example.com ",
        name="New Member",
        password="Password123",
        mailer=mailer,
        notifier=notes,
    )
    assert sent
    assert user.email == "new.member@example.com"
    assert user.bucket == Bucket.UNVERIFIED
    assert user.role == Role.EDITOR
    assert not user.active
    assert user.email_verification_token in mailer.sent[0].html
    assert notes.successes


@pytest.mark.anyio
async def test_register_keeps_account_when_mail_fails(dbsession):
    notes = MessageCollector()
    user, sent = await services.register_user(
        dbsession,
        email="quiet@example.com",
        name="Quiet",
        password="Password123",
        mailer=FakeMailer(fail=True),
        notifier=notes,
    )
    assert not sent
    assert user.id is not None
    assert notes.errors


@pytest.mark.anyio
async def test_register_duplicate_email(dbsession, mailer):
    await make_user(dbsession, "taken@example.com")
    with pytest.raises(Conflict):
        await services.register_user(
            dbsession,
            email="TAKEN@example.com",
            name="Someone",
            password="Password123",
            mailer=mailer,
            notifier=MessageCollector(),
        )


@pytest.mark.anyio
async def test_verify_token_moves_to_pending_and_notifies_admins(
    dbsession, admin, notification_mailer
):
    user = await make_user(
        dbsession, "fresh@example.com", verified=False, token="abc123", approved=False
    )
    verified = await services.verify_email_token(
        dbsession,
        token="abc123",
        notification_mailer=notification_mailer,
        notifier=MessageCollector(),
    )
    assert verified.id == user.id
    assert verified.bucket == Bucket.PENDING_APPROVAL
    assert verified.email_verification_token is None
    assert [m.to for m in notification_mailer.sent] == [admin.email]


@pytest.mark.anyio
async def test_verify_expired_token(dbsession, notification_mailer):
    user = await make_user(
        dbsession, "late@example.com", verified=False, token="old", approved=False
    )
    user.email_verification_expires = utcnow() - timedelta(hours=1)
    await dbsession.flush()
    with pytest.raises(ValidationFailed):
        await services.verify_email_token(
            dbsession,
            token="old",
            notification_mailer=notification_mailer,
            notifier=MessageCollector(),
        )


@pytest.mark.anyio
async def test_approve_pending_user(dbsession, admin, notification_mailer):
    pending = await make_user(dbsession, "pending@example.com", approved=False)
    notes = MessageCollector()
    user = await services.approve_user(
        dbsession,
        actor=admin,
        user_id=pending.id,
        mailer=notification_mailer,
        notifier=notes,
    )
    assert user.bucket == Bucket.ACTIVE
    assert user.active
    assert user.approved_by_id == admin.id
    assert user.approved_at is not None
    assert notification_mailer.to("pending@example.com")


@pytest.mark.anyio
async def test_approve_is_idempotent(dbsession, admin, notification_mailer):
    member = await make_user(dbsession, "member@example.com")
    before = (member.approved_at, member.approved_by_id)
    notes = MessageCollector()
    user = await services.approve_user(
        dbsession,
        actor=admin,
        user_id=member.id,
        mailer=notification_mailer,
        notifier=notes,
    )
    assert (user.approved_at, user.approved_by_id) == before
    assert notification_mailer.sent == []
    assert notes.successes == [f"{member.name} is already approved"]


@pytest.mark.anyio
async def test_approve_unverified_is_not_allowed(dbsession, admin, notification_mailer):
    unverified = await make_user(
        dbsession, "u@example.com", verified=False, token="t", approved=False
    )
    with pytest.raises(ActionNotAllowed):
        await services.approve_user(
            dbsession,
            actor=admin,
            user_id=unverified.id,
            mailer=notification_mailer,
            notifier=MessageCollector(),
        )


@pytest.mark.anyio
async def test_self_deactivate_is_refused_without_changes(dbsession, admin):
    rtp = admin.refresh_token_param
    with pytest.raises(PermissionDenied):
        await services.set_active(
            dbsession, actor=admin, user_id=admin.id, active=False, notifier=MessageCollector()
        )
    await dbsession.refresh(admin)
    assert admin.active
    assert admin.refresh_token_param == rtp


@pytest.mark.anyio
async def test_deactivate_revokes_refresh_tokens(dbsession, admin, editor):
    rtp = editor.refresh_token_param
    user = await services.set_active(
        dbsession, actor=admin, user_id=editor.id, active=False, notifier=MessageCollector()
    )
    assert not user.active
    assert user.refresh_token_param == rtp + 1
    assert user.bucket == Bucket.ACTIVE

    notes = MessageCollector()
    await services.set_active(
        dbsession, actor=admin, user_id=editor.id, active=False, notifier=notes
    )
    assert "already inactive" in notes.successes[0]


@pytest.mark.anyio
async def test_admin_cannot_manage_other_admins(dbsession, admin, super_admin):
    other = await make_user(dbsession, "other-admin@example.com", role=Role.ADMIN)
    with pytest.raises(PermissionDenied):
        await services.set_active(
            dbsession, actor=admin, user_id=other.id, active=False, notifier=MessageCollector()
        )
    user = await services.set_active(
        dbsession, actor=super_admin, user_id=other.id, active=False, notifier=MessageCollector()
    )
    assert not user.active


@pytest.mark.anyio
async def test_reject_deletes_and_mentions_reason_only_when_given(
    dbsession, admin, notification_mailer
):
    first = await make_user(dbsession, "first@example.com", approved=False)
    second = await make_user(dbsession, "second@example.com", approved=False)
    first_id = first.id

    await services.reject_user(
        dbsession,
        actor=admin,
        user_id=first_id,
        mailer=notification_mailer,
        notifier=MessageCollector(),
        reason="Not a resident of the county",
    )
    await services.reject_user(
        dbsession,
        actor=admin,
        user_id=second.id,
        mailer=notification_mailer,
        notifier=MessageCollector(),
        reason="   ",
    )

    assert await dbsession.get(User, first_id) is None
    with_reason = notification_mailer.to("first@example.com")[0]
    without_reason = notification_mailer.to("second@example.com")[0]
    assert "Not a resident of the county" in with_reason.html
    assert "Reason" not in without_reason.html


@pytest.mark.anyio
async def test_reject_active_user_is_not_allowed(dbsession, admin, editor, notification_mailer):
    with pytest.raises(ActionNotAllowed):
        await services.reject_user(
            dbsession,
            actor=admin,
            user_id=editor.id,
            mailer=notification_mailer,
            notifier=MessageCollector(),
        )
    assert await dbsession.get(User, editor.id) is not None


@pytest.mark.anyio
async def test_resend_failure_leaves_token_untouched(dbsession, admin):
    user = await make_user(
        dbsession, "stale@example.com", verified=False, token="expired", approved=False
    )
    user.email_verification_expires = utcnow() - timedelta(days=2)
    await dbsession.flush()

    with pytest.raises(CollaboratorError):
        await services.resend_verification(
            dbsession,
            actor=admin,
            user_id=user.id,
            mailer=FakeMailer(fail=True),
            notifier=MessageCollector(),
        )
    await dbsession.refresh(user)
    assert user.email_verification_token == "expired"


@pytest.mark.anyio
async def test_resend_reuses_live_token_and_replaces_expired_one(dbsession, admin, mailer):
    live = await make_user(
        dbsession, "live@example.com", verified=False, token="still-good", approved=False
    )
    live.email_verification_expires = utcnow() + timedelta(hours=5)
    stale = await make_user(
        dbsession, "old@example.com", verified=False, token="gone", approved=False
    )
    stale.email_verification_expires = utcnow() - timedelta(hours=5)
    await dbsession.flush()

    for user in (live, stale):
        await services.resend_verification(
            dbsession, actor=admin, user_id=user.id, mailer=mailer, notifier=MessageCollector()
        )
    await dbsession.refresh(live)
    await dbsession.refresh(stale)
    assert live.email_verification_token == "still-good"
    assert stale.email_verification_token not in (None, "gone")
    assert stale.email_verification_token in mailer.to("old@example.com")[0].html


@pytest.mark.anyio
async def test_public_resend_swallows_mail_failure(dbsession):
    await make_user(dbsession, "who@example.com", verified=False, token="x", approved=False)
    await services.resend_verification_public(
        dbsession, email="who@example.com", mailer=FakeMailer(fail=True)
    )
    await services.resend_verification_public(
        dbsession, email="nobody@example.com", mailer=FakeMailer(fail=True)
    )


@pytest.mark.anyio
async def test_migrate_legacy_users(dbsession, super_admin):
    legacy = [
        await make_user(
            dbsession, f"legacy{i}@example.com", verified=False, approved=False
        )
        for i in range(3)
    ]
    unverified = await make_user(
        dbsession, "waiting@example.com", verified=False, token="t", approved=False
    )
    notes = MessageCollector()

    result = await services.migrate_legacy_users(dbsession, actor=super_admin, notifier=notes)

    assert result.migrated_count == 3
    assert result.errors == []
    for user in legacy:
        await dbsession.refresh(user)
        assert user.bucket == Bucket.ACTIVE
        assert user.email_verified
    await dbsession.refresh(unverified)
    assert unverified.bucket == Bucket.UNVERIFIED
    assert await services.legacy_user_count(dbsession) == 0


@pytest.mark.anyio
async def test_migrate_requires_super_admin(dbsession, admin):
    await make_user(dbsession, "legacy@example.com", verified=False, approved=False)
    with pytest.raises(PermissionDenied):
        await services.migrate_legacy_users(dbsession, actor=admin, notifier=MessageCollector())
    assert await services.legacy_user_count(dbsession) == 1


@pytest.mark.anyio
async def test_bucket_counts_and_listing(dbsession, admin):
    await make_user(dbsession, "p@example.com", approved=False)
    await make_user(dbsession, "u@example.com", verified=False, token="t", approved=False)
    await make_user(dbsession, "l@example.com", verified=False, approved=False)

    counts = await services.bucket_counts(dbsession)
    assert counts == {
        Bucket.ACTIVE: 1,
        Bucket.PENDING_APPROVAL: 1,
        Bucket.UNVERIFIED: 1,
        Bucket.LEGACY: 1,
    }
    pending = await services.list_users(dbsession, bucket=Bucket.PENDING_APPROVAL)
    assert [u.email for u in pending] == ["p@example.com"]


@pytest.mark.anyio
async def test_delete_only_for_active_bucket(dbsession, admin, editor):
    pending = await make_user(dbsession, "pending@example.com", approved=False)
    with pytest.raises(ActionNotAllowed):
        await services.delete_user(
            dbsession, actor=admin, user_id=pending.id, notifier=MessageCollector()
        )
    editor_id = editor.id
    await services.delete_user(dbsession, actor=admin, user_id=editor_id, notifier=MessageCollector())
    assert await dbsession.get(User, editor_id) is None


@pytest.mark.anyio
async def test_execute_action_rejects_edit(dbsession, admin, editor, mailer):
    with pytest.raises(ValidationFailed):
        await services.execute_action(
            dbsession,
            actor=admin,
            user_id=editor.id,
            action=AdminAction.EDIT,
            mailer=mailer,
            notification_mailer=mailer,
            notifier=MessageCollector(),
        )


@pytest.mark.anyio
async def test_update_user_role_rules(dbsession, admin, super_admin, editor):
    with pytest.raises(PermissionDenied):
        await services.update_user(dbsession, actor=admin, user_id=editor.id, role=Role.ADMIN)
    with pytest.raises(PermissionDenied):
        await services.update_user(dbsession, actor=editor, user_id=admin.id, name="Nope")
    user = await services.update_user(
        dbsession, actor=super_admin, user_id=editor.id, role=Role.ADMIN
    )
    assert user.role == Role.ADMIN


@pytest.mark.anyio
async def test_password_change_bumps_refresh_param(dbsession, editor):
    before = editor.refresh_token_param
    user = await services.update_user(
        dbsession, actor=editor, user_id=editor.id, password="An0therPassword"
    )
    assert user.refresh_token_param == before + 1
    found = await services.authenticate_user(dbsession, editor.email, "An0therPassword")
    assert found is not None and found.id == editor.id


@pytest.mark.anyio
async def test_update_user_only_touches_profile_fields(dbsession, super_admin, editor):
    with pytest.raises(ValidationFailed):
        await services.update_user(
            dbsession, actor=super_admin, user_id=editor.id, email_verified=False
        )
    with pytest.raises(ValidationFailed):
        await services.update_user(dbsession, actor=super_admin, user_id=editor.id, name=None)
    await dbsession.refresh(editor)
    assert editor.email_verified is True
    assert editor.name
