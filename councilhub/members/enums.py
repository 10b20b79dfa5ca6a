from enum import Enum


class Role(str, Enum):
    """Global user roles, lowest to highest."""
    MEMBER = "MEMBER"
    EDITOR = "EDITOR"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class MemberStatus(str, Enum):
    VISITOR = "VISITOR"
    MEMBER = "MEMBER"
    VOTING_MEMBER = "VOTING_MEMBER"
    PRESIDENT = "PRESIDENT"
    VICE_PRESIDENT = "VICE_PRESIDENT"
    TREASURER = "TREASURER"
    SECRETARY = "SECRETARY"


# Board positions a member cannot grant to themselves
OFFICER_STATUSES = frozenset(
    {
        MemberStatus.PRESIDENT,
        MemberStatus.VICE_PRESIDENT,
        MemberStatus.TREASURER,
        MemberStatus.SECRETARY,
    }
)


class Bucket(str, Enum):
    """Lifecycle partition derived from a user's verification/approval flags."""
    UNVERIFIED = "unverified"
    PENDING_APPROVAL = "pending_approval"
    LEGACY = "legacy"
    ACTIVE = "active"


class AdminAction(str, Enum):
    VERIFY = "verify"
    RESEND_VERIFICATION = "resend_verification"
    APPROVE = "approve"
    REJECT = "reject"
    MIGRATE = "migrate"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    DELETE = "delete"
    EDIT = "edit"
