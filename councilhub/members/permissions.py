from fastapi import Depends, HTTPException, status

from councilhub.auth.dependencies import get_current_user_db
from councilhub.members.enums import Role
from councilhub.members.models import User


class PermissionChecker:
    """Role checks shared by the API and the admin console."""

    @staticmethod
    def is_super_admin(user: User) -> bool:
        """Check if user is super admin"""
        return user.role == Role.SUPER_ADMIN

    @staticmethod
    def is_admin(user: User) -> bool:
        """Check if user is admin or super admin"""
        return user.role in [Role.SUPER_ADMIN, Role.ADMIN]

    @staticmethod
    def is_editor(user: User) -> bool:
        """Editors and above may manage events, tasks and the directory"""
        return user.role in [Role.SUPER_ADMIN, Role.ADMIN, Role.EDITOR]


def require_editor(current_user: User = Depends(get_current_user_db)) -> User:
    """Dependency to require editor role or higher"""
    if not PermissionChecker.is_editor(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Editor privileges required"
        )
    return current_user


def require_admin(current_user: User = Depends(get_current_user_db)) -> User:
    """Dependency to require admin or super admin role"""
    if not PermissionChecker.is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user


def require_super_admin(current_user: User = Depends(get_current_user_db)) -> User:
    """Dependency to require super admin role"""
    if not PermissionChecker.is_super_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required"
        )
    return current_user
