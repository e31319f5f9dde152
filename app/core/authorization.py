from enum import Enum

from fastapi import Depends, HTTPException

from app.core.errors import ForbiddenError
from app.deps.auth import CurrentUser, require_auth


class Role(Enum):
    ADMIN = "ADMIN"
    PROJECT_MANAGER = "PROJECT_MANAGER"


_RANK = {
    Role.PROJECT_MANAGER: 1,
    Role.ADMIN: 2,
}


def require_role(role: Role):
    def dependency(user: CurrentUser = Depends(require_auth)) -> CurrentUser:
        try:
            user_role = Role(user.role)
        except ValueError as exc:
            raise HTTPException(status_code=403, detail="Invalid role claim") from exc

        if _RANK[user_role] < _RANK[role]:
            raise HTTPException(status_code=403, detail="Insufficient role")

        return user

    return dependency


def ensure_project_access(user: CurrentUser, project) -> None:
    """Admins see every project; a project manager only the ones they manage."""
    if user.is_admin:
        return
    manager_email = (project.project_manager_email or "").strip().lower()
    if not user.email or manager_email != user.email.strip().lower():
        raise ForbiddenError(f"No access to project {project.id}")
