from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from app.services.auth_service import verify_token


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    @property
    def actor(self) -> str:
        """Name recorded in audit entries and snapshots."""
        return self.name or self.email or self.user_id


def _parse_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise HTTPException(status_code=401, detail="Invalid Authorization header")

    return parts[1].strip()


def require_auth(request: Request) -> CurrentUser:
    token = _parse_bearer_token(request)

    try:
        claims = verify_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user = CurrentUser(
        user_id=str(claims.get("sub")),
        role=str(claims.get("role")).upper(),
        name=claims.get("name"),
        email=claims.get("email"),
    )

    request.state.user_id = user.user_id
    request.state.role = user.role

    return user
