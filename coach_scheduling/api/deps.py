from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from coach_scheduling.core.config import settings
from coach_scheduling.core.security import decode_access_token
from coach_scheduling.models.appointment import Requester
from coach_scheduling.services.scheduling_core import SchedulingCore

security = HTTPBearer(auto_error=False)


def get_core(request: Request) -> SchedulingCore:
    core = getattr(request.app.state, "core", None)
    if core is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduling is starting up, please retry",
        )
    return core


def get_current_requester(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Requester:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    claims = decode_access_token(credentials.credentials)
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    email = claims.get("email") or ""
    return Requester(
        user_id=str(claims["sub"]),
        display_name=claims.get("name") or email.split("@")[0] or "Client",
        contact_address=email,
    )


def get_admin(requester: Requester = Depends(get_current_requester)) -> Requester:
    """Admin screens are limited to the configured admin account."""
    admin_email = settings.admin_email
    if not admin_email or requester.contact_address.lower() != admin_email.lower():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to manage the schedule",
        )
    return requester
