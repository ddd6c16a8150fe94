from typing import Dict, Any
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from studyroom.core.exceptions import AuthenticationError, AuthorizationError
from studyroom.core.security import decode_admin_token
from studyroom.core.time_service import CivilClock, clock

security = HTTPBearer(
    scheme_name="Admin JWT",
    description="Access token issued by the identity provider",
    auto_error=False,
)


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Dict[str, Any]:
    """Dependency for administrator authentication"""
    if credentials is None or not credentials.credentials.strip():
        raise AuthenticationError("Authentication data is required")

    return decode_admin_token(credentials.credentials)


async def get_current_tenant_id(
    admin: Dict[str, Any] = Depends(get_current_admin),
) -> int:
    """Tenant scope of the authenticated administrator"""
    try:
        return int(admin["tenant_id"])
    except (TypeError, ValueError):
        raise AuthorizationError("Token tenant scope is invalid")


async def get_current_admin_id(
    admin: Dict[str, Any] = Depends(get_current_admin),
) -> str:
    return str(admin.get("sub") or admin.get("admin_id") or "admin")


def get_clock() -> CivilClock:
    """Civil clock used by request handlers"""
    return clock


async def get_current_operator(
    admin: Dict[str, Any] = Depends(get_current_admin),
) -> Dict[str, Any]:
    """Jobs span every tenant, so they need the operator role"""
    if admin.get("role") != "operator":
        raise AuthorizationError("Operator role is required")
    return admin
