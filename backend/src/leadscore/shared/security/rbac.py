"""Role-Based Access Control (RBAC): FastAPI dependency factories.

Provides dependency factories that enforce role-based authorization
on protected endpoints.
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, status

from leadscore.dependencies import get_current_user


def require_role(*allowed_roles: str):  # type: ignore[no-untyped-def]
    """Create a FastAPI dependency that enforces role-based access.

    Usage:
        @router.post("/providers", dependencies=[Depends(require_role(*ADMIN_ROLES))])
        async def create_provider(): ...
    """

    async def _check_role(user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
        user_role = user.get("role", "")
        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {', '.join(allowed_roles)}",
            )
        return user

    return _check_role
