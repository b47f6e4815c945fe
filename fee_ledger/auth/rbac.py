from typing import Dict

from fastapi import Depends, HTTPException, status

from fee_ledger.app_logger import get_logger
from fee_ledger.auth.dependencies import get_current_user
from fee_ledger.auth.schemas import CurrentUser

logger = get_logger(__name__)

# School and platform administrators manage fees without module grants
ADMIN_ROLES = ("SUPER_ADMIN", "PLATFORM_ADMIN", "ADMIN")


def has_permission(user: CurrentUser, module: str, action: str) -> bool:
    if user.role in ADMIN_ROLES:
        return True
    permissions: Dict[str, Dict[str, bool]] = user.permissions or {}
    return bool(permissions.get(module, {}).get(action, False))


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a module permission from the token's grants.

    Example:
        Depends(check_permission("fees", "create"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_permission(current_user, module, action):
            logger.warning(
                "Denied %s.%s to user %s (role %s, tenant %s)",
                module, action, current_user.id, current_user.role, current_user.tenant_id,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker
