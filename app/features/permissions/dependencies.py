"""
Route protection.

Routes declare the module and action they need; the acting user must hold
that permission through one of their groups.
"""
from typing import Annotated

from fastapi import Depends

from app.core.database.store import EntityStore
from app.core.dependencies import get_store
from app.core.errors import ForbiddenError, NotFoundError
from app.features.permissions.resolver import PermissionResolver
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

# Modules guarding this service's own API, created by scripts/seed_permissions.py
SYSTEM_MODULES = ("Users", "Groups", "Roles", "Modules", "Permissions", "Audit")


def require_permission(module: str, action: str):
    """
    FastAPI dependency to require a permission on a module.
    
    Usage:
        @router.post("/roles")
        async def create_role(
            user: User = Depends(require_permission("Roles", "create"))
        ):
            pass
    
    Returns:
        Dependency function that returns the current user if they hold the permission
    
    Raises:
        ForbiddenError: 403 if they don't (including when the module does not exist)
    """
    async def permission_dependency(
        current_user: Annotated[User, Depends(get_current_user)],
        store: Annotated[EntityStore, Depends(get_store)]
    ) -> User:
        resolver = PermissionResolver(store)
        try:
            allowed = await resolver.check(current_user.id, module, action)
        except NotFoundError:
            log.warning("Permission check against unknown module %r", module)
            allowed = False
        
        if not allowed:
            log.debug("User %s denied %s on %s", current_user.id, action, module)
            raise ForbiddenError(f"Permission denied: {action} on {module}")
        
        return current_user
    
    return permission_dependency
