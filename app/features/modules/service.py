"""
Module management.

Module names follow the rules in `validators.py`; a module cannot be
deleted (soft or hard) while permissions still point at it.
"""
from typing import List, Optional, Tuple

from sqlalchemy.orm import selectinload

from app.core.errors import ConflictError, ValidationError
from app.core.service import EntityService, changed_fields, search_condition
from app.features.modules.models import Module
from app.features.modules.schemas import ModuleCreate, ModuleUpdate
from app.features.modules.validators import validate_module_name
from app.features.permissions.models import ACTIONS, Permission
from app.utils import get_logger


log = get_logger(__name__)


class ModuleService(EntityService):
    resource = "module"

    async def list(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Module], int]:
        conditions = search_condition(search, Module.name, Module.description)
        filters = {} if is_active is None else {"is_active": is_active}
        modules = await self.store.find_all(Module, *conditions, limit=limit, offset=offset, **filters)
        total = await self.store.count(Module, *conditions, **filters)
        return modules, total

    async def get(self, module_id: str) -> Module:
        return await self._get_or_404(Module, module_id)

    async def _check_name(self, name: str, exclude_id: Optional[str] = None) -> None:
        errors = validate_module_name(name)
        if errors:
            raise ValidationError("; ".join(errors), errors={"name": errors})

        conditions = [Module.id != exclude_id] if exclude_id else []
        if await self.store.find_one(Module, *conditions, name=name):
            raise ConflictError("Module name already exists", errors={"name": name})

    async def _check_no_permissions(self, module_id: str) -> None:
        if await self.store.count(Permission, module_id=module_id):
            raise ValidationError(
                "Cannot delete module with existing permissions. Delete permissions first.",
                errors={"module_id": module_id},
            )

    async def create(self, data: ModuleCreate) -> Module:
        await self._check_name(data.name)
        module = await self.store.create(Module, **data.model_dump())
        log.info("Created module %s (%s)", module.id, module.name)
        self._record("MODULE_CREATED", module.id, {"name": module.name})
        return module

    async def update(self, module_id: str, data: ModuleUpdate) -> Module:
        module = await self.get(module_id)
        changes = changed_fields(data, nullable=("description",))
        if "name" in changes and changes["name"] != module.name:
            await self._check_name(changes["name"] or "", exclude_id=module.id)

        module = await self.store.update(module, **changes)
        log.info("Updated module %s", module.id)
        self._record("MODULE_UPDATED", module.id, {"fields": sorted(changes)})
        return module

    async def delete(self, module_id: str) -> None:
        module = await self.get(module_id)
        await self._check_no_permissions(module_id)
        await self.store.update(module, is_active=False)
        log.info("Deactivated module %s", module_id)
        self._record("MODULE_DELETED", module_id, {"name": module.name})

    async def hard_delete(self, module_id: str) -> None:
        module = await self.get(module_id)
        await self._check_no_permissions(module_id)
        await self.store.destroy(module)
        log.info("Deleted module %s", module_id)
        self._record("MODULE_HARD_DELETED", module_id, {"name": module.name})

    async def create_standard_permissions(self, module_id: str) -> List[Permission]:
        """
        Create the CRUD permissions a module is missing.

        Permissions are named "<Module> <Action>" (e.g. "Billing Read") and
        described "<Action> <module>". Actions that already have a
        permission on the module are left alone.
        """
        module = await self.get(module_id)
        existing = {
            permission.action
            for permission in await self.store.find_all(Permission, module_id=module.id, action=list(ACTIONS))
        }

        created = []
        for action in ACTIONS:
            if action in existing:
                continue
            permission = await self.store.create(
                Permission,
                name=f"{module.name} {action.capitalize()}",
                action=action,
                description=f"{action.capitalize()} {module.name.lower()}",
                module_id=module.id,
                is_active=True,
            )
            created.append(await self.store.find_by_id(
                Permission, permission.id, options=[selectinload(Permission.module)]
            ))

        log.info("Created %d standard permissions for module %s", len(created), module.id)
        if created:
            self._record("STANDARD_PERMISSIONS_CREATED", module.id, {
                "actions": [permission.action for permission in created],
            })
        return created
