"""
Seed script to populate default modules, permissions, roles and groups.

Run this script after database initialization to create:
- The modules guarding this service's own API, each with its standard
  create/read/update/delete permissions
- Default roles with their permissions
- Default groups holding those roles
- Optionally, an administrator account (ADMIN_USERNAME, ADMIN_EMAIL and
  ADMIN_PASSWORD in the environment) in the Administrators group

Running it again only creates what is missing.

Usage:
    python -m scripts.seed_permissions
"""
import asyncio

from app.core import config
from app.core.database.engine import get_db, init_db
from app.core.database.store import EntityStore
from app.features.groups.models import Group
from app.features.groups.schemas import GroupCreate
from app.features.groups.service import GroupService
from app.features.modules.models import Module
from app.features.modules.schemas import ModuleCreate
from app.features.modules.service import ModuleService
from app.features.permissions.dependencies import SYSTEM_MODULES
from app.features.permissions.models import Permission
from app.features.relationships.manager import RelationshipManager
from app.features.relationships.relations import GROUP_ROLE, ROLE_PERMISSION, USER_GROUP
from app.features.roles.models import Role
from app.features.roles.schemas import RoleCreate
from app.features.roles.service import RoleService
from app.features.users.models import User
from app.features.users.schemas import UserCreate
from app.features.users.service import UserService
from app.utils import get_logger


log = get_logger(__name__)


MODULE_DESCRIPTIONS = {
    "Users": "User accounts",
    "Groups": "Groups and their members",
    "Roles": "Roles and their permissions",
    "Modules": "Application modules",
    "Permissions": "Permissions and effective permission lookups",
    "Audit": "Audit log, statistics and system health",
}


DEFAULT_ROLES = {
    "system_admin": {
        "description": "System administrator with all permissions",
        "actions": "ALL",  # Special case - gets every permission
    },
    "auditor": {
        "description": "Auditor with read-only access to every module",
        "actions": ["read"],
    },
}


DEFAULT_GROUPS = {
    "Administrators": {"description": "Full access to the RBAC service", "roles": ["system_admin"]},
    "Auditors": {"description": "Read-only access", "roles": ["auditor"]},
}


async def seed_modules(store: EntityStore) -> list[Permission]:
    """
    Create the system modules and their standard permissions.

    Returns:
        Every permission on the system modules
    """
    log.info("Creating system modules...")
    modules = ModuleService(store)

    for name in SYSTEM_MODULES:
        module = await store.find_one(Module, name=name)
        if module is None:
            module = await modules.create(ModuleCreate(name=name, description=MODULE_DESCRIPTIONS[name]))
            log.info("Created module: %s", name)
        else:
            log.debug("Module '%s' already exists, skipping", name)

        created = await modules.create_standard_permissions(module.id)
        if created:
            log.info("Created %d permissions for %s", len(created), name)

    module_ids = [module.id for module in await store.find_all(Module, name=list(SYSTEM_MODULES))]
    return await store.find_all(Permission, module_id=module_ids)


async def seed_roles(store: EntityStore, permissions: list[Permission]) -> dict[str, Role]:
    """
    Create default roles and assign permissions.

    Returns:
        Dictionary mapping role names to Role objects
    """
    log.info("Creating default roles...")
    roles = RoleService(store)
    roles_map = {}

    for role_name, role_config in DEFAULT_ROLES.items():
        role = await store.find_one(Role, name=role_name)
        if role is None:
            role = await roles.create(RoleCreate(name=role_name, description=role_config["description"]))
            log.info("Created role '%s'", role_name)

        if role_config["actions"] == "ALL":
            permission_ids = [permission.id for permission in permissions]
        else:
            permission_ids = [p.id for p in permissions if p.action in role_config["actions"]]

        if permission_ids:
            result = await RelationshipManager(store, ROLE_PERMISSION).assign(role.id, permission_ids)
            log.info("Role '%s': %d permissions assigned, %d already held", role_name, result.assigned, result.skipped)
        roles_map[role_name] = role

    return roles_map


async def seed_groups(store: EntityStore, roles_map: dict[str, Role]) -> dict[str, Group]:
    """Create default groups holding the default roles."""
    log.info("Creating default groups...")
    groups = GroupService(store)
    groups_map = {}

    for group_name, group_config in DEFAULT_GROUPS.items():
        group = await store.find_one(Group, name=group_name)
        if group is None:
            group = await groups.create(GroupCreate(name=group_name, description=group_config["description"]))
            log.info("Created group '%s'", group_name)

        role_ids = [roles_map[name].id for name in group_config["roles"]]
        await RelationshipManager(store, GROUP_ROLE).assign(group.id, role_ids)
        groups_map[group_name] = group

    return groups_map


async def seed_admin(store: EntityStore, administrators: Group) -> None:
    """Create the bootstrap administrator when credentials are configured."""
    if not (config.ADMIN_USERNAME and config.ADMIN_EMAIL and config.ADMIN_PASSWORD):
        log.info("ADMIN_USERNAME/ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping administrator account")
        return

    user = await store.find_one(User, username=config.ADMIN_USERNAME)
    if user is None:
        user = await UserService(store).create(UserCreate(
            username=config.ADMIN_USERNAME,
            email=config.ADMIN_EMAIL,
            password=config.ADMIN_PASSWORD,
        ))
        log.info("Created administrator '%s'", user.username)

    await RelationshipManager(store, USER_GROUP).assign(administrators.id, [user.id])


async def main():
    """Main function to seed modules, permissions, roles and groups."""
    log.info("Starting permission seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    # get_db commits once the generator is resumed after a successful run
    async for db in get_db():
        store = EntityStore(db)
        try:
            permissions = await seed_modules(store)
            roles_map = await seed_roles(store, permissions)
            groups_map = await seed_groups(store, roles_map)
            await seed_admin(store, groups_map["Administrators"])
        except Exception as e:
            log.error("Error seeding permissions: %s", e, exc_info=True)
            await db.rollback()
            raise

        log.info("Permission seeding completed successfully!")
        for role_name, role_config in DEFAULT_ROLES.items():
            log.info("  - %s: %s", role_name, role_config["description"])


if __name__ == "__main__":
    asyncio.run(main())
