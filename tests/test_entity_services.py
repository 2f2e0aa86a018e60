import pytest

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.features.groups.models import Group
from app.features.groups.schemas import GroupCreate, GroupUpdate
from app.features.groups.service import GroupService
from app.features.modules.models import Module
from app.features.modules.schemas import ModuleCreate, ModuleUpdate
from app.features.modules.service import ModuleService
from app.features.permissions.models import Permission
from app.features.permissions.schemas import PermissionCreate, PermissionUpdate
from app.features.permissions.service import PermissionService
from app.features.relationships.models import group_roles, role_permissions, user_groups
from app.features.roles.models import Role
from app.features.roles.schemas import RoleCreate
from app.features.roles.service import RoleService
from app.features.users.auth import verify_password
from app.features.users.models import User
from app.features.users.schemas import UserCreate, UserUpdate
from app.features.users.service import UserService


# ============================================================================
# Users
# ============================================================================

async def test_create_user_hashes_password(store, audit_log):
    service = UserService(store, audit_log, actor_id="actor-1")

    user = await service.create(UserCreate(username="alice", email="alice@example.com", password="s3cret-pass"))

    assert user.password_hash != "s3cret-pass"
    assert verify_password("s3cret-pass", user.password_hash)
    event = audit_log.query(limit=1)[0]
    assert (event.action, event.resource_id, event.user_id) == ("USER_CREATED", user.id, "actor-1")


async def test_create_user_conflicts(factory, store):
    await factory.user("alice")
    service = UserService(store)

    with pytest.raises(ConflictError) as exc_info:
        await service.create(UserCreate(username="other", email="alice@example.com", password="password123"))
    assert exc_info.value.message == "Email already exists"

    with pytest.raises(ConflictError) as exc_info:
        await service.create(UserCreate(username="alice", email="new@example.com", password="password123"))
    assert exc_info.value.message == "Username already exists"


async def test_update_user_rehashes_password_and_keeps_own_email(factory, store, audit_log):
    alice = await factory.user("alice")
    service = UserService(store, audit_log)

    user = await service.update(alice.id, UserUpdate(email="alice@example.com", password="new-password"))

    assert verify_password("new-password", user.password_hash)
    assert audit_log.query(limit=1)[0].details == {"fields": ["email", "password"]}


async def test_update_user_ignores_null_for_required_fields(factory, store):
    alice = await factory.user("alice", first_name="Alice")
    service = UserService(store)

    user = await service.update(alice.id, UserUpdate(username=None, first_name=None))

    assert user.username == "alice"
    assert user.first_name is None


async def test_delete_user_is_soft_and_keeps_memberships(factory, store):
    alice = await factory.user("alice")
    await factory.add_to_group(alice, await factory.group("editors"))

    await UserService(store).delete(alice.id)

    assert (await store.find_by_id(User, alice.id)).is_active is False
    assert await store.count_links(user_groups, user_id=alice.id) == 1


async def test_hard_delete_user_removes_memberships(factory, store):
    alice = await factory.user("alice")
    await factory.add_to_group(alice, await factory.group("editors"))

    await UserService(store).hard_delete(alice.id)

    assert await store.find_by_id(User, alice.id) is None
    assert await store.count_links(user_groups, user_id=alice.id) == 0


async def test_get_unknown_user(store):
    with pytest.raises(NotFoundError) as exc_info:
        await UserService(store).get("missing")
    assert exc_info.value.message == "User with ID missing not found"


async def test_list_users_filters(factory, store):
    editors = await factory.group("editors")
    alice = await factory.user("alice")
    await factory.user("bob")
    await factory.user("carol", is_active=False)
    await factory.add_to_group(alice, editors)
    service = UserService(store)

    users, total = await service.list(search="AL")
    assert ([u.username for u in users], total) == (["alice"], 1)

    users, total = await service.list(is_active=False)
    assert [u.username for u in users] == ["carol"]

    users, total = await service.list(group_id=editors.id)
    assert [u.username for u in users] == ["alice"]


# ============================================================================
# Groups
# ============================================================================

async def test_group_name_conflict(factory, store):
    await factory.group("editors")
    readers = await factory.group("readers")
    service = GroupService(store)

    with pytest.raises(ConflictError):
        await service.create(GroupCreate(name="editors"))
    with pytest.raises(ConflictError):
        await service.update(readers.id, GroupUpdate(name="editors"))


async def test_group_soft_delete_requires_no_users(factory, store):
    group = await factory.group("editors")
    alice = await factory.user("alice")
    await factory.add_to_group(alice, group)
    service = GroupService(store)

    with pytest.raises(ValidationError) as exc_info:
        await service.delete(group.id)
    assert exc_info.value.message == "Cannot delete group with assigned users. Remove users first."

    await store.unlink(user_groups, group_id=group.id)
    await service.delete(group.id)
    assert (await store.find_by_id(Group, group.id)).is_active is False


async def test_group_hard_delete_cascades(factory, store, audit_log):
    group = await factory.group("editors")
    await factory.add_to_group(await factory.user("alice"), group)
    await factory.grant_role(group, await factory.role("writer"))

    await GroupService(store, audit_log).hard_delete(group.id)

    assert await store.find_by_id(Group, group.id) is None
    assert await store.count_links(user_groups) == 0
    assert await store.count_links(group_roles) == 0
    assert audit_log.query(limit=1)[0].details == {"name": "editors", "users_removed": 1, "roles_removed": 1}


async def test_group_user_count(factory, store):
    group = await factory.group("editors")
    await factory.add_to_group(await factory.user("alice"), group)
    await factory.add_to_group(await factory.user("carol", is_active=False), group)

    count = await GroupService(store).get_user_count(group.id)

    assert (count.total, count.active, count.inactive) == (2, 1, 1)


async def test_group_statistics(factory, store):
    editors = await factory.group("editors")
    readers = await factory.group("readers")
    await factory.group("retired", is_active=False)
    await factory.add_to_group(await factory.user("alice"), editors)
    await factory.add_to_group(await factory.user("bob"), editors)
    writer = await factory.role("writer")
    await factory.grant_role(editors, writer)
    await factory.grant_role(readers, writer)
    await factory.grant_role(readers, await factory.role("reader"))

    stats = await GroupService(store).statistics()

    assert (stats.total, stats.active, stats.inactive) == (3, 2, 1)
    assert (stats.with_users, stats.without_users) == (1, 2)
    assert (stats.with_roles, stats.without_roles) == (2, 1)
    assert stats.average_users_per_group == 0.67
    assert stats.average_roles_per_group == 1.0


async def test_group_statistics_without_groups(store):
    stats = await GroupService(store).statistics()

    assert stats.total == 0
    assert stats.average_users_per_group == 0


# ============================================================================
# Roles
# ============================================================================

async def test_role_soft_delete_requires_no_groups(factory, store):
    role = await factory.role("writer")
    group = await factory.group("editors")
    await factory.grant_role(group, role)
    service = RoleService(store)

    with pytest.raises(ValidationError) as exc_info:
        await service.delete(role.id)
    assert exc_info.value.message == "Cannot delete role assigned to groups. Remove from groups first."

    await store.unlink(group_roles, role_id=role.id)
    await service.delete(role.id)
    assert (await store.find_by_id(Role, role.id)).is_active is False


async def test_role_hard_delete_cascades(factory, store):
    role = await factory.role("writer")
    module = await factory.module("Articles")
    await factory.grant_permission(role, await factory.permission(module, "read"))
    await factory.grant_role(await factory.group("editors"), role)

    await RoleService(store).hard_delete(role.id)

    assert await store.find_by_id(Role, role.id) is None
    assert await store.count_links(role_permissions) == 0
    assert await store.count_links(group_roles) == 0


async def test_role_name_conflict(factory, store):
    await factory.role("writer")

    with pytest.raises(ConflictError):
        await RoleService(store).create(RoleCreate(name="writer"))


async def test_clone_role_copies_permissions(factory, store, audit_log):
    module = await factory.module("Articles")
    read = await factory.permission(module, "read")
    create = await factory.permission(module, "create")
    writer = await factory.role("writer", is_active=False)
    await factory.grant_permission(writer, read)
    await factory.grant_permission(writer, create)
    service = RoleService(store, audit_log)

    clone = await service.clone(writer.id, "writer-copy")

    assert clone.description == "Clone of writer"
    assert clone.is_active is True
    assert {p.id for p in await service.get_permissions(clone.id)} == {read.id, create.id}
    assert audit_log.query(limit=1)[0].details == {"source_role_id": writer.id, "permissions": 2}

    with pytest.raises(ConflictError):
        await service.clone(writer.id, "writer-copy")


async def test_role_statistics(factory, store):
    module = await factory.module("Articles")
    read = await factory.permission(module, "read")
    writer = await factory.role("writer")
    await factory.role("reader")
    await factory.role("retired", is_active=False)
    await factory.grant_permission(writer, read)
    await factory.grant_role(await factory.group("editors"), writer)
    await factory.grant_role(await factory.group("readers"), writer)

    stats = await RoleService(store).statistics()

    assert (stats.total, stats.active, stats.inactive) == (3, 2, 1)
    assert (stats.with_permissions, stats.without_permissions) == (1, 2)
    assert (stats.with_groups, stats.without_groups) == (1, 2)
    assert stats.average_permissions_per_role == 0.33
    assert stats.average_groups_per_role == 0.67


# ============================================================================
# Modules
# ============================================================================

async def test_module_name_rules(store):
    with pytest.raises(ValidationError) as exc_info:
        await ModuleService(store).create(ModuleCreate(name="1"))

    assert exc_info.value.errors == {"name": [
        "Module name must be at least 2 characters long",
        "Module name must start with a letter",
    ]}


async def test_module_name_with_trailing_newline_is_rejected(store):
    with pytest.raises(ValidationError):
        await ModuleService(store).create(ModuleCreate(name="Billing\n"))
    assert await store.count(Module) == 0


async def test_module_name_conflict(factory, store):
    await factory.module("Articles")
    billing = await factory.module("Billing")
    service = ModuleService(store)

    with pytest.raises(ConflictError):
        await service.create(ModuleCreate(name="Articles"))
    with pytest.raises(ConflictError):
        await service.update(billing.id, ModuleUpdate(name="Articles"))


async def test_module_delete_requires_no_permissions(factory, store):
    module = await factory.module("Articles")
    permission = await factory.permission(module, "read")
    service = ModuleService(store)

    with pytest.raises(ValidationError):
        await service.delete(module.id)
    with pytest.raises(ValidationError):
        await service.hard_delete(module.id)

    await store.destroy(permission)
    await service.hard_delete(module.id)
    assert await store.find_by_id(Module, module.id) is None


async def test_create_standard_permissions_fills_missing_actions(factory, store, audit_log):
    module = await factory.module("Articles")
    await factory.permission(module, "read", name="Custom Read")
    service = ModuleService(store, audit_log)

    created = await service.create_standard_permissions(module.id)

    assert [(p.name, p.action, p.description) for p in created] == [
        ("Articles Create", "create", "Create articles"),
        ("Articles Update", "update", "Update articles"),
        ("Articles Delete", "delete", "Delete articles"),
    ]
    assert all(p.module.name == "Articles" for p in created)
    assert await store.count(Permission, module_id=module.id) == 4

    assert await service.create_standard_permissions(module.id) == []
    assert audit_log.query()[0].action == "STANDARD_PERMISSIONS_CREATED"


# ============================================================================
# Permissions
# ============================================================================

async def test_permission_triple_is_unique(factory, store):
    module = await factory.module("Articles")
    await factory.permission(module, "read", name="Articles Read")
    service = PermissionService(store)

    with pytest.raises(ConflictError) as exc_info:
        await service.create(PermissionCreate(name="Articles Read", action="READ", module_id=module.id))
    assert exc_info.value.message == "Permission with this name and action already exists for this module"

    # same name with another action is fine
    permission = await service.create(PermissionCreate(name="Articles Read", action="update", module_id=module.id))
    assert permission.module.name == "Articles"

    with pytest.raises(ConflictError):
        await service.update(permission.id, PermissionUpdate(action="read"))


async def test_permission_requires_existing_module(store):
    with pytest.raises(NotFoundError) as exc_info:
        await PermissionService(store).create(PermissionCreate(name="Ghost Read", action="read", module_id="ghost"))
    assert exc_info.value.message == "Module with ID ghost not found"


async def test_permission_delete_removes_grants(factory, store):
    module = await factory.module("Articles")
    read = await factory.permission(module, "read")
    await factory.grant_permission(await factory.role("writer"), read)

    await PermissionService(store).delete(read.id)

    assert await store.find_by_id(Permission, read.id) is None
    assert await store.count_links(role_permissions) == 0


async def test_list_permissions_filters(factory, store):
    articles = await factory.module("Articles")
    billing = await factory.module("Billing")
    await factory.permission(articles, "read")
    await factory.permission(articles, "delete")
    await factory.permission(billing, "read")
    service = PermissionService(store)

    items, total = await service.list(module_id=articles.id)
    assert total == 2

    items, total = await service.list(action="read")
    assert sorted(p.name for p in items) == ["Articles Read", "Billing Read"]

    items, total = await service.list(search="billing")
    assert [p.module.name for p in items] == ["Billing"]
