import pytest

from app.core.errors import BadRequestError, NotFoundError, ValidationError
from app.features.relationships.manager import RelationshipManager
from app.features.relationships.models import group_roles, user_groups
from app.features.relationships.relations import GROUP_ROLE, ROLE_PERMISSION, USER_GROUP
from app.features.relationships.schemas import AssignmentStatus


@pytest.fixture
def group_users(store, audit_log):
    return RelationshipManager(store, USER_GROUP, audit_log=audit_log, actor_id="actor-1")


async def test_assign_is_idempotent(factory, store, group_users):
    group = await factory.group("editors")
    alice = await factory.user("alice")
    bob = await factory.user("bob")

    first = await group_users.assign(group.id, [alice.id, bob.id])
    second = await group_users.assign(group.id, [alice.id, bob.id])

    assert (first.assigned, first.skipped) == (2, 0)
    assert (second.assigned, second.skipped) == (0, 2)
    assert [d.status for d in second.details] == [AssignmentStatus.ALREADY_EXISTS] * 2
    assert await store.count_links(user_groups, group_id=group.id) == 2


async def test_assign_details_keep_input_order_and_names(factory, group_users):
    group = await factory.group("editors")
    alice = await factory.user("alice")
    bob = await factory.user("bob")
    await group_users.assign(group.id, [bob.id])

    result = await group_users.assign(group.id, [alice.id, bob.id, alice.id])

    assert [(d.id, d.name, d.status) for d in result.details] == [
        (alice.id, "alice", AssignmentStatus.ASSIGNED),
        (bob.id, "bob", AssignmentStatus.ALREADY_EXISTS),
    ]
    assert result.details[0].message == "User successfully assigned to group"
    assert result.details[1].message == "User was already assigned to this group"


async def test_assign_unknown_left_entity(factory, group_users):
    alice = await factory.user("alice")

    with pytest.raises(NotFoundError) as exc_info:
        await group_users.assign("missing-group", [alice.id])
    assert exc_info.value.message == "Group with ID missing-group not found"


async def test_assign_lists_missing_right_ids(factory, group_users):
    group = await factory.group("editors")
    alice = await factory.user("alice")

    with pytest.raises(NotFoundError) as exc_info:
        await group_users.assign(group.id, [alice.id, "ghost-1", "ghost-2"])
    assert exc_info.value.errors == {"user_ids": ["ghost-1", "ghost-2"]}


async def test_assign_rejects_inactive_users(factory, store, group_users):
    group = await factory.group("editors")
    alice = await factory.user("alice")
    carol = await factory.user("carol", is_active=False)

    with pytest.raises(ValidationError) as exc_info:
        await group_users.assign(group.id, [alice.id, carol.id])
    assert exc_info.value.errors == {"user_ids": [carol.id]}
    assert await store.count_links(user_groups, group_id=group.id) == 0


async def test_assign_rejects_inactive_roles(factory, store, audit_log):
    group = await factory.group("editors")
    role = await factory.role("retired", is_active=False)

    with pytest.raises(ValidationError):
        await RelationshipManager(store, GROUP_ROLE, audit_log).assign(group.id, [role.id])


async def test_role_permissions_accept_inactive_permissions(factory, store, audit_log):
    role = await factory.role("writer")
    module = await factory.module("Articles")
    permission = await factory.permission(module, "read", is_active=False)

    result = await RelationshipManager(store, ROLE_PERMISSION, audit_log).assign(role.id, [permission.id])

    assert result.assigned == 1


@pytest.mark.parametrize("ids", [[], "abc", None, [""], ["  "], [42], {"id": "x"}])
async def test_assign_rejects_empty_or_malformed_ids(factory, group_users, ids):
    group = await factory.group("editors")

    with pytest.raises(BadRequestError):
        await group_users.assign(group.id, ids)


async def test_remove_reports_absent_pairs(factory, store, group_users):
    group = await factory.group("editors")
    alice = await factory.user("alice")
    bob = await factory.user("bob")
    await group_users.assign(group.id, [alice.id])

    result = await group_users.remove(group.id, [alice.id, bob.id, "ghost"])

    assert (result.removed, result.not_found) == (1, 2)
    assert [(d.name, d.status) for d in result.details] == [
        ("alice", AssignmentStatus.REMOVED),
        ("bob", AssignmentStatus.NOT_FOUND),
        ("User ghost", AssignmentStatus.NOT_FOUND),
    ]
    assert await store.count_links(user_groups, group_id=group.id) == 0


async def test_remove_validates_left_and_ids(factory, group_users):
    group = await factory.group("editors")

    with pytest.raises(NotFoundError):
        await group_users.remove("missing-group", ["x"])
    with pytest.raises(BadRequestError):
        await group_users.remove(group.id, [])


async def test_replace_sets_exact_assignment_set(factory, store, audit_log):
    group = await factory.group("editors")
    writer = await factory.role("writer")
    reader = await factory.role("reader")
    auditor = await factory.role("auditor")
    manager = RelationshipManager(store, GROUP_ROLE, audit_log)
    await manager.assign(group.id, [writer.id, reader.id])

    result = await manager.replace(group.id, [reader.id, auditor.id])

    assert result.assigned == 2
    links = await store.find_links(group_roles, group_id=group.id)
    assert {link["role_id"] for link in links} == {reader.id, auditor.id}


async def test_replace_with_empty_list_clears(factory, store, audit_log):
    group = await factory.group("editors")
    writer = await factory.role("writer")
    manager = RelationshipManager(store, GROUP_ROLE, audit_log)
    await manager.assign(group.id, [writer.id])

    result = await manager.replace(group.id, [])

    assert (result.assigned, result.skipped, result.details) == (0, 0, [])
    assert await store.count_links(group_roles, group_id=group.id) == 0


async def test_replace_validates_before_clearing(factory, store, audit_log):
    group = await factory.group("editors")
    writer = await factory.role("writer")
    manager = RelationshipManager(store, GROUP_ROLE, audit_log)
    await manager.assign(group.id, [writer.id])

    with pytest.raises(NotFoundError):
        await manager.replace(group.id, ["ghost"])
    assert await manager.has(group.id, writer.id) is True


async def test_has(factory, group_users):
    group = await factory.group("editors")
    alice = await factory.user("alice")

    assert await group_users.has(group.id, alice.id) is False
    await group_users.assign(group.id, [alice.id])
    assert await group_users.has(group.id, alice.id) is True


async def test_list_right_and_left(factory, store, group_users):
    group = await factory.group("editors")
    alice = await factory.user("alice")
    carol = await factory.user("carol")
    await group_users.assign(group.id, [alice.id, carol.id])
    await store.update(carol, is_active=False)

    assert {u.username for u in await group_users.list_right(group.id)} == {"alice", "carol"}
    assert [u.username for u in await group_users.list_right(group.id, active_only=True)] == ["alice"]
    assert [g.name for g in await group_users.list_left(alice.id)] == ["editors"]


async def test_mutations_are_audited(factory, group_users, audit_log):
    group = await factory.group("editors")
    alice = await factory.user("alice")

    await group_users.assign(group.id, [alice.id])
    await group_users.remove(group.id, [alice.id])
    await group_users.replace(group.id, [alice.id])

    actions = [event.action for event in audit_log.query()]
    assert actions == ["REPLACE_GROUP_USERS", "REMOVE_USERS_FROM_GROUP", "ASSIGN_USERS_TO_GROUP"]
    assert all(event.user_id == "actor-1" for event in audit_log.query())
    assert audit_log.query(limit=1)[0].resource_id == group.id
