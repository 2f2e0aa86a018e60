import pytest

from app.core.errors import BadRequestError, NotFoundError
from app.features.permissions.resolver import PermissionResolver, dedupe_permissions


@pytest.fixture
def resolver(store):
    return PermissionResolver(store)


async def build_graph(factory):
    """
    alice -> editors -> writer   -> Articles Create, Articles Read
          -> readers -> reader   -> Articles Read
                     -> writer
    """
    articles = await factory.module("Articles")
    create = await factory.permission(articles, "create")
    read = await factory.permission(articles, "read")

    writer = await factory.role("writer")
    reader = await factory.role("reader")
    await factory.grant_permission(writer, create)
    await factory.grant_permission(writer, read)
    await factory.grant_permission(reader, read)

    editors = await factory.group("editors")
    readers = await factory.group("readers")
    await factory.grant_role(editors, writer)
    await factory.grant_role(readers, reader)
    await factory.grant_role(readers, writer)

    alice = await factory.user("alice")
    await factory.add_to_group(alice, editors)
    await factory.add_to_group(alice, readers)

    return {
        "alice": alice, "articles": articles, "create": create, "read": read,
        "writer": writer, "reader": reader, "editors": editors, "readers": readers,
    }


async def test_resolve_deduplicates_permissions_reached_by_several_paths(factory, resolver):
    graph = await build_graph(factory)

    permissions = await resolver.resolve(graph["alice"].id)

    assert sorted(p.id for p in permissions) == sorted([graph["create"].id, graph["read"].id])


async def test_resolve_unknown_user(resolver):
    with pytest.raises(NotFoundError):
        await resolver.resolve("01HZZZZZZZZZZZZZZZZZZZZZZZ")


async def test_resolve_user_without_groups_is_empty(factory, resolver):
    bob = await factory.user("bob")

    assert await resolver.resolve(bob.id) == []


async def test_resolve_groups_without_roles_is_empty(factory, resolver):
    bob = await factory.user("bob")
    empty = await factory.group("empty")
    await factory.add_to_group(bob, empty)

    assert await resolver.resolve(bob.id) == []


async def test_resolve_roles_without_permissions_is_empty(factory, resolver):
    bob = await factory.user("bob")
    group = await factory.group("staff")
    role = await factory.role("nothing")
    await factory.add_to_group(bob, group)
    await factory.grant_role(group, role)

    assert await resolver.resolve(bob.id) == []


async def test_inactive_entities_on_the_path_still_grant(factory, store, resolver):
    graph = await build_graph(factory)
    await store.update(graph["editors"], is_active=False)
    await store.update(graph["readers"], is_active=False)
    await store.update(graph["writer"], is_active=False)
    await store.update(graph["read"], is_active=False)

    permissions = await resolver.resolve(graph["alice"].id)

    assert {p.id for p in permissions} == {graph["create"].id, graph["read"].id}


async def test_dedupe_keeps_first_occurrence(factory):
    module = await factory.module("Reports")
    first = await factory.permission(module, "read")
    second = await factory.permission(module, "update")

    assert dedupe_permissions([first, second, first]) == [first, second]


async def test_check_by_module_name(factory, resolver):
    graph = await build_graph(factory)
    alice = graph["alice"].id

    assert await resolver.check(alice, "Articles", "create") is True
    assert await resolver.check(alice, "Articles", "delete") is False


async def test_check_by_module_id(factory, resolver):
    graph = await build_graph(factory)

    assert await resolver.check(graph["alice"].id, graph["articles"].id, "read", by_name=False) is True
    assert await resolver.check(graph["alice"].id, "unknown-module-id", "read", by_name=False) is False


async def test_check_unknown_module_name(factory, resolver):
    graph = await build_graph(factory)

    with pytest.raises(NotFoundError) as exc_info:
        await resolver.check(graph["alice"].id, "Nope", "read")
    assert exc_info.value.message == "Module 'Nope' not found"


async def test_check_rejects_non_canonical_action(factory, resolver):
    graph = await build_graph(factory)

    with pytest.raises(BadRequestError):
        await resolver.check(graph["alice"].id, "Articles", "publish")


async def test_simulate(factory, resolver):
    graph = await build_graph(factory)

    result = await resolver.simulate(graph["alice"].id, graph["articles"].id, "create")

    assert result.has_permission is True
    assert result.module_name == "Articles"
    assert result.action == "create"


async def test_simulate_validates_inputs(factory, resolver):
    graph = await build_graph(factory)

    with pytest.raises(NotFoundError):
        await resolver.simulate("missing-user", graph["articles"].id, "read")
    with pytest.raises(NotFoundError):
        await resolver.simulate(graph["alice"].id, "missing-module", "read")
    with pytest.raises(BadRequestError):
        await resolver.simulate(graph["alice"].id, graph["articles"].id, "approve")


async def test_formatted_sorts_by_module_then_action(factory, resolver):
    graph = await build_graph(factory)
    billing = await factory.module("Billing")
    billing_delete = await factory.permission(billing, "delete")
    await factory.grant_permission(graph["reader"], billing_delete)

    formatted = await resolver.formatted(graph["alice"].id)

    assert [(p.module_name, p.action) for p in formatted] == [
        ("Articles", "create"),
        ("Articles", "read"),
        ("Billing", "delete"),
    ]


async def test_summarize_breaks_down_by_group_and_role(factory, resolver):
    graph = await build_graph(factory)

    summary = await resolver.summarize(graph["alice"].id)

    assert summary.username == "alice"
    assert summary.permission_count == 2
    groups = {group.name: group for group in summary.groups}
    assert set(groups) == {"editors", "readers"}
    assert [role.name for role in groups["editors"].roles] == ["writer"]
    assert sorted(role.name for role in groups["readers"].roles) == ["reader", "writer"]
    writer = next(role for role in groups["editors"].roles if role.name == "writer")
    assert sorted(p.action for p in writer.permissions) == ["create", "read"]


async def test_summarize_user_without_groups(factory, resolver):
    bob = await factory.user("bob")

    summary = await resolver.summarize(bob.id)

    assert summary.groups == []
    assert summary.permission_count == 0
