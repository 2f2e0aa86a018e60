"""
Pytest configuration and fixtures for testing.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from app.core.database.engine import build_engine, build_session_factory, create_tables, get_db
from app.core.database.store import EntityStore
from app.features.audit.log import AuditLog
from app.features.groups.models import Group
from app.features.modules.models import Module
from app.features.permissions.models import Permission
from app.features.relationships.models import group_roles, role_permissions, user_groups
from app.features.roles.models import Role
from app.features.users.auth import hash_password
from app.features.users.models import User


# Test database URL - using in-memory SQLite for tests
SQLALCHEMY_TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    """
    Create a fresh test database for each test function.
    """
    # A single shared connection keeps the in-memory database alive
    engine = build_engine(SQLALCHEMY_TEST_DATABASE_URL, poolclass=StaticPool)
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    async with build_session_factory(engine)() as session:
        yield session


@pytest.fixture
def store(session):
    return EntityStore(session)


@pytest.fixture
def audit_log():
    return AuditLog(capacity=1000)


class Factory:
    """Shortcuts for building RBAC graphs directly through the store."""

    def __init__(self, store: EntityStore):
        self.store = store

    async def user(self, username: str, **kwargs) -> User:
        kwargs.setdefault("email", f"{username}@example.com")
        kwargs.setdefault("password_hash", hash_password("password123"))
        return await self.store.create(User, username=username, **kwargs)

    async def group(self, name: str, **kwargs) -> Group:
        return await self.store.create(Group, name=name, **kwargs)

    async def role(self, name: str, **kwargs) -> Role:
        return await self.store.create(Role, name=name, **kwargs)

    async def module(self, name: str, **kwargs) -> Module:
        return await self.store.create(Module, name=name, **kwargs)

    async def permission(self, module: Module, action: str, name: str | None = None, **kwargs) -> Permission:
        return await self.store.create(
            Permission,
            name=name or f"{module.name} {action.capitalize()}",
            action=action,
            module_id=module.id,
            **kwargs,
        )

    async def add_to_group(self, user: User, group: Group) -> None:
        await self.store.link(user_groups, user_id=user.id, group_id=group.id)

    async def grant_role(self, group: Group, role: Role) -> None:
        await self.store.link(group_roles, group_id=group.id, role_id=role.id)

    async def grant_permission(self, role: Role, permission: Permission) -> None:
        await self.store.link(role_permissions, role_id=role.id, permission_id=permission.id)


@pytest.fixture
def factory(store):
    return Factory(store)


@pytest_asyncio.fixture
async def client(session, audit_log):
    """
    Create a test client sharing the test session and a fresh audit log.
    """
    from app.main import app

    async def override_get_db():
        yield session
        await session.commit()

    app.dependency_overrides[get_db] = override_get_db
    original_audit_log = app.state.audit_log
    app.state.audit_log = audit_log

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    app.state.audit_log = original_audit_log


@pytest_asyncio.fixture
async def admin(store, factory):
    """A user in the seeded Administrators group, holding every system permission."""
    from scripts.seed_permissions import seed_groups, seed_modules, seed_roles

    permissions = await seed_modules(store)
    roles_map = await seed_roles(store, permissions)
    groups_map = await seed_groups(store, roles_map)

    user = await factory.user("admin")
    await factory.add_to_group(user, groups_map["Administrators"])
    return user
