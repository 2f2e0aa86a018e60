"""
Entity store used by the RBAC services.

A thin, typed layer over an AsyncSession exposing the handful of operations
the services need: find/count/create/update/destroy on entity models,
link/unlink/find on join tables, the relation traversal used by the
permission resolver, and the aggregate queries behind the statistics.

Filters are passed as keyword arguments; a list/tuple/set value becomes an
IN clause and None becomes IS NULL.

Usage:
    store = EntityStore(session)
    role = await store.find_by_id(Role, role_id)
    groups = await store.find_all(Group, is_active=True, limit=50)
    inserted = await store.link(group_roles, group_id=group.id, role_id=role.id)
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import Table, delete, distinct, func, insert, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils import get_logger


log = get_logger(__name__)

ModelT = TypeVar("ModelT")

_COLLECTION_TYPES = (list, tuple, set, frozenset)


def _conditions(columns: Dict[str, Any], filters: Dict[str, Any]) -> list:
    conditions = []
    for key, value in filters.items():
        column = columns[key]
        if isinstance(value, _COLLECTION_TYPES):
            conditions.append(column.in_(list(value)))
        elif value is None:
            conditions.append(column.is_(None))
        else:
            conditions.append(column == value)
    return conditions


def _model_conditions(model: Type[Any], filters: Dict[str, Any]) -> list:
    return _conditions({key: getattr(model, key) for key in filters}, filters)


def _table_conditions(table: Table, filters: Dict[str, Any]) -> list:
    return _conditions({key: table.c[key] for key in filters}, filters)


class EntityStore:
    """Persistence operations over one AsyncSession (one unit of work)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    async def find_by_id(
        self,
        model: Type[ModelT],
        entity_id: Any,
        options: Sequence[Any] = (),
    ) -> Optional[ModelT]:
        if not options:
            return await self.session.get(model, entity_id)
        stmt = (
            select(model)
            .where(model.id == entity_id)
            .options(*options)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_all(
        self,
        model: Type[ModelT],
        *conditions: Any,
        order_by: Any = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Sequence[Any] = (),
        **filters: Any,
    ) -> List[ModelT]:
        stmt = select(model).where(*conditions, *_model_conditions(model, filters))
        if options:
            stmt = stmt.options(*options)
        stmt = stmt.order_by(order_by if order_by is not None else model.id)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_one(self, model: Type[ModelT], *conditions: Any, **filters: Any) -> Optional[ModelT]:
        stmt = select(model).where(*conditions, *_model_conditions(model, filters)).limit(1)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def count(self, model: Type[Any], *conditions: Any, **filters: Any) -> int:
        stmt = select(func.count()).select_from(model).where(*conditions, *_model_conditions(model, filters))
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def create(self, model: Type[ModelT], **attributes: Any) -> ModelT:
        entity = model(**attributes)
        self.session.add(entity)
        await self.session.flush()
        # Server-side timestamps are expired by the flush
        await self.session.refresh(entity)
        return entity

    async def update(self, entity: ModelT, **attributes: Any) -> ModelT:
        for key, value in attributes.items():
            setattr(entity, key, value)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def destroy(self, entity: Any) -> None:
        await self.session.delete(entity)
        await self.session.flush()

    # ------------------------------------------------------------------
    # Join tables
    # ------------------------------------------------------------------

    async def find_links(self, table: Table, **filters: Any) -> List[RowMapping]:
        stmt = select(table).where(*_table_conditions(table, filters))
        result = await self.session.execute(stmt)
        return list(result.mappings().all())

    async def count_links(self, table: Table, **filters: Any) -> int:
        stmt = select(func.count()).select_from(table).where(*_table_conditions(table, filters))
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def link(self, table: Table, **values: Any) -> bool:
        """
        Insert a join row unless the pair already exists.

        Returns False when the primary key already held the pair, which is
        how a concurrent writer that won the race shows up.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            stmt = sqlite.insert(table).values(**values).on_conflict_do_nothing()
        elif dialect == "postgresql":
            stmt = postgresql.insert(table).values(**values).on_conflict_do_nothing()
        else:
            stmt = insert(table).values(**values)
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def unlink(self, table: Table, **filters: Any) -> int:
        if not filters:
            raise ValueError("unlink requires at least one filter")
        stmt = delete(table).where(*_table_conditions(table, filters))
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def find_related(
        self,
        model: Type[ModelT],
        table: Table,
        *,
        key: str,
        via: str,
        ids: Iterable[Any],
        options: Sequence[Any] = (),
        **filters: Any,
    ) -> List[ModelT]:
        """
        Entities of `model` linked through `table` to any of `ids`.

        `key` is the join column pointing at `model`, `via` the column
        holding `ids`. One row per link, so an entity reached twice is
        returned twice.
        """
        stmt = (
            select(model)
            .join(table, table.c[key] == model.id)
            .where(table.c[via].in_(list(ids)), *_model_conditions(model, filters))
            .order_by(model.id)
        )
        if options:
            stmt = stmt.options(*options)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    async def ping(self) -> None:
        await self.session.execute(select(1))

    async def counts(self, sources: Dict[str, Any]) -> Dict[str, int]:
        """Row counts of several models/tables in a single round trip."""
        columns = [
            select(func.count()).select_from(source).scalar_subquery().label(name)
            for name, source in sources.items()
        ]
        result = await self.session.execute(select(*columns))
        row = result.mappings().one()
        return {name: row[name] or 0 for name in sources}

    async def count_orphaned_links(
        self,
        table: Table,
        left: Tuple[Type[Any], str],
        right: Tuple[Type[Any], str],
    ) -> int:
        """Join rows whose left or right entity no longer exists."""
        left_model, left_key = left
        right_model, right_key = right
        left_alias = left_model.__table__.alias()
        right_alias = right_model.__table__.alias()
        joined = table.outerjoin(left_alias, table.c[left_key] == left_alias.c.id).outerjoin(
            right_alias, table.c[right_key] == right_alias.c.id
        )
        stmt = (
            select(func.count())
            .select_from(joined)
            .where(or_(left_alias.c.id.is_(None), right_alias.c.id.is_(None)))
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_inactive_linked(self, model: Type[Any], table: Table, key: str) -> int:
        """Distinct deactivated entities that still hold rows in `table`."""
        stmt = (
            select(func.count(distinct(model.id)))
            .select_from(model)
            .join(table, table.c[key] == model.id)
            .where(model.is_active.is_(False))
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
