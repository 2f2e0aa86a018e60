"""
Shared plumbing for the entity services.

Every service works on one EntityStore (one unit of work) and records its
mutations in the injected AuditLog (or the SessionAuditLog of a request) on
behalf of the acting user.
"""
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from sqlalchemy import or_

from app.core.database.store import EntityStore
from app.core.errors import NotFoundError


ModelT = TypeVar("ModelT")


class EntityService:
    resource: str = "entity"

    def __init__(self, store: EntityStore, audit_log: Optional[Any] = None, actor_id: Optional[str] = None):
        self.store = store
        self.audit_log = audit_log
        self.actor_id = actor_id

    async def _get_or_404(self, model: Type[ModelT], entity_id: str, **kwargs: Any) -> ModelT:
        entity = await self.store.find_by_id(model, entity_id, **kwargs)
        if entity is None:
            raise NotFoundError(
                f"{self.resource.capitalize()} with ID {entity_id} not found",
                errors={f"{self.resource}_id": entity_id},
            )
        return entity

    def _record(self, action: str, resource_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        if self.audit_log is not None:
            self.audit_log.append(
                action=action,
                resource=self.resource,
                resource_id=resource_id,
                user_id=self.actor_id,
                details=details,
            )


def search_condition(search: Optional[str], *columns: Any) -> list:
    """Case-insensitive substring match over any of `columns`, as a condition list."""
    if not search:
        return []
    pattern = f"%{search}%"
    return [or_(*(column.ilike(pattern) for column in columns))]


def changed_fields(data: Any, nullable: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """Fields explicitly set on an update schema. None only clears the `nullable` ones."""
    return {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key in nullable
    }
