"""
Generic relationship management over one join relation.

One RelationshipManager class serves user<->group, group<->role and
role<->permission; the Relation it is built with supplies the table, the
entity models and the per-relation rules.

Usage:
    manager = RelationshipManager(store, GROUP_ROLE, audit_log=audit_log, actor_id=user_id)
    result = await manager.assign(group_id, [role_id_1, role_id_2])
    result.assigned, result.skipped, result.details
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from app.core.database.store import EntityStore
from app.core.errors import BadRequestError, NotFoundError, ValidationError
from app.features.audit.log import AuditLog, SessionAuditLog
from app.features.relationships.relations import Relation
from app.features.relationships.schemas import (
    AssignmentDetail,
    AssignmentResult,
    AssignmentStatus,
    RemovalResult,
)
from app.utils import get_logger


log = get_logger(__name__)

_ID_COLLECTIONS = (list, tuple, set, frozenset)


class RelationshipManager:
    """Idempotent assign/remove/replace over one Relation."""

    def __init__(
        self,
        store: EntityStore,
        relation: Relation,
        audit_log: Optional[Union[AuditLog, SessionAuditLog]] = None,
        actor_id: Optional[str] = None,
    ):
        self.store = store
        self.relation = relation
        self.audit_log = audit_log
        self.actor_id = actor_id

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    async def _get_left(self, left_id: str) -> Any:
        left = await self.store.find_by_id(self.relation.left_model, left_id)
        if left is None:
            label = self.relation.left_label.capitalize()
            raise NotFoundError(
                f"{label} with ID {left_id} not found",
                errors={self.relation.left_key: left_id},
            )
        return left

    def _normalize_ids(self, right_ids: Any, allow_empty: bool = False) -> List[str]:
        """Check the shape of the requested IDs and drop repeats, keeping input order."""
        field = f"{self.relation.right_key}s"
        if not isinstance(right_ids, _ID_COLLECTIONS):
            raise BadRequestError(
                f"{field} must be an array of {self.relation.right_label} IDs",
                errors={field: "must be an array"},
            )
        if any(not isinstance(right_id, str) or not right_id.strip() for right_id in right_ids):
            raise BadRequestError(
                f"{field} must only contain non-empty {self.relation.right_label} IDs",
                errors={field: "invalid ID"},
            )

        ids = list(dict.fromkeys(right_ids))
        if not ids and not allow_empty:
            raise BadRequestError(
                f"At least one {self.relation.right_label} ID must be provided",
                errors={field: "must not be empty"},
            )
        return ids

    async def _load_right(self, ids: List[str]) -> Dict[str, Any]:
        """Fetch the requested right entities, raising for missing or inactive ones."""
        relation = self.relation
        field = f"{relation.right_key}s"
        found = {entity.id: entity for entity in await self.store.find_all(relation.right_model, id=ids)}

        missing = [right_id for right_id in ids if right_id not in found]
        if missing:
            raise NotFoundError(
                f"{relation.right_plural.capitalize()} not found: {', '.join(missing)}",
                errors={field: missing},
            )

        if relation.require_active:
            inactive = [right_id for right_id in ids if not found[right_id].is_active]
            if inactive:
                raise ValidationError(
                    f"Cannot assign inactive {relation.right_plural}: {', '.join(inactive)}",
                    errors={field: inactive},
                )

        return found

    async def _existing_right_ids(self, left_id: str, ids: Iterable[str]) -> set:
        relation = self.relation
        links = await self.store.find_links(
            relation.table, **{relation.left_key: left_id, relation.right_key: list(ids)}
        )
        return {link[relation.right_key] for link in links}

    def _record(self, action: str, left_id: str, details: Dict[str, Any]) -> None:
        if self.audit_log is not None:
            self.audit_log.append(
                action=action,
                resource=self.relation.left_label,
                resource_id=left_id,
                user_id=self.actor_id,
                details=details,
            )

    async def _link_all(self, left_id: str, ids: List[str], found: Dict[str, Any], existing: set) -> AssignmentResult:
        relation = self.relation
        right_label = relation.right_label.capitalize()
        result = AssignmentResult()

        for right_id in ids:
            entity = found[right_id]
            inserted = right_id not in existing and await self.store.link(
                relation.table, **{relation.left_key: left_id, relation.right_key: right_id}
            )
            if inserted:
                result.assigned += 1
                result.details.append(AssignmentDetail(
                    id=right_id,
                    name=entity.display_name,
                    status=AssignmentStatus.ASSIGNED,
                    message=f"{right_label} successfully assigned to {relation.left_label}",
                ))
            else:
                result.skipped += 1
                result.details.append(AssignmentDetail(
                    id=right_id,
                    name=entity.display_name,
                    status=AssignmentStatus.ALREADY_EXISTS,
                    message=f"{right_label} was already assigned to this {relation.left_label}",
                ))

        return result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def assign(self, left_id: str, right_ids: Any) -> AssignmentResult:
        """
        Assign right entities to a left entity, skipping pairs that already exist.

        Raises:
            NotFoundError: left entity or any right entity does not exist
            BadRequestError: IDs are empty or malformed
            ValidationError: a right entity is inactive and the relation requires active ones
        """
        await self._get_left(left_id)
        ids = self._normalize_ids(right_ids)
        found = await self._load_right(ids)
        existing = await self._existing_right_ids(left_id, ids)

        result = await self._link_all(left_id, ids, found, existing)

        log.info(
            "%s %s: assigned=%d skipped=%d",
            self.relation.assign_action, left_id, result.assigned, result.skipped
        )
        self._record(self.relation.assign_action, left_id, {
            f"{self.relation.right_key}s": ids,
            "assigned": result.assigned,
            "skipped": result.skipped,
        })
        return result

    async def remove(self, left_id: str, right_ids: Any) -> RemovalResult:
        """
        Remove right entities from a left entity.

        IDs that were not assigned are reported as not_found rather than raised.
        """
        relation = self.relation
        right_label = relation.right_label.capitalize()

        await self._get_left(left_id)
        ids = self._normalize_ids(right_ids)

        names = {
            entity.id: entity.display_name
            for entity in await self.store.find_all(relation.right_model, id=ids)
        }
        existing = await self._existing_right_ids(left_id, ids)

        removed = 0
        if existing:
            removed = await self.store.unlink(
                relation.table, **{relation.left_key: left_id, relation.right_key: list(existing)}
            )

        result = RemovalResult(removed=removed, not_found=len(ids) - len(existing))
        for right_id in ids:
            name = names.get(right_id, f"{right_label} {right_id}")
            if right_id in existing:
                result.details.append(AssignmentDetail(
                    id=right_id,
                    name=name,
                    status=AssignmentStatus.REMOVED,
                    message=f"{right_label} successfully removed from {relation.left_label}",
                ))
            else:
                result.details.append(AssignmentDetail(
                    id=right_id,
                    name=name,
                    status=AssignmentStatus.NOT_FOUND,
                    message=f"{right_label} was not assigned to this {relation.left_label}",
                ))

        log.info(
            "%s %s: removed=%d not_found=%d",
            relation.remove_action, left_id, result.removed, result.not_found
        )
        self._record(relation.remove_action, left_id, {
            f"{relation.right_key}s": ids,
            "removed": result.removed,
            "not_found": result.not_found,
        })
        return result

    async def replace(self, left_id: str, right_ids: Any) -> AssignmentResult:
        """
        Make `right_ids` the complete assignment set of a left entity.

        The new IDs are validated before any row is removed. An empty list
        clears every assignment and returns zero counts.
        """
        relation = self.relation

        await self._get_left(left_id)
        ids = self._normalize_ids(right_ids, allow_empty=True)
        found = await self._load_right(ids) if ids else {}

        cleared = await self.store.unlink(relation.table, **{relation.left_key: left_id})
        result = await self._link_all(left_id, ids, found, existing=set()) if ids else AssignmentResult()

        log.info(
            "%s %s: cleared=%d assigned=%d",
            relation.replace_action, left_id, cleared, result.assigned
        )
        self._record(relation.replace_action, left_id, {
            f"{relation.right_key}s": ids,
            "cleared": cleared,
            "assigned": result.assigned,
        })
        return result

    async def has(self, left_id: str, right_id: str) -> bool:
        """Check if the pair (left_id, right_id) is assigned."""
        relation = self.relation
        count = await self.store.count_links(
            relation.table, **{relation.left_key: left_id, relation.right_key: right_id}
        )
        return count > 0

    async def list_right(self, left_id: str, active_only: bool = False) -> List[Any]:
        """Entities assigned to a left entity (e.g. the users of a group)."""
        await self._get_left(left_id)
        relation = self.relation
        filters = {"is_active": True} if active_only else {}
        return await self.store.find_related(
            relation.right_model, relation.table,
            key=relation.right_key, via=relation.left_key, ids=[left_id], **filters
        )

    async def list_left(self, right_id: str) -> List[Any]:
        """Left entities a right entity is assigned to (e.g. the groups of a user)."""
        relation = self.relation
        right = await self.store.find_by_id(relation.right_model, right_id)
        if right is None:
            raise NotFoundError(
                f"{relation.right_label.capitalize()} with ID {right_id} not found",
                errors={relation.right_key: right_id},
            )
        return await self.store.find_related(
            relation.left_model, relation.table,
            key=relation.left_key, via=relation.right_key, ids=[right_id]
        )

    async def count(self, left_id: str) -> Tuple[int, int]:
        """(total, active) counts of right entities assigned to a left entity."""
        assigned = await self.list_right(left_id)
        return len(assigned), sum(1 for entity in assigned if entity.is_active)
