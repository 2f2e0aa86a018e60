"""
In-memory audit trail.

The log is process-lifetime state: construct one AuditLog when the service
starts and inject it where events are recorded. Nothing is persisted.
Request handlers record through a SessionAuditLog so events only land once
the request's transaction commits.

Usage:
    audit_log = AuditLog(capacity=1000)
    audit_log.append("ASSIGN_ROLES_TO_GROUP", "group", resource_id=group_id, user_id=actor_id)
    recent = audit_log.query(resource="group", limit=20)
"""
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from sqlalchemy.event import listen
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.core import config
from app.features.audit.schemas import AuditEvent, AuditLogFilters
from app.utils import get_logger


log = get_logger(__name__)


class AuditLog:
    """Fixed-capacity, thread-safe event buffer. Oldest events are evicted first."""

    def __init__(self, capacity: int = config.AUDIT_LOG_CAPACITY):
        if capacity < 1:
            raise ValueError("Audit log capacity must be at least 1")
        self.capacity = capacity
        self._events: Deque[AuditEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def append(
        self,
        action: str,
        resource: str,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEvent]:
        """
        Record an event stamped with the current UTC time.
        
        Never raises: a failure to record is logged and None is returned.
        """
        try:
            event = AuditEvent(
                timestamp=datetime.now(timezone.utc),
                action=action,
                resource=resource,
                resource_id=resource_id,
                user_id=user_id,
                details=details,
            )
            with self._lock:
                self._events.append(event)
        except Exception:
            log.warning("Failed to record audit event %s on %s", action, resource, exc_info=True)
            return None

        log.info(
            "[AUDIT] %s - %s on %s by user %s",
            event.timestamp.isoformat(), event.action, event.resource, event.user_id or "system"
        )
        return event

    def query(self, filters: Optional[AuditLogFilters] = None, **kwargs: Any) -> List[AuditEvent]:
        """
        Return matching events, newest first.
        
        Filters may be given as an AuditLogFilters instance or as keyword
        arguments (user_id, action, resource, start_date, end_date, limit).
        user_id and resource match exactly, action matches as a substring and
        the date range is inclusive. The limit is applied last.
        """
        if filters is None:
            filters = AuditLogFilters(**kwargs)

        with self._lock:
            snapshot = list(self._events)

        events = [event for event in reversed(snapshot) if _matches(event, filters)]
        # Stable sort keeps newest-first order among equal timestamps
        events.sort(key=lambda event: event.timestamp, reverse=True)

        if filters.limit:
            events = events[:filters.limit]
        return events


def _matches(event: AuditEvent, filters: AuditLogFilters) -> bool:
    if filters.user_id and event.user_id != filters.user_id:
        return False
    if filters.action and filters.action not in event.action:
        return False
    if filters.resource and event.resource != filters.resource:
        return False
    if filters.start_date and event.timestamp < filters.start_date:
        return False
    if filters.end_date and event.timestamp > filters.end_date:
        return False
    return True


class SessionAuditLog:
    """
    Audit events of one unit of work, held back until its session commits.

    Services append to it exactly as to an AuditLog. The events reach the
    shared log on commit and are dropped on rollback, so a request that
    fails to commit leaves no trace of mutations that never landed.
    """

    def __init__(self, audit_log: AuditLog, session: AsyncSession):
        self.audit_log = audit_log
        self._pending: List[Dict[str, Any]] = []
        listen(session.sync_session, "after_commit", self._flush)
        listen(session.sync_session, "after_rollback", self._discard)

    def __len__(self) -> int:
        return len(self._pending)

    def append(
        self,
        action: str,
        resource: str,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._pending.append(dict(
            action=action,
            resource=resource,
            resource_id=resource_id,
            user_id=user_id,
            details=details,
        ))

    def _flush(self, _session: Session) -> None:
        pending, self._pending = self._pending, []
        for entry in pending:
            self.audit_log.append(**entry)

    def _discard(self, _session: Session) -> None:
        if self._pending:
            log.debug("Dropping %d audit events of a rolled back transaction", len(self._pending))
        self._pending = []
