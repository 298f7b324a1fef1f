"""
Audit recorder.

Services call ``record()`` while doing their work; nothing is written until
the route has committed the primary transaction and calls ``dispatch()``,
which hands the queue to a background task and returns immediately. Each
entry is then persisted in its own session, so a slow or failing audit store
never delays or fails the operation it describes.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable, Optional

import structlog

from toolgate.core.database import get_session_context
from toolgate.models.audit_log import AuditLog
from toolgate_shared.schemas.audit import AuditAction

log = structlog.get_logger()

# Strong references to running audit writes; the event loop only keeps weak ones
_inflight: set[asyncio.Task] = set()


class AuditEntry:
    def __init__(
        self,
        org_id: uuid.UUID,
        actor_id: Optional[uuid.UUID],
        action: AuditAction | str,
        resource_type: str,
        resource_id: Optional[uuid.UUID] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.org_id = org_id
        self.actor_id = actor_id
        # Persist the plain string, never the Enum repr
        self.action = action.value if isinstance(action, AuditAction) else str(action)
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.metadata = metadata or {}

    def to_model(self) -> AuditLog:
        return AuditLog(
            organization_id=self.org_id,
            actor_id=self.actor_id,
            action=self.action,
            resource_type=self.resource_type,
            resource_id=self.resource_id,
            metadata_json=self.metadata,
        )


class AuditRecorder:
    """Request-scoped queue of audit entries."""

    def __init__(self, session_factory: Callable = get_session_context):
        self._session_factory = session_factory
        self.pending: list[AuditEntry] = []

    def record(
        self,
        org_id: uuid.UUID,
        actor_id: Optional[uuid.UUID],
        action: AuditAction | str,
        resource_type: str,
        resource_id: Optional[uuid.UUID] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """Queue an entry. Never raises and never touches the database."""
        self.pending.append(
            AuditEntry(org_id, actor_id, action, resource_type, resource_id, metadata)
        )

    async def _write(self, entries: list[AuditEntry]) -> int:
        """Persist entries one session each. Returns how many were stored."""
        written = 0
        for entry in entries:
            try:
                async with self._session_factory() as session:
                    session.add(entry.to_model())
            except Exception:
                log.exception(
                    "audit.write_failed",
                    org_id=str(entry.org_id),
                    action=entry.action,
                    resource_type=entry.resource_type,
                    resource_id=str(entry.resource_id) if entry.resource_id else None,
                )
                continue
            written += 1
        return written

    def dispatch(self) -> Optional[asyncio.Task]:
        """Write queued entries in the background, after the primary commit.

        The caller never waits on the audit store. The returned task resolves to
        the number of entries stored.
        """
        if not self.pending:
            return None
        entries, self.pending = self.pending, []
        task = asyncio.create_task(self._write(entries))
        _inflight.add(task)
        task.add_done_callback(_inflight.discard)
        return task


async def drain() -> None:
    """Wait for every dispatched audit write to finish (shutdown and tests)."""
    if _inflight:
        await asyncio.gather(*list(_inflight), return_exceptions=True)


def get_audit_recorder() -> AuditRecorder:
    """FastAPI dependency: a fresh recorder per request."""
    return AuditRecorder()
