"""
ARQ background task: purge invitations that expired without being accepted.

Scheduled to run every hour. Creation already clears stale rows for the
(org, email) being re-invited; this keeps the table from accumulating the rest.
"""

from __future__ import annotations

import structlog
from arq import cron

from toolgate.core.config import get_settings
from toolgate.core.database import get_session_context
from toolgate.core.logging import configure_logging
from toolgate.services.invitations import purge_expired

log = structlog.get_logger()
settings = get_settings()


async def purge_expired_invitations(ctx: dict) -> int:
    """Delete expired, unaccepted invitations. Returns the number removed."""
    async with get_session_context() as session:
        count = await purge_expired(session)

    if count:
        log.info("invitation_cleanup.purged", count=count)
    return count


async def startup(ctx: dict) -> None:
    configure_logging(settings.log_level, settings.log_format)
    log.info("worker.starting")


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [purge_expired_invitations]
    cron_jobs = [
        cron(purge_expired_invitations, minute=0, run_at_startup=True),
    ]
    on_startup = startup
