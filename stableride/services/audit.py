import logging

from sqlalchemy.ext.asyncio import AsyncSession

from stableride.models.admin import AuditLog

logger = logging.getLogger(__name__)


def record(
    db: AsyncSession,
    admin_id: str,
    action: str,
    resource: str,
    resource_id: str | None = None,
    details: dict | None = None,
) -> AuditLog:
    """Stage an audit row; it is committed with the caller's transaction."""
    entry = AuditLog(
        admin_id=admin_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        details=details,
    )
    db.add(entry)
    logger.info("audit admin=%s %s %s/%s", admin_id, action, resource, resource_id)
    return entry
