from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carespot.db.models import AuditLog

def record(
    session: AsyncSession,
    action: str,
    actor_id: Optional[UUID] = None,
    hospital_id: Optional[UUID] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction; it is written by the caller's commit."""
    entry = AuditLog(actor_id=actor_id, hospital_id=hospital_id, action=action, payload=payload)
    session.add(entry)
    return entry
