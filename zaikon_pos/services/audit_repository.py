"""Append-only status audit trail."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.status_audit import StatusAudit


class AuditRepository:
    """Writes and reads ``zaikon_status_audit``; there is no update or delete."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(
        self,
        *,
        order_id: int,
        status_from: Optional[str],
        status_to: str,
        source: str,
        actor_user_id: Optional[int],
        created_at: datetime,
        event_type: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StatusAudit:
        record = StatusAudit(
            order_id=order_id,
            status_from=status_from,
            status_to=status_to,
            source=source,
            actor_user_id=int(actor_user_id or 0),
            event_type=event_type,
            notes=(notes or None),
            created_at=created_at,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def query_by_order(self, order_id: int, limit: int = 50, offset: int = 0) -> List[StatusAudit]:
        return (
            self._session.query(StatusAudit)
            .filter(StatusAudit.order_id == order_id)
            .order_by(StatusAudit.created_at.desc(), StatusAudit.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def transition_stats(self, start: datetime, end: datetime) -> Dict[str, List[Dict]]:
        window = (StatusAudit.created_at >= start, StatusAudit.created_at <= end)
        count = func.count(StatusAudit.id)
        by_source = (
            self._session.query(StatusAudit.source, count)
            .filter(*window)
            .group_by(StatusAudit.source)
            .order_by(count.desc())
            .all()
        )
        by_transition = (
            self._session.query(StatusAudit.status_from, StatusAudit.status_to, count)
            .filter(*window)
            .group_by(StatusAudit.status_from, StatusAudit.status_to)
            .order_by(count.desc())
            .limit(20)
            .all()
        )
        return {
            "by_source": [{"source": s, "count": c} for s, c in by_source],
            "by_transition": [
                {"transition": f"{a or 'none'} -> {b}", "count": c} for a, b, c in by_transition
            ],
        }
