"""Status audit model: one row per committed order status transition."""
from sqlalchemy import Column, DateTime, Integer, String, Text
from .base import Base


class StatusAudit(Base):
    """Append-only; nothing in the code base updates or deletes these rows."""
    __tablename__ = "zaikon_status_audit"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, nullable=False, index=True)
    status_from = Column(String(32), nullable=True, doc="NULL for the order_created record")
    status_to = Column(String(32), nullable=False)
    source = Column(String(16), nullable=False, doc="pos/kds/api/system/tracking/rider")
    actor_user_id = Column(Integer, nullable=False, default=0)
    event_type = Column(String(32), nullable=True, doc="event name when written by the events dispatcher")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status_from": self.status_from,
            "status_to": self.status_to,
            "source": self.source,
            "actor_user_id": self.actor_user_id,
            "event_type": self.event_type,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
