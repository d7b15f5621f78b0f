"""AuditLog model: append-only trail of mutating actions."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func

from npd_tracker.database import Base


class AuditLog(Base):
    """Immutable record of one mutating action.

    Rows are inserted in the same transaction as the change they describe
    and are never updated or deleted.

    Attributes:
        id: Primary key.
        organization_id: FK to Organization.
        actor_user_id: FK to Usuario; NULL for system actions (lock sweep).
        action: e.g. "created", "line_added", "soft_deleted".
        entity_table: Table name of the affected entity.
        entity_id: Primary key of the affected entity.
        entity_data: JSON snapshot (before/after or operation payload).
        keterangan: Optional human-readable note.
        created_at: Insertion timestamp.
    """

    __tablename__ = "audit_log"
    __table_args__ = (Index("ix_audit_log_entity", "entity_table", "entity_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    actor_user_id = Column(Integer, ForeignKey("usuario.id"), nullable=True)
    action = Column(String(50), nullable=False)
    entity_table = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=True)
    entity_data = Column(JSON, nullable=True)
    keterangan = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
