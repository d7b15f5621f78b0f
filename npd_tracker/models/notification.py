"""Notification model: in-app message produced by workflow events."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from npd_tracker.database import Base


class Notification(Base):
    """Message for one user, written after the triggering change commits.

    Attributes:
        id: Primary key.
        organization_id: FK to Organization.
        user_id: FK to the recipient Usuario.
        tipo: "npd_submitted", "npd_verified", "npd_rejected",
            "npd_finalized" or "sp2d_created".
        titulo: Short title.
        mensaje: Body text.
        entity_table / entity_id: The record the message is about.
        leido: Whether the recipient has read it.
        leido_at: When it was marked read.
    """

    __tablename__ = "notification"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("usuario.id"), nullable=False)
    tipo = Column(String(50), nullable=False)
    titulo = Column(String(300), nullable=False)
    mensaje = Column(Text, nullable=True)
    entity_table = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True)
    leido = Column(Boolean, default=False, nullable=False)
    leido_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
