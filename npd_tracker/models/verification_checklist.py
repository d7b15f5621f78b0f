"""VerificationChecklist model: verifier's document checklist for an NPD."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from npd_tracker.database import Base


class VerificationChecklist(Base):
    """Results of the per-jenis verification checklist.

    Attributes:
        id: Primary key.
        npd_id: FK to NpdDocument.
        organization_id: FK to Organization.
        checklist_type: NPD jenis the template was taken from.
        results: JSON list of ``{item_id, checked, notes}``.
        status: "pending", "in_progress", "completed" or "rejected".
        notes: Verifier's general notes.
        verified_by: FK to Usuario who saved the checklist.
        verified_at: When it was last saved.
    """

    __tablename__ = "verification_checklist"

    id = Column(Integer, primary_key=True, autoincrement=True)
    npd_id = Column(Integer, ForeignKey("npd_document.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    checklist_type = Column(String(5), nullable=False)
    results = Column(JSON, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    notes = Column(Text, nullable=True)
    verified_by = Column(Integer, ForeignKey("usuario.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
