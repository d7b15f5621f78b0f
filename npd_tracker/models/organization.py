"""Organization model: the tenant every other record belongs to."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class Organization(Base):
    """A government work unit (OPD) owning budgets, users and documents.

    Attributes:
        id: Primary key.
        kode: Unique short code, e.g. "DISDIK".
        nama: Display name.
        activo: Whether the tenant is active.
        created_at: Record creation timestamp.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "organization"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kode = Column(String(50), unique=True, nullable=False)
    nama = Column(String(300), nullable=False)
    activo = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    usuarios = relationship("Usuario", back_populates="organization", lazy="select")
    programs = relationship("RkaProgram", back_populates="organization", lazy="select")
