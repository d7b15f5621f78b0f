"""Usuario model: application user with role-based access control."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class Usuario(Base):
    """System user scoped to one organization.

    Roles:
        - admin: Full access, including SP2D soft delete and restore.
        - pptk: Prepares NPDs and budget plans, submits NPDs.
        - bendahara: Treasurer; records SP2D, verifies and approves NPDs.
        - verifikator: Verifies and approves NPDs.
        - viewer: Read-only.

    Attributes:
        id: Primary key.
        username: Unique login username.
        email: Unique email address.
        password_hash: Bcrypt-hashed password.
        nombre_completo: Full display name.
        rol: Role code controlling permissions.
        organization_id: FK to Organization (tenant scope).
        activo: Whether the account is active.
        ultimo_acceso: Timestamp of the last successful login.
        created_at: Record creation timestamp.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "usuario"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(200), unique=True, nullable=False)
    password_hash = Column(String(200), nullable=False)
    nombre_completo = Column(String(300), nullable=True)
    rol = Column(String(50), nullable=False)
    # "admin", "pptk", "bendahara", "verifikator", "viewer"
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    activo = Column(Boolean, default=True, nullable=False)
    ultimo_acceso = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    organization = relationship(
        "Organization", back_populates="usuarios", lazy="select"
    )
