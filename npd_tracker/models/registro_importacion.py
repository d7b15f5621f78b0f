"""RegistroImportacion model: history of RKA CSV imports."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from npd_tracker.database import Base


class RegistroImportacion(Base):
    """One row per RKA upload, written whether or not the import succeeded.

    Attributes:
        id: Primary key.
        organization_id: FK to Organization the rows were imported into.
        fiscal_year: Budget year of the import.
        archivo_nombre: Original filename submitted by the client.
        fecha: When the import was processed.
        usuario_id: ID of the Usuario who performed the upload.
        usuario_username: Username snapshot at import time.
        registros_ok: Accounts created or updated.
        registros_error: Rows rejected during validation.
        estado: "EXITOSO" or "FALLIDO".
        errors_json: JSON-serialised list of row error messages.
        warnings_json: JSON-serialised list of warnings.
    """

    __tablename__ = "registro_importacion"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    archivo_nombre = Column(String(500), nullable=False)
    fecha = Column(DateTime, default=func.now(), nullable=False)
    usuario_id = Column(Integer, nullable=False)
    usuario_username = Column(String(100), nullable=False)
    registros_ok = Column(Integer, default=0, nullable=False)
    registros_error = Column(Integer, default=0, nullable=False)
    estado = Column(String(20), nullable=False)  # EXITOSO | FALLIDO
    errors_json = Column(Text, nullable=True)
    warnings_json = Column(Text, nullable=True)
