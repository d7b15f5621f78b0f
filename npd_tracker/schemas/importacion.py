"""
Pydantic v2 schemas for the RKA import module.

``ImportacionUploadResponse`` is returned by ``POST /api/importacion/rka``;
``HistorialImportacion`` rows feed the import history table.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ImportacionUploadResponse(BaseModel):
    """Result of one RKA CSV upload.

    Attributes:
        archivo_nombre: Uploaded filename.
        fiscal_year: Year the rows were imported into.
        programs_created / kegiatans_created / subkegiatans_created:
            Hierarchy nodes created by this import.
        accounts_created: New budget accounts.
        accounts_updated: Existing accounts whose pagu or labels changed.
        registros_error: Rows rejected by validation.
        errors: Row error messages ("Baris N: ...").
        warnings: Non-fatal notes.
        estado: "EXITOSO" or "FALLIDO".
    """

    archivo_nombre: str
    fiscal_year: int
    programs_created: int = 0
    kegiatans_created: int = 0
    subkegiatans_created: int = 0
    accounts_created: int = 0
    accounts_updated: int = 0
    registros_error: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    estado: str


class HistorialImportacion(BaseModel):
    id: int
    archivo_nombre: str
    fiscal_year: int
    fecha: datetime
    usuario_username: str
    registros_ok: int
    registros_error: int
    estado: str

    model_config = ConfigDict(from_attributes=True)
