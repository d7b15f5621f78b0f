"""
Shared Pydantic v2 schemas reused across multiple modules.

Provides generic filter, pagination, and message response models so that
each domain module can compose them without duplicating field definitions.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class FilterParams(BaseModel):
    """Query-level filters shared across NPD, SP2D and report endpoints.

    All fields are optional; omitting one means "no restriction on that axis".

    Attributes:
        tahun: Fiscal year to filter by (e.g. 2026).
        status: NPD workflow status.
        jenis: NPD type (UP/GU/TU/LS).
        subkegiatan_id: Primary key of a specific RkaSubkegiatan.
    """

    tahun: int | None = Field(
        default=None,
        ge=2000,
        le=2100,
        description="Tahun anggaran (mis. 2026). None = semua tahun.",
    )
    status: str | None = Field(
        default=None,
        max_length=20,
        description="Status NPD: draft, diajukan, diverifikasi, final.",
    )
    jenis: str | None = Field(
        default=None,
        max_length=5,
        description="Jenis NPD: UP, GU, TU, LS.",
    )
    subkegiatan_id: int | None = Field(
        default=None,
        ge=1,
        description="ID sub kegiatan. None = semua sub kegiatan.",
    )


class PaginationParams(BaseModel):
    """Pagination parameters for list endpoints.

    Attributes:
        page: 1-based page number.
        page_size: Number of rows per page (capped at 200).
    """

    page: int = Field(
        default=1,
        ge=1,
        description="Nomor halaman (mulai dari 1).",
    )
    page_size: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Jumlah baris per halaman (maksimum 200).",
    )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class MessageResponse(BaseModel):
    """Generic message envelope for operations that do not return a resource.

    Attributes:
        message: Short human-readable result summary.
        detail: Optional extended information.
    """

    message: str = Field(..., description="Ringkasan hasil operasi.")
    detail: str | None = Field(default=None, description="Informasi tambahan.")


class ErrorResponse(BaseModel):
    """Body returned for every domain error.

    Attributes:
        kind: Machine-checkable error kind, e.g. ``"budget_exceeded"``.
        detail: Human-readable message.
        requested: Attempted amount (budget errors only).
        available: Available amount (budget errors only).
        current: Current status (state-transition errors only).
        target: Attempted status (state-transition errors only).
    """

    kind: str
    detail: str
    requested: int | None = None
    available: int | None = None
    current: str | None = None
    target: str | None = None
