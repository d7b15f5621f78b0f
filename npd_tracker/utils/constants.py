"""
Application-wide constants for the NPD Tracker.

Defines domain enumerations, the NPD state machine, the role/permission
policy table and lookup lists used across routers, services and models.
"""

import re
from typing import Final

# ---------------------------------------------------------------------------
# User roles
# ---------------------------------------------------------------------------

ROLE_ADMIN: Final[str] = "admin"
ROLE_PPTK: Final[str] = "pptk"
ROLE_BENDAHARA: Final[str] = "bendahara"
ROLE_VERIFIKATOR: Final[str] = "verifikator"
ROLE_VIEWER: Final[str] = "viewer"

ROLES: Final[list[str]] = [
    ROLE_ADMIN,
    ROLE_PPTK,
    ROLE_BENDAHARA,
    ROLE_VERIFIKATOR,
    ROLE_VIEWER,
]

# ---------------------------------------------------------------------------
# NPD status state machine
# ---------------------------------------------------------------------------

NPD_DRAFT: Final[str] = "draft"
NPD_DIAJUKAN: Final[str] = "diajukan"
NPD_DIVERIFIKASI: Final[str] = "diverifikasi"
NPD_FINAL: Final[str] = "final"

ESTADOS_NPD: Final[list[str]] = [
    NPD_DRAFT,
    NPD_DIAJUKAN,
    NPD_DIVERIFIKASI,
    NPD_FINAL,
]

# from -> allowed targets; ``final`` is terminal
NPD_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    NPD_DRAFT: frozenset({NPD_DIAJUKAN}),
    NPD_DIAJUKAN: frozenset({NPD_DIVERIFIKASI, NPD_DRAFT}),
    NPD_DIVERIFIKASI: frozenset({NPD_FINAL, NPD_DRAFT}),
    NPD_FINAL: frozenset(),
}

# ---------------------------------------------------------------------------
# NPD types (jenis)
# ---------------------------------------------------------------------------

JENIS_NPD: Final[list[str]] = ["UP", "GU", "TU", "LS"]

# ---------------------------------------------------------------------------
# Budget account status
# ---------------------------------------------------------------------------

ACCOUNT_ACTIVE: Final[str] = "active"
ACCOUNT_INACTIVE: Final[str] = "inactive"

# Account codes look like 5.1.02.01.01.0001 (at least five dotted groups)
ACCOUNT_CODE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\d+(\.\d+){4,}$")

# ---------------------------------------------------------------------------
# Role/permission policy table
#
# Each role maps to a set of "action:resource" capabilities.  "*" on either
# side is a wildcard.  ``delete:sp2d`` (soft delete and restore) is admin only.
# ---------------------------------------------------------------------------

_READ_ALL: Final[frozenset[str]] = frozenset({
    "read:npd",
    "read:rka",
    "read:sp2d",
    "read:realisasi",
    "read:performance",
    "read:reports",
})

ROLE_PERMISSIONS: Final[dict[str, frozenset[str]]] = {
    ROLE_ADMIN: frozenset({"*:*"}),
    ROLE_PPTK: frozenset({
        "create:npd",
        "create:rka",
        "read:npd",
        "read:rka",
        "read:sp2d",
        "read:realisasi",
        "read:reports",
        "read:performance",
        "create:performance",
        "update:npd",
        "update:rka",
        "update:performance",
        "update:profile",
        "submit:npd",
        "submit:performance",
    }),
    ROLE_BENDAHARA: _READ_ALL | frozenset({
        "create:npd",
        "create:sp2d",
        "create:realisasi",
        "update:npd",
        "update:sp2d",
        "update:realisasi",
        "update:profile",
        "verify:npd",
        "approve:npd",
        "approve:performance",
    }),
    ROLE_VERIFIKATOR: _READ_ALL | frozenset({
        "update:profile",
        "verify:npd",
        "approve:npd",
        "approve:performance",
    }),
    ROLE_VIEWER: _READ_ALL | frozenset({
        "update:profile",
    }),
}

# ---------------------------------------------------------------------------
# Audit log actions
# ---------------------------------------------------------------------------

AUDIT_CREATED: Final[str] = "created"
AUDIT_UPDATED: Final[str] = "updated"
AUDIT_SUBMITTED: Final[str] = "submitted"
AUDIT_VERIFIED: Final[str] = "verified"
AUDIT_FINALIZED: Final[str] = "finalized"
AUDIT_REJECTED: Final[str] = "rejected"
AUDIT_APPROVED: Final[str] = "approved"
AUDIT_DELETED: Final[str] = "deleted"
AUDIT_LINE_ADDED: Final[str] = "line_added"
AUDIT_LINE_UPDATED: Final[str] = "line_updated"
AUDIT_LINE_REMOVED: Final[str] = "line_removed"
AUDIT_SOFT_DELETED: Final[str] = "soft_deleted"
AUDIT_RESTORED: Final[str] = "restored"
AUDIT_LOCKED: Final[str] = "locked"
AUDIT_UNLOCKED: Final[str] = "unlocked"
AUDIT_AUTO_UNLOCKED: Final[str] = "auto_unlocked"
AUDIT_CHECKLIST_SAVED: Final[str] = "checklist_saved"
AUDIT_IMPORTED_RKA: Final[str] = "imported_rka"
AUDIT_IMPORT_RKA_FAILED: Final[str] = "import_rka_failed"

# ---------------------------------------------------------------------------
# Notification types
# ---------------------------------------------------------------------------

NOTIF_NPD_SUBMITTED: Final[str] = "npd_submitted"
NOTIF_NPD_VERIFIED: Final[str] = "npd_verified"
NOTIF_NPD_REJECTED: Final[str] = "npd_rejected"
NOTIF_NPD_FINALIZED: Final[str] = "npd_finalized"
NOTIF_SP2D_CREATED: Final[str] = "sp2d_created"

# ---------------------------------------------------------------------------
# Verification checklist templates per NPD jenis
# ---------------------------------------------------------------------------

CHECKLIST_PENDING: Final[str] = "pending"
CHECKLIST_IN_PROGRESS: Final[str] = "in_progress"
CHECKLIST_COMPLETED: Final[str] = "completed"
CHECKLIST_REJECTED: Final[str] = "rejected"

ESTADOS_CHECKLIST: Final[list[str]] = [
    CHECKLIST_PENDING,
    CHECKLIST_IN_PROGRESS,
    CHECKLIST_COMPLETED,
    CHECKLIST_REJECTED,
]

CHECKLIST_TEMPLATES: Final[dict[str, list[dict[str, object]]]] = {
    "UP": [
        {"id": "surat_permohonan", "label": "Surat Permohonan", "required": True},
        {"id": "rincian_biaya", "label": "Rincian Biaya", "required": True},
        {"id": "bukti_pendukung", "label": "Bukti Pendukung", "required": True},
        {"id": "sisa_pagu", "label": "Sisa Pagu Memadai", "required": True},
        {"id": "kelengkapan_data", "label": "Kelengkapan Data", "required": True},
    ],
    "GU": [
        {"id": "surat_pengantar", "label": "Surat Pengantar", "required": True},
        {"id": "kwitansi_asli", "label": "Kwitansi Asli", "required": True},
        {"id": "bukti_pembelanjaan", "label": "Bukti Pembelanjaan", "required": True},
        {"id": "sisa_pagu", "label": "Sisa Pagu Memadai", "required": True},
        {"id": "perhitungan", "label": "Perhitungan", "required": True},
    ],
    "TU": [
        {"id": "surat_permohonan", "label": "Surat Permohonan", "required": True},
        {"id": "rincian_biaya", "label": "Rincian Biaya", "required": True},
        {"id": "bukti_pendukung", "label": "Bukti Pendukung", "required": True},
        {"id": "sisa_pagu", "label": "Sisa Pagu Memadai", "required": True},
        {"id": "kebutuhan", "label": "Kebutuhan", "required": True},
    ],
    "LS": [
        {"id": "surat_perintah", "label": "Surat Perintah", "required": True},
        {"id": "kwitansi_asli", "label": "Kwitansi Asli", "required": True},
        {"id": "bukti_pelaksanaan", "label": "Bukti Pelaksanaan", "required": True},
        {"id": "sisa_pagu", "label": "Sisa Pagu Memadai", "required": True},
        {"id": "pelaksanaan", "label": "Pelaksanaan", "required": True},
    ],
}

# ---------------------------------------------------------------------------
# Performance indicator logs
# ---------------------------------------------------------------------------

PERFORMANCE_DRAFT: Final[str] = "draft"
PERFORMANCE_SUBMITTED: Final[str] = "submitted"
PERFORMANCE_APPROVED: Final[str] = "approved"

# from -> allowed targets; ``approved`` is terminal
PERFORMANCE_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    PERFORMANCE_DRAFT: frozenset({PERFORMANCE_SUBMITTED}),
    PERFORMANCE_SUBMITTED: frozenset({PERFORMANCE_APPROVED, PERFORMANCE_DRAFT}),
    PERFORMANCE_APPROVED: frozenset(),
}

# Realisasi may not exceed this multiple of target
PERFORMANCE_MAX_RATIO: Final[int] = 2

# ---------------------------------------------------------------------------
# Quarters (triwulan)
# ---------------------------------------------------------------------------

QUARTER_MONTHS: Final[dict[str, tuple[int, int]]] = {
    "Q1": (1, 3),
    "Q2": (4, 6),
    "Q3": (7, 9),
    "Q4": (10, 12),
}

# Performance periods recorded as TW1..TW4 count toward the matching quarter
QUARTER_PERIODE: Final[dict[str, str]] = {
    "Q1": "TW1",
    "Q2": "TW2",
    "Q3": "TW3",
    "Q4": "TW4",
}

# ---------------------------------------------------------------------------
# RKA CSV import columns
# ---------------------------------------------------------------------------

RKA_CSV_REQUIRED_COLUMNS: Final[list[str]] = [
    "program_kode",
    "program_nama",
    "kegiatan_kode",
    "kegiatan_nama",
    "subkegiatan_kode",
    "subkegiatan_nama",
    "akun_kode",
    "akun_uraian",
    "pagu_tahun",
]

RKA_CSV_OPTIONAL_COLUMNS: Final[list[str]] = [
    "satuan",
    "volume",
    "harga_satuan",
]
