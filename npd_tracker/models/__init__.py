"""SQLAlchemy models package for the NPD Tracker.

Importing all models here ensures that SQLAlchemy's mapper registry is
populated before ``Base.metadata.create_all()`` or Alembic migrations run.
The import order follows the foreign-key dependency graph so that parent
tables are always registered before their children.

Usage from other modules:
    from npd_tracker.models import NpdDocument, RkaAccount
"""

# Tenant and users
from npd_tracker.models.organization import Organization  # noqa: F401
from npd_tracker.models.usuario import Usuario  # noqa: F401

# Budget hierarchy (RKA)
from npd_tracker.models.rka_program import RkaProgram  # noqa: F401
from npd_tracker.models.rka_kegiatan import RkaKegiatan  # noqa: F401
from npd_tracker.models.rka_subkegiatan import RkaSubkegiatan  # noqa: F401
from npd_tracker.models.rka_account import RkaAccount  # noqa: F401

# Disbursement workflow
from npd_tracker.models.document_sequence import DocumentSequence  # noqa: F401
from npd_tracker.models.npd_document import NpdDocument  # noqa: F401
from npd_tracker.models.npd_line import NpdLine  # noqa: F401
from npd_tracker.models.verification_checklist import VerificationChecklist  # noqa: F401

# Realization chain
from npd_tracker.models.sp2d_ref import Sp2dRef  # noqa: F401
from npd_tracker.models.realization import Realization  # noqa: F401

# Output performance
from npd_tracker.models.performance_log import PerformanceLog  # noqa: F401

# Cross-cutting concerns
from npd_tracker.models.audit_log import AuditLog  # noqa: F401
from npd_tracker.models.notification import Notification  # noqa: F401
from npd_tracker.models.registro_importacion import RegistroImportacion  # noqa: F401

__all__ = [
    "Organization",
    "Usuario",
    "RkaProgram",
    "RkaKegiatan",
    "RkaSubkegiatan",
    "RkaAccount",
    "DocumentSequence",
    "NpdDocument",
    "NpdLine",
    "VerificationChecklist",
    "Sp2dRef",
    "Realization",
    "PerformanceLog",
    "AuditLog",
    "Notification",
    "RegistroImportacion",
]
