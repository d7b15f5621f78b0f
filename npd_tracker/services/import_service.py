"""
Business logic for the RKA import pipeline.

Responsibilities
----------------
1. Read the uploaded CSV/XLSX bytes and run ``RkaParser``.
2. Reject the whole file when any row fails validation; nothing is written.
3. Upsert the hierarchy (program > kegiatan > sub-kegiatan > account) in
   batches of ``IMPORT_BATCH_SIZE`` rows.
4. Write a ``RegistroImportacion`` history row and an ``imported_rka`` or
   ``import_rka_failed`` audit entry.
5. Return an ``ImportacionUploadResponse`` summary to the calling router.

Upsert keys
-----------
- ``RkaProgram``: (organization_id, fiscal_year, kode).
- ``RkaKegiatan``: (program_id, kode).
- ``RkaSubkegiatan``: (kegiatan_id, kode).
- ``RkaAccount``: (organization_id, fiscal_year, kode).  An existing
  account keeps its ledger; a new ``pagu_tahun`` goes through
  ``ledger_service.set_pagu`` so both ledger equations still hold.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import UploadFile
from sqlalchemy.orm import Session

from npd_tracker.config import get_settings
from npd_tracker.exceptions import DomainError, ValidationError
from npd_tracker.models.registro_importacion import RegistroImportacion
from npd_tracker.models.rka_account import RkaAccount
from npd_tracker.models.rka_kegiatan import RkaKegiatan
from npd_tracker.models.rka_program import RkaProgram
from npd_tracker.models.rka_subkegiatan import RkaSubkegiatan
from npd_tracker.models.usuario import Usuario
from npd_tracker.parsers import ParseResult, RkaParser
from npd_tracker.schemas.importacion import (
    HistorialImportacion,
    ImportacionUploadResponse,
)
from npd_tracker.services import audit_service, ledger_service
from npd_tracker.utils.constants import (
    ACCOUNT_ACTIVE,
    AUDIT_IMPORT_RKA_FAILED,
    AUDIT_IMPORTED_RKA,
)
from npd_tracker.utils.dates import utcnow
from npd_tracker.utils.permissions import require_permission

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


class _Counters:
    """Created/updated tallies collected while upserting one file."""

    def __init__(self) -> None:
        self.programs = 0
        self.kegiatans = 0
        self.subkegiatans = 0
        self.accounts_created = 0
        self.accounts_updated = 0
        self.warnings: list[str] = []


def _upsert_program(
    db: Session, cache: dict[str, RkaProgram], org_id: int, year: int, rec: dict[str, Any], c: _Counters
) -> RkaProgram:
    kode = rec["program_kode"]
    program = cache.get(kode)
    if program is None:
        program = (
            db.query(RkaProgram)
            .filter(
                RkaProgram.organization_id == org_id,
                RkaProgram.fiscal_year == year,
                RkaProgram.kode == kode,
            )
            .first()
        )
        if program is None:
            program = RkaProgram(
                organization_id=org_id,
                fiscal_year=year,
                kode=kode,
                nama=rec["program_nama"],
                status=ACCOUNT_ACTIVE,
            )
            db.add(program)
            db.flush()
            c.programs += 1
        cache[kode] = program
    return program


def _upsert_kegiatan(
    db: Session, cache: dict[tuple[int, str], RkaKegiatan], program: RkaProgram, rec: dict[str, Any], c: _Counters
) -> RkaKegiatan:
    key = (program.id, rec["kegiatan_kode"])
    kegiatan = cache.get(key)
    if kegiatan is None:
        kegiatan = (
            db.query(RkaKegiatan)
            .filter(RkaKegiatan.program_id == program.id, RkaKegiatan.kode == key[1])
            .first()
        )
        if kegiatan is None:
            kegiatan = RkaKegiatan(
                program_id=program.id,
                organization_id=program.organization_id,
                fiscal_year=program.fiscal_year,
                kode=key[1],
                nama=rec["kegiatan_nama"],
                status=ACCOUNT_ACTIVE,
            )
            db.add(kegiatan)
            db.flush()
            c.kegiatans += 1
        cache[key] = kegiatan
    return kegiatan


def _upsert_subkegiatan(
    db: Session, cache: dict[tuple[int, str], RkaSubkegiatan], kegiatan: RkaKegiatan, rec: dict[str, Any], c: _Counters
) -> RkaSubkegiatan:
    key = (kegiatan.id, rec["subkegiatan_kode"])
    sub = cache.get(key)
    if sub is None:
        sub = (
            db.query(RkaSubkegiatan)
            .filter(RkaSubkegiatan.kegiatan_id == kegiatan.id, RkaSubkegiatan.kode == key[1])
            .first()
        )
        if sub is None:
            sub = RkaSubkegiatan(
                kegiatan_id=kegiatan.id,
                organization_id=kegiatan.organization_id,
                fiscal_year=kegiatan.fiscal_year,
                kode=key[1],
                nama=rec["subkegiatan_nama"],
                status=ACCOUNT_ACTIVE,
            )
            db.add(sub)
            db.flush()
            c.subkegiatans += 1
        cache[key] = sub
    return sub


def _upsert_account(db: Session, sub: RkaSubkegiatan, rec: dict[str, Any], c: _Counters) -> None:
    account: RkaAccount | None = (
        db.query(RkaAccount)
        .filter(
            RkaAccount.organization_id == sub.organization_id,
            RkaAccount.fiscal_year == sub.fiscal_year,
            RkaAccount.kode == rec["akun_kode"],
        )
        .with_for_update()
        .first()
    )
    if account is None:
        account = RkaAccount(
            subkegiatan_id=sub.id,
            organization_id=sub.organization_id,
            fiscal_year=sub.fiscal_year,
            kode=rec["akun_kode"],
            uraian=rec["akun_uraian"],
            satuan=rec.get("satuan"),
            volume=rec.get("volume"),
            harga_satuan=rec.get("harga_satuan"),
            status=ACCOUNT_ACTIVE,
        )
        ledger_service.init_figures(account, rec["pagu_tahun"])
        db.add(account)
        c.accounts_created += 1
        return

    if account.subkegiatan_id != sub.id:
        c.warnings.append(
            f"Baris {rec['_row']}: akun {account.kode} sudah terdaftar di sub kegiatan lain; "
            "sub kegiatan tidak diubah"
        )
    account.uraian = rec["akun_uraian"]
    for field in ("satuan", "volume", "harga_satuan"):
        if rec.get(field) is not None:
            setattr(account, field, rec[field])
    if rec["pagu_tahun"] != account.pagu:
        try:
            ledger_service.set_pagu(db, account, rec["pagu_tahun"])
        except ValidationError as exc:
            raise ValidationError(f"Baris {rec['_row']}: {exc.message}") from exc
    c.accounts_updated += 1


def _persist_records(
    db: Session, org_id: int, year: int, records: list[dict[str, Any]]
) -> _Counters:
    """Upsert every record, flushing once per batch."""
    batch_size = get_settings().IMPORT_BATCH_SIZE
    counters = _Counters()
    programs: dict[str, RkaProgram] = {}
    kegiatans: dict[tuple[int, str], RkaKegiatan] = {}
    subs: dict[tuple[int, str], RkaSubkegiatan] = {}

    for start in range(0, len(records), batch_size):
        for rec in records[start:start + batch_size]:
            program = _upsert_program(db, programs, org_id, year, rec, counters)
            kegiatan = _upsert_kegiatan(db, kegiatans, program, rec, counters)
            sub = _upsert_subkegiatan(db, subs, kegiatan, rec, counters)
            _upsert_account(db, sub, rec, counters)
        db.flush()
        logger.debug("_persist_records: batch %d-%d flushed", start, start + batch_size)
    return counters


def _estado(registros_error: int) -> str:
    # all-or-nothing: any row error means nothing was written
    return "EXITOSO" if registros_error == 0 else "FALLIDO"


def _write_history(
    db: Session,
    actor: Usuario,
    *,
    fiscal_year: int,
    archivo_nombre: str,
    registros_ok: int,
    registros_error: int,
    errors: list[str],
    warnings: list[str],
    summary: dict[str, Any],
) -> str:
    """Add the ``RegistroImportacion`` row and its audit entry; returns the estado."""
    estado = _estado(registros_error)
    registro = RegistroImportacion(
        organization_id=actor.organization_id,
        fiscal_year=fiscal_year,
        archivo_nombre=archivo_nombre,
        fecha=utcnow(),
        usuario_id=actor.id,
        usuario_username=actor.username,
        registros_ok=registros_ok,
        registros_error=registros_error,
        estado=estado,
        errors_json=json.dumps(errors, ensure_ascii=False) if errors else None,
        warnings_json=json.dumps(warnings, ensure_ascii=False) if warnings else None,
    )
    db.add(registro)
    db.flush()
    audit_service.record(
        db,
        action=AUDIT_IMPORTED_RKA if estado == "EXITOSO" else AUDIT_IMPORT_RKA_FAILED,
        entity_table="registro_importacion",
        entity_id=registro.id,
        organization_id=actor.organization_id,
        actor_user_id=actor.id,
        entity_data={**summary, "errors": errors[:20]},
        keterangan=archivo_nombre,
    )
    return estado


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------


def import_rka(
    db: Session,
    actor: Usuario,
    content: bytes,
    filename: str,
    fiscal_year: int,
) -> ImportacionUploadResponse:
    """Parse and import one RKA file for the actor's organization.

    The file is all-or-nothing: a single invalid row, or an existing
    account whose new pagu would drop below what is already used, rejects
    the whole upload.  The history row and audit entry are written either
    way.

    Raises:
        PermissionDenied: Actor lacks ``create:rka``.
        ValidationError: Empty upload.
    """
    require_permission(actor.rol, "create", "rka")
    if not content:
        raise ValidationError("File kosong.")

    logger.info(
        "import_rka: file='%s' year=%d org=%d user='%s'",
        filename, fiscal_year, actor.organization_id, actor.username,
    )

    result: ParseResult = RkaParser(content, filename=filename).parse()
    errors = list(result.errors)
    warnings = list(result.warnings)
    counters = _Counters()

    if result.records and not errors:
        try:
            counters = _persist_records(db, actor.organization_id, fiscal_year, result.records)
            warnings.extend(counters.warnings)
        except DomainError as exc:
            db.rollback()
            errors.append(exc.message)
            counters = _Counters()
        except Exception as exc:
            db.rollback()
            logger.exception("import_rka: DB upsert failed for '%s'", filename)
            errors.append(f"Gagal menyimpan data ke database: {exc}")
            counters = _Counters()
    elif not result.records and not errors:
        errors.append("File tidak berisi baris data.")

    registros_ok = counters.accounts_created + counters.accounts_updated
    registros_error = len(errors)
    summary = {
        "fiscal_year": fiscal_year,
        "total_rows": result.record_count + len(result.errors),
        "programs_created": counters.programs,
        "kegiatans_created": counters.kegiatans,
        "subkegiatans_created": counters.subkegiatans,
        "accounts_created": counters.accounts_created,
        "accounts_updated": counters.accounts_updated,
    }

    try:
        estado = _write_history(
            db,
            actor,
            fiscal_year=fiscal_year,
            archivo_nombre=filename,
            registros_ok=registros_ok,
            registros_error=registros_error,
            errors=errors,
            warnings=warnings,
            summary=summary,
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("import_rka: failed to write import history for '%s'", filename)
        raise

    logger.info("import_rka: '%s' %s ok=%d error=%d", filename, estado, registros_ok, registros_error)
    return ImportacionUploadResponse(
        archivo_nombre=filename,
        fiscal_year=fiscal_year,
        programs_created=counters.programs,
        kegiatans_created=counters.kegiatans,
        subkegiatans_created=counters.subkegiatans,
        accounts_created=counters.accounts_created,
        accounts_updated=counters.accounts_updated,
        registros_error=registros_error,
        errors=errors,
        warnings=warnings,
        estado=estado,
    )


async def process_upload(
    db: Session, actor: Usuario, file: UploadFile, fiscal_year: int
) -> ImportacionUploadResponse:
    """Read an ``UploadFile`` and hand it to ``import_rka``."""
    raw: bytes = await file.read()
    return import_rka(db, actor, raw, file.filename or "rka.csv", fiscal_year)


def get_historial(
    db: Session, actor: Usuario, fiscal_year: int | None = None
) -> list[HistorialImportacion]:
    """Return the organization's import history, most recent first."""
    require_permission(actor.rol, "read", "rka")
    q = db.query(RegistroImportacion).filter(
        RegistroImportacion.organization_id == actor.organization_id
    )
    if fiscal_year is not None:
        q = q.filter(RegistroImportacion.fiscal_year == fiscal_year)
    records = q.order_by(RegistroImportacion.fecha.desc(), RegistroImportacion.id.desc()).all()
    logger.debug("get_historial: %d records returned", len(records))
    return [HistorialImportacion.model_validate(r) for r in records]
