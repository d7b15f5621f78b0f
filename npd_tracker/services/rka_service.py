"""
RKA (budget plan) hierarchy service.

Read queries over program > kegiatan > sub-kegiatan > account for one
organization, with parent figures aggregated from the accounts below, plus
create/update of individual accounts.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy.orm import Session

from npd_tracker.database import atomic
from npd_tracker.exceptions import ConflictError, NotFoundError, ValidationError
from npd_tracker.models.rka_account import RkaAccount
from npd_tracker.models.rka_kegiatan import RkaKegiatan
from npd_tracker.models.rka_program import RkaProgram
from npd_tracker.models.rka_subkegiatan import RkaSubkegiatan
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.rka import (
    AccountCreate,
    AccountResponse,
    AccountUpdate,
    KegiatanNode,
    LedgerFigures,
    ProgramNode,
    RkaTreeResponse,
    SubkegiatanNode,
    SubkegiatanOption,
)
from npd_tracker.services import audit_service, ledger_service
from npd_tracker.utils.constants import (
    ACCOUNT_ACTIVE,
    ACCOUNT_CODE_PATTERN,
    AUDIT_CREATED,
    AUDIT_UPDATED,
)
from npd_tracker.utils.permissions import require_permission

logger = logging.getLogger(__name__)


def _sum_figures(parts: list[LedgerFigures]) -> LedgerFigures:
    pagu = sum(p.pagu for p in parts)
    realisasi = sum(p.realisasi_tahun for p in parts)
    return LedgerFigures(
        pagu=pagu,
        realisasi_tahun=realisasi,
        sisa_pagu=sum(p.sisa_pagu for p in parts),
        nilai_komitmen=sum(p.nilai_komitmen for p in parts),
        sisa_komitmen=sum(p.sisa_komitmen for p in parts),
        persen_realisasi=ledger_service.safe_pct(realisasi, pagu),
    )


# ---------------------------------------------------------------------------
# Read operations
# ---------------------------------------------------------------------------


def get_fiscal_years(db: Session, actor: Usuario) -> list[int]:
    """Distinct fiscal years that have a budget plan, newest first."""
    require_permission(actor.rol, "read", "rka")
    rows = (
        db.query(RkaProgram.fiscal_year)
        .filter(RkaProgram.organization_id == actor.organization_id)
        .distinct()
        .all()
    )
    return sorted((r[0] for r in rows), reverse=True)


def get_tree(db: Session, actor: Usuario, fiscal_year: int) -> RkaTreeResponse:
    """Return the whole hierarchy of one year with figures at every level.

    Accounts are loaded once and summed in memory; the node figures equal
    what ``ledger_service.aggregate`` returns for each node.
    """
    require_permission(actor.rol, "read", "rka")
    org_id = actor.organization_id

    programs = (
        db.query(RkaProgram)
        .filter(RkaProgram.organization_id == org_id, RkaProgram.fiscal_year == fiscal_year)
        .order_by(RkaProgram.kode)
        .all()
    )
    accounts = (
        db.query(RkaAccount)
        .filter(RkaAccount.organization_id == org_id, RkaAccount.fiscal_year == fiscal_year)
        .order_by(RkaAccount.kode)
        .all()
    )
    by_sub: dict[int, list[RkaAccount]] = defaultdict(list)
    for acc in accounts:
        by_sub[acc.subkegiatan_id].append(acc)

    program_nodes: list[ProgramNode] = []
    for program in programs:
        kegiatan_nodes: list[KegiatanNode] = []
        for kegiatan in program.kegiatans:
            sub_nodes = [
                SubkegiatanNode(
                    id=sub.id,
                    kode=sub.kode,
                    nama=sub.nama,
                    fiscal_year=sub.fiscal_year,
                    figures=ledger_service.figures_of(by_sub[sub.id]),
                    accounts=[AccountResponse.model_validate(a) for a in by_sub[sub.id]],
                )
                for sub in kegiatan.subkegiatans
            ]
            kegiatan_nodes.append(
                KegiatanNode(
                    id=kegiatan.id,
                    kode=kegiatan.kode,
                    nama=kegiatan.nama,
                    figures=_sum_figures([s.figures for s in sub_nodes]),
                    subkegiatans=sub_nodes,
                )
            )
        program_nodes.append(
            ProgramNode(
                id=program.id,
                kode=program.kode,
                nama=program.nama,
                figures=_sum_figures([k.figures for k in kegiatan_nodes]),
                kegiatans=kegiatan_nodes,
            )
        )

    logger.debug(
        "get_tree: org=%d year=%d programs=%d accounts=%d",
        org_id, fiscal_year, len(programs), len(accounts),
    )
    return RkaTreeResponse(
        fiscal_year=fiscal_year,
        figures=ledger_service.figures_of(accounts),
        programs=program_nodes,
    )


def list_subkegiatans(
    db: Session, actor: Usuario, fiscal_year: int | None = None
) -> list[SubkegiatanOption]:
    """Flat sub-kegiatan list for NPD creation dropdowns."""
    require_permission(actor.rol, "read", "rka")
    q = (
        db.query(RkaSubkegiatan, RkaKegiatan.kode, RkaProgram.kode)
        .join(RkaKegiatan, RkaSubkegiatan.kegiatan_id == RkaKegiatan.id)
        .join(RkaProgram, RkaKegiatan.program_id == RkaProgram.id)
        .filter(RkaSubkegiatan.organization_id == actor.organization_id)
    )
    if fiscal_year is not None:
        q = q.filter(RkaSubkegiatan.fiscal_year == fiscal_year)
    rows = q.order_by(RkaProgram.kode, RkaKegiatan.kode, RkaSubkegiatan.kode).all()
    return [
        SubkegiatanOption(
            id=sub.id,
            kode=sub.kode,
            nama=sub.nama,
            fiscal_year=sub.fiscal_year,
            kegiatan_kode=kegiatan_kode,
            program_kode=program_kode,
        )
        for sub, kegiatan_kode, program_kode in rows
    ]


def list_accounts(
    db: Session,
    actor: Usuario,
    subkegiatan_id: int | None = None,
    fiscal_year: int | None = None,
    only_active: bool = False,
) -> list[AccountResponse]:
    require_permission(actor.rol, "read", "rka")
    q = db.query(RkaAccount).filter(RkaAccount.organization_id == actor.organization_id)
    if subkegiatan_id is not None:
        q = q.filter(RkaAccount.subkegiatan_id == subkegiatan_id)
    if fiscal_year is not None:
        q = q.filter(RkaAccount.fiscal_year == fiscal_year)
    if only_active:
        q = q.filter(RkaAccount.status == ACCOUNT_ACTIVE)
    return [AccountResponse.model_validate(a) for a in q.order_by(RkaAccount.kode).all()]


def get_account(db: Session, actor: Usuario, account_id: int) -> RkaAccount:
    require_permission(actor.rol, "read", "rka")
    account: RkaAccount | None = (
        db.query(RkaAccount)
        .filter(
            RkaAccount.id == account_id,
            RkaAccount.organization_id == actor.organization_id,
        )
        .first()
    )
    if account is None:
        raise NotFoundError(f"Budget account {account_id} not found.")
    return account


def get_node_figures(db: Session, actor: Usuario, level: str, node_id: int) -> LedgerFigures:
    """Aggregated figures of one program, kegiatan or sub-kegiatan."""
    require_permission(actor.rol, "read", "rka")
    return ledger_service.aggregate(db, level, node_id, actor.organization_id)


# ---------------------------------------------------------------------------
# Write operations
# ---------------------------------------------------------------------------


def create_account(db: Session, actor: Usuario, data: AccountCreate) -> RkaAccount:
    """Add a budget account under a sub-kegiatan.

    Raises:
        PermissionDenied: Actor lacks ``create:rka``.
        NotFoundError: Sub-kegiatan missing or in another organization.
        ValidationError: Malformed account code.
        ConflictError: Code already used in that organization and year.
    """
    require_permission(actor.rol, "create", "rka")
    kode = data.kode.strip()
    if not ACCOUNT_CODE_PATTERN.match(kode):
        raise ValidationError(f"Invalid account code '{kode}'.")

    with atomic(db):
        sub: RkaSubkegiatan | None = (
            db.query(RkaSubkegiatan)
            .filter(
                RkaSubkegiatan.id == data.subkegiatan_id,
                RkaSubkegiatan.organization_id == actor.organization_id,
            )
            .first()
        )
        if sub is None:
            raise NotFoundError(f"Sub-kegiatan {data.subkegiatan_id} not found.")
        duplicate = (
            db.query(RkaAccount.id)
            .filter(
                RkaAccount.organization_id == actor.organization_id,
                RkaAccount.fiscal_year == sub.fiscal_year,
                RkaAccount.kode == kode,
            )
            .first()
        )
        if duplicate is not None:
            raise ConflictError(f"Account {kode} already exists for {sub.fiscal_year}.")

        account = RkaAccount(
            subkegiatan_id=sub.id,
            organization_id=actor.organization_id,
            fiscal_year=sub.fiscal_year,
            kode=kode,
            uraian=data.uraian,
            satuan=data.satuan,
            volume=data.volume,
            harga_satuan=data.harga_satuan,
            status=ACCOUNT_ACTIVE,
        )
        ledger_service.init_figures(account, data.pagu)
        db.add(account)
        db.flush()
        audit_service.record(
            db,
            action=AUDIT_CREATED,
            entity_table="rka_account",
            entity_id=account.id,
            organization_id=actor.organization_id,
            actor_user_id=actor.id,
            entity_data={"kode": kode, "pagu": data.pagu},
        )

    db.refresh(account)
    logger.info("create_account: %s pagu=%d (id=%d)", account.kode, account.pagu, account.id)
    return account


def update_account(
    db: Session, actor: Usuario, account_id: int, data: AccountUpdate
) -> RkaAccount:
    """Partial update; a pagu change keeps both ledger equations.

    Raises:
        PermissionDenied: Actor lacks ``update:rka``.
        NotFoundError: Account missing or in another organization.
        ValidationError: New pagu below what is already used.
    """
    require_permission(actor.rol, "update", "rka")
    update_data = data.model_dump(exclude_unset=True)

    with atomic(db):
        account = ledger_service.get_account_for_update(db, account_id)
        if account.organization_id != actor.organization_id:
            raise NotFoundError(f"Budget account {account_id} not found.")
        before = {field: getattr(account, field) for field in update_data}
        new_pagu = update_data.pop("pagu", None)
        if new_pagu is not None and new_pagu != account.pagu:
            ledger_service.set_pagu(db, account, new_pagu)
        for field, value in update_data.items():
            setattr(account, field, value)
        audit_service.record(
            db,
            action=AUDIT_UPDATED,
            entity_table="rka_account",
            entity_id=account.id,
            organization_id=actor.organization_id,
            actor_user_id=actor.id,
            entity_data={"before": before, "after": data.model_dump(exclude_unset=True)},
        )

    db.refresh(account)
    logger.info("update_account: id=%d fields=%s", account_id, list(before.keys()))
    return account
