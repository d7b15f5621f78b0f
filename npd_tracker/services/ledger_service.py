"""
Budget ledger service.

Owns every mutation of the money figures on ``RkaAccount`` and the
aggregation of those figures up the program / kegiatan / sub-kegiatan tree.

Design notes
------------
- Two primitives, one per ledger:
  ``apply_realization_delta`` moves ``realisasi_tahun`` / ``sisa_pagu`` and is
  called only by the SP2D realization engine;
  ``apply_commitment_delta`` moves ``nilai_komitmen`` / ``sisa_komitmen`` and
  is called only by NPD line add/update/remove.
  Keeping them apart means a rupiah that is first committed and later
  disbursed is never subtracted from the same figure twice.
- Neither primitive enforces non-negativity; the budget validator runs first.
- Rows are re-read with ``SELECT ... FOR UPDATE`` inside the caller's
  transaction, and nothing here commits.
- Parent figures are never stored; ``aggregate`` sums the leaf accounts on
  every call, so two calls without an intervening mutation are identical.
"""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from npd_tracker.exceptions import NotFoundError, ValidationError
from npd_tracker.models.rka_account import RkaAccount
from npd_tracker.models.rka_kegiatan import RkaKegiatan
from npd_tracker.models.rka_program import RkaProgram
from npd_tracker.models.rka_subkegiatan import RkaSubkegiatan
from npd_tracker.schemas.rka import LedgerFigures

logger = logging.getLogger(__name__)

LEVEL_PROGRAM = "program"
LEVEL_KEGIATAN = "kegiatan"
LEVEL_SUBKEGIATAN = "subkegiatan"

_LEVEL_MODELS = {
    LEVEL_PROGRAM: RkaProgram,
    LEVEL_KEGIATAN: RkaKegiatan,
    LEVEL_SUBKEGIATAN: RkaSubkegiatan,
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def safe_pct(numerator: float, denominator: float) -> float:
    """Return numerator / denominator x 100 rounded to 2 d.p.; 0.0 if denom is zero."""
    if denominator == 0:
        return 0.0
    return round((numerator / denominator) * 100, 2)


def get_account_for_update(db: Session, account_id: int) -> RkaAccount:
    """Load an account row locked for the rest of the transaction.

    Raises:
        NotFoundError: If the account does not exist.
    """
    account: RkaAccount | None = (
        db.query(RkaAccount)
        .filter(RkaAccount.id == account_id)
        .with_for_update()
        .first()
    )
    if account is None:
        raise NotFoundError(f"Budget account {account_id} not found.")
    return account


# ---------------------------------------------------------------------------
# Mutation primitives
# ---------------------------------------------------------------------------


def apply_realization_delta(db: Session, account_id: int, delta: int) -> RkaAccount:
    """Add *delta* to ``realisasi_tahun`` and subtract it from ``sisa_pagu``.

    A negative delta reverses an earlier realization.

    Args:
        db: Session of the caller's transaction.
        account_id: Account receiving the delta.
        delta: Signed amount in integer currency units.

    Returns:
        The updated (flushed, not committed) account.

    Raises:
        NotFoundError: If the account does not exist.
    """
    account = get_account_for_update(db, account_id)
    account.realisasi_tahun = (account.realisasi_tahun or 0) + delta
    account.sisa_pagu = (account.sisa_pagu or 0) - delta
    db.flush()
    logger.debug(
        "apply_realization_delta: account=%d delta=%d realisasi=%d sisa=%d",
        account_id, delta, account.realisasi_tahun, account.sisa_pagu,
    )
    return account


def apply_commitment_delta(db: Session, account_id: int, delta: int) -> RkaAccount:
    """Add *delta* to ``nilai_komitmen`` and subtract it from ``sisa_komitmen``.

    Raises:
        NotFoundError: If the account does not exist.
    """
    account = get_account_for_update(db, account_id)
    account.nilai_komitmen = (account.nilai_komitmen or 0) + delta
    account.sisa_komitmen = (account.sisa_komitmen or 0) - delta
    db.flush()
    logger.debug(
        "apply_commitment_delta: account=%d delta=%d komitmen=%d sisa=%d",
        account_id, delta, account.nilai_komitmen, account.sisa_komitmen,
    )
    return account


def set_pagu(db: Session, account: RkaAccount, new_pagu: int) -> int:
    """Change an account's ceiling while keeping both ledger equations.

    ``sisa_pagu`` and ``sisa_komitmen`` move by the same delta as ``pagu``.

    Args:
        db: Session of the caller's transaction.
        account: Account, already loaded for update.
        new_pagu: New ceiling.

    Returns:
        The applied delta.

    Raises:
        ValidationError: If the new ceiling is negative or below what is
            already committed or disbursed.
    """
    if new_pagu < 0:
        raise ValidationError("Pagu cannot be negative.")
    floor = max(account.nilai_komitmen or 0, account.realisasi_tahun or 0)
    if new_pagu < floor:
        raise ValidationError(
            f"Pagu {new_pagu:,} for account {account.kode} is below the "
            f"amount already used ({floor:,})."
        )
    delta = new_pagu - (account.pagu or 0)
    account.pagu = new_pagu
    account.sisa_pagu = (account.sisa_pagu or 0) + delta
    account.sisa_komitmen = (account.sisa_komitmen or 0) + delta
    db.flush()
    return delta


def init_figures(account: RkaAccount, pagu: int) -> None:
    """Initialise a new account's figures from its ceiling."""
    account.pagu = pagu
    account.realisasi_tahun = 0
    account.sisa_pagu = pagu
    account.nilai_komitmen = 0
    account.sisa_komitmen = pagu


# ---------------------------------------------------------------------------
# Read helpers
# ---------------------------------------------------------------------------


def check_invariants(account: RkaAccount) -> bool:
    """True when both ledger equations hold for *account*."""
    return (
        account.sisa_pagu + account.realisasi_tahun == account.pagu
        and account.sisa_komitmen + account.nilai_komitmen == account.pagu
    )


def figures_of(accounts: list[RkaAccount]) -> LedgerFigures:
    """Sum the figures of already-loaded accounts."""
    pagu = sum(a.pagu or 0 for a in accounts)
    realisasi = sum(a.realisasi_tahun or 0 for a in accounts)
    komitmen = sum(a.nilai_komitmen or 0 for a in accounts)
    return LedgerFigures(
        pagu=pagu,
        realisasi_tahun=realisasi,
        sisa_pagu=sum(a.sisa_pagu or 0 for a in accounts),
        nilai_komitmen=komitmen,
        sisa_komitmen=sum(a.sisa_komitmen or 0 for a in accounts),
        persen_realisasi=safe_pct(realisasi, pagu),
    )


def aggregate(
    db: Session, level: str, parent_id: int, organization_id: int | None = None
) -> LedgerFigures:
    """Recompute a parent node's figures as the sum of its descendants.

    Args:
        db: Active SQLAlchemy session.
        level: ``"program"``, ``"kegiatan"`` or ``"subkegiatan"``.
        parent_id: Primary key of the node at that level.
        organization_id: When given, a node of another organization is
            reported as not found.

    Returns:
        ``LedgerFigures`` summed over every account below the node.

    Raises:
        ValidationError: If *level* is unknown.
        NotFoundError: If the node does not exist.
    """
    model = _LEVEL_MODELS.get(level)
    if model is None:
        raise ValidationError(f"Unknown hierarchy level '{level}'.")
    node_q = db.query(model.id).filter(model.id == parent_id)
    if organization_id is not None:
        node_q = node_q.filter(model.organization_id == organization_id)
    if node_q.first() is None:
        raise NotFoundError(f"{level.capitalize()} {parent_id} not found.")

    q = db.query(
        func.coalesce(func.sum(RkaAccount.pagu), 0),
        func.coalesce(func.sum(RkaAccount.realisasi_tahun), 0),
        func.coalesce(func.sum(RkaAccount.sisa_pagu), 0),
        func.coalesce(func.sum(RkaAccount.nilai_komitmen), 0),
        func.coalesce(func.sum(RkaAccount.sisa_komitmen), 0),
    )
    if level == LEVEL_SUBKEGIATAN:
        q = q.filter(RkaAccount.subkegiatan_id == parent_id)
    elif level == LEVEL_KEGIATAN:
        q = q.join(
            RkaSubkegiatan, RkaAccount.subkegiatan_id == RkaSubkegiatan.id
        ).filter(RkaSubkegiatan.kegiatan_id == parent_id)
    else:
        q = (
            q.join(RkaSubkegiatan, RkaAccount.subkegiatan_id == RkaSubkegiatan.id)
            .join(RkaKegiatan, RkaSubkegiatan.kegiatan_id == RkaKegiatan.id)
            .filter(RkaKegiatan.program_id == parent_id)
        )

    pagu, realisasi, sisa, komitmen, sisa_komitmen = q.one()
    return LedgerFigures(
        pagu=int(pagu),
        realisasi_tahun=int(realisasi),
        sisa_pagu=int(sisa),
        nilai_komitmen=int(komitmen),
        sisa_komitmen=int(sisa_komitmen),
        persen_realisasi=safe_pct(int(realisasi), int(pagu)),
    )
