"""
Budget validator: read-only checks run before any ledger-affecting mutation.

Two checks guard every NPD line add/update:

1. ``validate_cumulative_per_account``: the lines of every non-draft NPD of
   the organization on the account, plus this NPD's proposed total on it,
   may not exceed the account's nominal ``pagu``.
2. ``validate_immediate_budget``: this NPD's lines on the account may not
   exceed the headroom still available to it, i.e. the account's
   ``sisa_komitmen`` plus what this NPD already holds there.

A line is accepted only when both pass.  When both fail, the one with the
smaller ``available`` is reported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from npd_tracker.exceptions import BudgetExceeded, NotFoundError
from npd_tracker.models.npd_document import NpdDocument
from npd_tracker.models.npd_line import NpdLine
from npd_tracker.models.rka_account import RkaAccount
from npd_tracker.utils.constants import NPD_DRAFT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of one budget check.

    Attributes:
        valid: Whether the check passed.
        available: Amount the proposal was compared against.
        requested: Amount that was proposed.
    """

    valid: bool
    available: int
    requested: int


def validate_cumulative_per_account(
    db: Session,
    organization_id: int,
    account_id: int,
    exclude_npd_id: int | None,
    proposed_npd_total_for_account: int,
) -> ValidationOutcome:
    """Check the sum of all active NPD commitments on an account against ``pagu``.

    Args:
        db: Active SQLAlchemy session.
        organization_id: Tenant whose NPDs are summed.
        account_id: Account being checked.
        exclude_npd_id: NPD being edited; its stored lines are left out.
        proposed_npd_total_for_account: That NPD's total on the account
            after the proposed change.

    Returns:
        A ``ValidationOutcome``; ``available`` is ``pagu`` minus the other
        non-draft NPDs' lines on the account.

    Raises:
        NotFoundError: If the account is not in the organization.
    """
    account: RkaAccount | None = (
        db.query(RkaAccount)
        .filter(
            RkaAccount.id == account_id,
            RkaAccount.organization_id == organization_id,
        )
        .first()
    )
    if account is None:
        raise NotFoundError(f"Budget account {account_id} not found.")

    q = (
        db.query(func.coalesce(func.sum(NpdLine.jumlah), 0))
        .join(NpdDocument, NpdLine.npd_id == NpdDocument.id)
        .filter(
            NpdDocument.organization_id == organization_id,
            NpdDocument.status != NPD_DRAFT,
            NpdLine.account_id == account_id,
        )
    )
    if exclude_npd_id is not None:
        q = q.filter(NpdDocument.id != exclude_npd_id)
    committed_elsewhere = int(q.scalar() or 0)

    available = (account.pagu or 0) - committed_elsewhere
    return ValidationOutcome(
        valid=proposed_npd_total_for_account <= available,
        available=available,
        requested=proposed_npd_total_for_account,
    )


def validate_immediate_budget(
    available: int,
    current_npd_lines_total_excluding_this: int,
    proposed_jumlah: int,
) -> ValidationOutcome:
    """Check this NPD's lines on an account against the headroom left for it.

    Pure arithmetic; the caller computes *available*.
    """
    requested = current_npd_lines_total_excluding_this + proposed_jumlah
    return ValidationOutcome(
        valid=requested <= available,
        available=available,
        requested=requested,
    )


def check_line(
    db: Session,
    npd: NpdDocument,
    account: RkaAccount,
    proposed_jumlah: int,
    editing_line: NpdLine | None = None,
) -> tuple[ValidationOutcome, ValidationOutcome]:
    """Run both checks for a line about to be added or changed.

    Args:
        db: Session of the caller's transaction.
        npd: The NPD that owns (or will own) the line.
        account: The line's account, loaded for update.
        proposed_jumlah: The line's new amount.
        editing_line: The stored line being changed, or ``None`` for an add.

    Returns:
        ``(cumulative, immediate)`` outcomes, both valid.

    Raises:
        BudgetExceeded: If either check fails.
    """
    q = db.query(func.coalesce(func.sum(NpdLine.jumlah), 0)).filter(
        NpdLine.npd_id == npd.id,
        NpdLine.account_id == account.id,
    )
    if editing_line is not None:
        q = q.filter(NpdLine.id != editing_line.id)
    other_lines_total = int(q.scalar() or 0)
    released = editing_line.jumlah if editing_line is not None else 0

    cumulative = validate_cumulative_per_account(
        db,
        npd.organization_id,
        account.id,
        npd.id,
        other_lines_total + proposed_jumlah,
    )
    immediate = validate_immediate_budget(
        available=(account.sisa_komitmen or 0) + other_lines_total + released,
        current_npd_lines_total_excluding_this=other_lines_total,
        proposed_jumlah=proposed_jumlah,
    )

    failed = [o for o in (cumulative, immediate) if not o.valid]
    if failed:
        worst = min(failed, key=lambda o: o.available)
        logger.info(
            "check_line: rejected npd=%d account=%s requested=%d available=%d",
            npd.id, account.kode, worst.requested, worst.available,
        )
        raise BudgetExceeded(
            requested=worst.requested,
            available=worst.available,
            message=(
                f"Account {account.kode}: requested {worst.requested:,} exceeds "
                f"available {worst.available:,} by "
                f"{worst.requested - worst.available:,}."
            ),
        )
    return cumulative, immediate
