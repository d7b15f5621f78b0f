"""
Pure lookups over the role/permission policy table.

The table itself lives in ``constants.ROLE_PERMISSIONS``; this module only
answers questions against it so that the policy stays data, not branching.
"""

from __future__ import annotations

from npd_tracker.exceptions import PermissionDenied
from npd_tracker.utils.constants import ROLE_PERMISSIONS


def has_permission(role: str | None, action: str, resource: str) -> bool:
    """Return True when *role* holds the ``action:resource`` capability.

    Unknown roles hold nothing.  ``*`` in the policy table matches any
    action or resource.

    Args:
        role: Role code, e.g. ``"pptk"``.
        action: Verb such as ``"create"``, ``"verify"`` or ``"approve"``.
        resource: Resource such as ``"npd"`` or ``"sp2d"``.

    Returns:
        Whether the capability is granted.
    """
    grants = ROLE_PERMISSIONS.get(role or "")
    if not grants:
        return False
    return any(
        candidate in grants
        for candidate in (
            f"{action}:{resource}",
            f"{action}:*",
            f"*:{resource}",
            "*:*",
        )
    )


def require_permission(role: str | None, action: str, resource: str) -> None:
    """Raise ``PermissionDenied`` unless *role* holds ``action:resource``."""
    if not has_permission(role, action, resource):
        raise PermissionDenied(role, action, resource)
