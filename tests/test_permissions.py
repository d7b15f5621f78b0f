"""Tests for the role/permission policy table."""

import pytest

from npd_tracker.exceptions import PermissionDenied
from npd_tracker.utils.permissions import has_permission, require_permission

ROLES = ["admin", "pptk", "bendahara", "verifikator", "viewer"]

# (action, resource) -> roles that hold it
MATRIX = {
    ("create", "npd"): {"admin", "pptk", "bendahara"},
    ("update", "npd"): {"admin", "pptk", "bendahara"},
    ("submit", "npd"): {"admin", "pptk"},
    ("verify", "npd"): {"admin", "bendahara", "verifikator"},
    ("approve", "npd"): {"admin", "bendahara", "verifikator"},
    ("read", "npd"): set(ROLES),
    ("create", "rka"): {"admin", "pptk"},
    ("create", "sp2d"): {"admin", "bendahara"},
    ("update", "sp2d"): {"admin", "bendahara"},
    ("delete", "sp2d"): {"admin"},
    ("read", "sp2d"): set(ROLES),
    ("read", "reports"): set(ROLES),
    ("read", "audit"): {"admin"},
    ("update", "profile"): set(ROLES),
    ("create", "performance"): {"admin", "pptk"},
    ("read", "performance"): set(ROLES),
    ("update", "performance"): {"admin", "pptk"},
    ("submit", "performance"): {"admin", "pptk"},
    ("approve", "performance"): {"admin", "bendahara", "verifikator"},
    ("delete", "performance"): {"admin"},
}


class TestHasPermission:
    """Tests for capability lookups."""

    @pytest.mark.parametrize("capability,allowed", list(MATRIX.items()))
    def test_matrix(self, capability, allowed):
        """Test each capability against every role."""
        action, resource = capability
        granted = {rol for rol in ROLES if has_permission(rol, action, resource)}
        assert granted == allowed

    def test_admin_wildcard(self):
        """Test that admin holds capabilities not listed anywhere."""
        assert has_permission("admin", "export", "anything")

    def test_unknown_role_has_nothing(self):
        """Test that unknown or missing roles are denied."""
        assert not has_permission("tamu", "read", "npd")
        assert not has_permission(None, "read", "npd")


class TestRequirePermission:
    """Tests for the raising variant."""

    def test_denied_carries_context(self):
        """Test that the error names role, action and resource."""
        with pytest.raises(PermissionDenied) as excinfo:
            require_permission("viewer", "delete", "sp2d")

        err = excinfo.value
        assert (err.role, err.action, err.resource) == ("viewer", "delete", "sp2d")
        assert err.to_dict()["kind"] == "permission_denied"
        assert err.status_code == 403

    def test_granted_returns_none(self):
        """Test that a granted capability passes silently."""
        assert require_permission("pptk", "submit", "npd") is None
