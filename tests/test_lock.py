"""Tests for the advisory NPD lock."""

from datetime import timedelta

import pytest

from npd_tracker.exceptions import ConflictError, PermissionDenied
from npd_tracker.services import lock_service, npd_service
from npd_tracker.utils.dates import utcnow


class TestLock:
    """Tests for taking and releasing the lock."""

    def test_lock_sets_holder_and_expiry(self, db, users, rka, make_npd):
        """Test that a lock records who holds it and until when."""
        npd = make_npd([(rka.atk, 1_000_000)])

        locked = lock_service.lock(db, users["pptk"], npd.id, reason="Revisi", ttl_minutes=10)

        assert locked.is_locked
        assert locked.locked_by == users["pptk"].id
        assert locked.lock_reason == "Revisi"
        assert lock_service.is_lock_active(locked)
        assert locked.lock_expires_at - locked.locked_at == timedelta(minutes=10)

    def test_second_lock_is_conflict(self, db, users, rka, make_npd):
        """Test that an active lock cannot be taken again."""
        npd = make_npd([(rka.atk, 1_000_000)])
        lock_service.lock(db, users["pptk"], npd.id)

        with pytest.raises(ConflictError):
            lock_service.lock(db, users["verifikator"], npd.id)

    def test_viewer_cannot_lock(self, db, users, rka, make_npd):
        """Test that read-only users cannot lock."""
        npd = make_npd([(rka.atk, 1_000_000)])

        with pytest.raises(PermissionDenied):
            lock_service.lock(db, users["viewer"], npd.id)

    def test_lock_blocks_other_verifier(self, db, users, rka, make_npd):
        """Test that verify is refused while someone else holds the lock."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)
        lock_service.lock(db, users["bendahara"], npd.id)

        with pytest.raises(ConflictError):
            npd_service.verify(db, users["verifikator"], npd.id)

        verified = npd_service.verify(db, users["bendahara"], npd.id)
        assert verified.status == "diverifikasi"


class TestUnlock:
    """Tests for releasing the lock."""

    def test_holder_can_unlock(self, db, users, rka, make_npd):
        """Test that the holder releases their own lock."""
        npd = make_npd([(rka.atk, 1_000_000)])
        lock_service.lock(db, users["pptk"], npd.id)

        released = lock_service.unlock(db, users["pptk"], npd.id)

        assert not released.is_locked
        assert released.locked_by is None
        assert released.lock_expires_at is None

    def test_other_user_cannot_unlock(self, db, users, rka, make_npd):
        """Test that a verifier cannot unlock a draft held by someone else."""
        npd = make_npd([(rka.atk, 1_000_000)])
        lock_service.lock(db, users["pptk"], npd.id)

        with pytest.raises(PermissionDenied):
            lock_service.unlock(db, users["verifikator"], npd.id)

    def test_admin_can_unlock(self, db, users, rka, make_npd):
        """Test that an admin releases any lock."""
        npd = make_npd([(rka.atk, 1_000_000)])
        lock_service.lock(db, users["pptk"], npd.id)

        assert not lock_service.unlock(db, users["admin"], npd.id).is_locked

    def test_verifier_can_unlock_verified_npd(self, db, users, rka, make_npd):
        """Test that any verifier may release a lock on a verified NPD."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)
        npd_service.verify(db, users["bendahara"], npd.id)
        lock_service.lock(db, users["bendahara"], npd.id)

        assert not lock_service.unlock(db, users["verifikator"], npd.id).is_locked

    def test_unlock_when_not_locked(self, db, users, rka, make_npd):
        """Test that unlocking an unlocked NPD is a conflict."""
        npd = make_npd([(rka.atk, 1_000_000)])

        with pytest.raises(ConflictError):
            lock_service.unlock(db, users["admin"], npd.id)


class TestExpiry:
    """Tests for lock expiry and the cleanup sweep."""

    def test_expired_lock_is_inactive(self, db, users, rka, make_npd):
        """Test that an expired lock no longer blocks others."""
        npd = make_npd([(rka.atk, 1_000_000)])
        locked = lock_service.lock(db, users["pptk"], npd.id, ttl_minutes=5)

        later = utcnow() + timedelta(minutes=6)

        assert not lock_service.is_lock_active(locked, later)
        lock_service.assert_not_locked_by_other(locked, users["verifikator"], later)

    def test_cleanup_releases_only_expired(self, db, users, rka, make_npd):
        """Test that the sweep unlocks expired NPDs and leaves the rest."""
        short = make_npd([(rka.atk, 1_000_000)])
        long = make_npd([(rka.atk, 1_000_000)])
        lock_service.lock(db, users["pptk"], short.id, ttl_minutes=5)
        lock_service.lock(db, users["pptk"], long.id, ttl_minutes=60)

        released = lock_service.cleanup_expired(db, now=utcnow() + timedelta(minutes=10))

        assert released == 1
        db.refresh(short)
        db.refresh(long)
        assert not short.is_locked
        assert long.is_locked

    def test_cleanup_with_nothing_expired(self, db, users, rka, make_npd):
        """Test that the sweep is a no-op when every lock is fresh."""
        npd = make_npd([(rka.atk, 1_000_000)])
        lock_service.lock(db, users["pptk"], npd.id)

        assert lock_service.cleanup_expired(db) == 0
