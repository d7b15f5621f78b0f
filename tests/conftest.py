"""Shared fixtures: in-memory database, users per role and a small RKA tree."""

import os

# Must be set before npd_tracker is imported; the engine is built at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOCK_SWEEP_ENABLED"] = "false"

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from npd_tracker.database import Base  # noqa: E402
from npd_tracker.models import (  # noqa: E402
    Organization,
    RkaAccount,
    RkaKegiatan,
    RkaProgram,
    RkaSubkegiatan,
    Usuario,
)
from npd_tracker.schemas.npd import NpdCreate, NpdLineCreate  # noqa: E402
from npd_tracker.services import ledger_service, npd_service  # noqa: E402
from npd_tracker.utils.constants import (  # noqa: E402
    ROLE_ADMIN,
    ROLE_BENDAHARA,
    ROLE_PPTK,
    ROLE_VERIFIKATOR,
    ROLE_VIEWER,
)
from npd_tracker.utils.dates import utcnow  # noqa: E402
from npd_tracker.utils.security import create_access_token, hash_password  # noqa: E402

TAHUN = 2026
PASSWORD = "Rahasia123!"

# bcrypt is slow; hash once for every fixture user
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def org(db):
    organization = Organization(kode="ORG-TEST", nama="Dinas Uji")
    db.add(organization)
    db.commit()
    return organization


@pytest.fixture
def users(db, org):
    """One active user per role, keyed by role name."""
    created = {}
    for rol in (ROLE_ADMIN, ROLE_PPTK, ROLE_BENDAHARA, ROLE_VERIFIKATOR, ROLE_VIEWER):
        user = Usuario(
            username=rol,
            email=f"{rol}@dinas-uji.test",
            password_hash=_PASSWORD_HASH,
            nombre_completo=f"Pengguna {rol.title()}",
            rol=rol,
            organization_id=org.id,
            activo=True,
        )
        db.add(user)
        created[rol] = user
    db.commit()
    return created


def _account(db, sub, kode, uraian, pagu):
    account = RkaAccount(
        subkegiatan_id=sub.id,
        organization_id=sub.organization_id,
        fiscal_year=sub.fiscal_year,
        kode=kode,
        uraian=uraian,
        status="active",
    )
    ledger_service.init_figures(account, pagu)
    db.add(account)
    return account


@pytest.fixture
def rka(db, org):
    """Program > kegiatan > sub-kegiatan with two accounts (10 jt and 5 jt)."""
    program = RkaProgram(
        organization_id=org.id, fiscal_year=TAHUN, kode="1.01", nama="Program Penunjang"
    )
    db.add(program)
    db.flush()
    kegiatan = RkaKegiatan(
        program_id=program.id,
        organization_id=org.id,
        fiscal_year=TAHUN,
        kode="1.01.01",
        nama="Administrasi Keuangan",
    )
    db.add(kegiatan)
    db.flush()
    sub = RkaSubkegiatan(
        kegiatan_id=kegiatan.id,
        organization_id=org.id,
        fiscal_year=TAHUN,
        kode="1.01.01.2.01",
        nama="Penyediaan Administrasi Perkantoran",
    )
    db.add(sub)
    db.flush()
    atk = _account(db, sub, "5.1.02.01.01.0001", "Belanja Alat Tulis Kantor", 10_000_000)
    cetak = _account(db, sub, "5.1.02.01.01.0002", "Belanja Cetak", 5_000_000)
    db.commit()
    return SimpleNamespace(
        program=program, kegiatan=kegiatan, subkegiatan=sub, atk=atk, cetak=cetak
    )


@pytest.fixture
def make_npd(db, users, rka):
    """Factory for a draft NPD with ``[(account, jumlah), ...]`` lines."""

    def _make(lines=(), jenis="LS", title="Belanja ATK Triwulan I"):
        npd = npd_service.create_npd(
            db,
            users[ROLE_PPTK],
            NpdCreate(subkegiatan_id=rka.subkegiatan.id, jenis=jenis, tahun=TAHUN, title=title),
        )
        for account, jumlah in lines:
            npd_service.add_line(
                db, users[ROLE_PPTK], npd.id, NpdLineCreate(account_id=account.id, jumlah=jumlah)
            )
        db.refresh(npd)
        return npd

    return _make


@pytest.fixture
def make_final_npd(db, users, make_npd):
    """Factory for an NPD walked through submit, verify and finalize."""

    def _make(lines, jenis="LS"):
        npd = make_npd(lines, jenis=jenis)
        npd_service.submit(db, users[ROLE_PPTK], npd.id)
        npd_service.verify(db, users[ROLE_VERIFIKATOR], npd.id)
        return npd_service.finalize(db, users[ROLE_BENDAHARA], npd.id)

    return _make


@pytest.fixture
def today():
    return utcnow().date()


@pytest.fixture
def client(engine, users):
    """TestClient bound to the test database; lifespan (seed, sweeper) is not run."""
    from fastapi.testclient import TestClient

    from npd_tracker.database import get_db
    from npd_tracker.main import app

    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(users):
    def _headers(rol):
        user = users[rol]
        token = create_access_token(
            data={
                "sub": str(user.id),
                "username": user.username,
                "rol": user.rol,
                "organization_id": user.organization_id,
            }
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
