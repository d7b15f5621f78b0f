"""HTTP-level tests: authentication, error envelopes and a workflow round trip."""

PASSWORD = "Rahasia123!"


class TestAuth:
    """Tests for login and token handling."""

    def test_health(self, client):
        """Test the unauthenticated health check."""
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_login_and_me(self, client):
        """Test that a valid login returns a usable bearer token."""
        response = client.post("/api/auth/login", data={"username": "pptk", "password": PASSWORD})
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["rol"] == "pptk"

    def test_wrong_password(self, client):
        """Test that bad credentials are a 401."""
        response = client.post("/api/auth/login", data={"username": "pptk", "password": "salah"})
        assert response.status_code == 401

    def test_missing_token(self, client):
        """Test that protected routes need a token."""
        assert client.get("/api/npd").status_code == 401


class TestErrorEnvelope:
    """Tests for the JSON shape of domain errors."""

    def test_not_found(self, client, auth_headers):
        """Test that a missing NPD maps to 404 with kind not_found."""
        response = client.get("/api/npd/999", headers=auth_headers("viewer"))

        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"
        assert "detail" in response.json()

    def test_permission_denied(self, client, auth_headers, rka):
        """Test that a forbidden write maps to 403."""
        response = client.post(
            "/api/npd",
            json={"subkegiatan_id": rka.subkegiatan.id, "jenis": "LS", "tahun": 2026, "title": "X"},
            headers=auth_headers("viewer"),
        )

        assert response.status_code == 403
        assert response.json()["kind"] == "permission_denied"

    def test_budget_exceeded(self, client, auth_headers, rka):
        """Test that an over-budget line maps to 422 with the amounts."""
        headers = auth_headers("pptk")
        created = client.post(
            "/api/npd",
            json={"subkegiatan_id": rka.subkegiatan.id, "jenis": "LS", "tahun": 2026, "title": "ATK"},
            headers=headers,
        )
        assert created.status_code == 201
        npd_id = created.json()["id"]

        response = client.post(
            f"/api/npd/{npd_id}/lines",
            json={"account_id": rka.cetak.id, "jumlah": 6_000_000},
            headers=headers,
        )

        assert response.status_code == 422
        body = response.json()
        assert body["kind"] == "budget_exceeded"
        assert body["requested"] == 6_000_000
        assert body["available"] == 5_000_000

    def test_state_transition(self, client, auth_headers, rka):
        """Test that an illegal transition maps to 409 with both statuses."""
        created = client.post(
            "/api/npd",
            json={"subkegiatan_id": rka.subkegiatan.id, "jenis": "UP", "tahun": 2026, "title": "UP"},
            headers=auth_headers("pptk"),
        )
        npd_id = created.json()["id"]

        response = client.post(f"/api/npd/{npd_id}/finalize", headers=auth_headers("admin"))

        assert response.status_code == 409
        assert response.json() == {
            "kind": "state_transition",
            "detail": "Illegal transition from 'draft' to 'final'.",
            "current": "draft",
            "target": "final",
        }


class TestWorkflowOverHttp:
    """Tests for a full NPD and SP2D round trip through the API."""

    def test_npd_to_sp2d(self, client, auth_headers, rka, today):
        """Test create, submit, verify, finalize and disburse."""
        pptk = auth_headers("pptk")
        npd = client.post(
            "/api/npd",
            json={"subkegiatan_id": rka.subkegiatan.id, "jenis": "LS", "tahun": 2026, "title": "ATK"},
            headers=pptk,
        ).json()
        client.post(
            f"/api/npd/{npd['id']}/lines",
            json={"account_id": rka.atk.id, "jumlah": 4_000_000},
            headers=pptk,
        )

        assert client.post(f"/api/npd/{npd['id']}/submit", headers=pptk).status_code == 200
        verify = client.post(f"/api/npd/{npd['id']}/verify", headers=auth_headers("verifikator"))
        assert verify.json()["status"] == "diverifikasi"
        final = client.post(f"/api/npd/{npd['id']}/finalize", headers=auth_headers("bendahara"))
        assert final.json()["status"] == "final"

        sp2d = client.post(
            "/api/sp2d",
            json={
                "npd_id": npd["id"],
                "no_sp2d": "0001/SP2D/LS/2026",
                "tgl_sp2d": today.isoformat(),
                "nilai_cair": 1_000_000,
            },
            headers=auth_headers("bendahara"),
        )
        assert sp2d.status_code == 201

        detail = client.get(f"/api/npd/{npd['id']}", headers=pptk).json()
        assert detail["total_cair"] == 1_000_000
        assert detail["sisa_cair"] == 3_000_000

        figures = client.get(
            f"/api/rka/figures/subkegiatan/{rka.subkegiatan.id}", headers=pptk
        ).json()
        assert figures["realisasi_tahun"] == 1_000_000
        assert figures["nilai_komitmen"] == 4_000_000

    def test_npd_pdf_export(self, client, auth_headers, rka, make_final_npd):
        """Test that the NPD print view streams a PDF."""
        npd = make_final_npd([(rka.atk, 1_000_000)])

        response = client.get(f"/api/exportar/npd/{npd.id}/pdf", headers=auth_headers("viewer"))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_realisasi_excel_export(self, client, auth_headers, rka):
        """Test that the realization report streams an xlsx workbook."""
        response = client.get(
            "/api/exportar/realisasi/excel", params={"tahun": 2026}, headers=auth_headers("viewer")
        )

        assert response.status_code == 200
        assert response.content[:2] == b"PK"


class TestPerformanceOverHttp:
    """Tests for the performance and triwulan endpoints."""

    def test_create_and_list(self, client, auth_headers, rka):
        """Test that a created log shows up in its sub-kegiatan list."""
        created = client.post(
            "/api/performance",
            json={
                "subkegiatan_id": rka.subkegiatan.id,
                "indikator_nama": "Laporan",
                "target": 4,
                "realisasi": 2,
                "satuan": "dokumen",
                "periode": "TW1",
            },
            headers=auth_headers("pptk"),
        )
        assert created.status_code == 201
        assert created.json()["approval_status"] == "draft"

        listed = client.get(
            f"/api/performance/subkegiatan/{rka.subkegiatan.id}", headers=auth_headers("viewer")
        )
        assert [log["indikator_nama"] for log in listed.json()] == ["Laporan"]

    def test_triwulan_rejects_bad_quarter(self, client, auth_headers):
        """Test that an unknown quarter is a 422 validation error."""
        response = client.get(
            "/api/dashboard/triwulan",
            params={"tahun": 2026, "quarter": "Q9"},
            headers=auth_headers("viewer"),
        )

        assert response.status_code == 422
        assert response.json()["kind"] == "validation"
