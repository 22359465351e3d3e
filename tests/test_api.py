from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ddx_survey.config import settings
from ddx_survey.services import llm
from tests.factories import (
    ADMIN_PASSWORD,
    sample_diagnoses,
    valid_demographics_form,
    valid_evaluation_form,
)


def _evaluation_json(vignette_id: int, **overrides) -> dict:
    return valid_evaluation_form(vignette_id=vignette_id, **overrides).model_dump()


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "connected"


def test_unknown_route(client: TestClient) -> None:
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"status": "error", "error": "Not found"}


class TestAdminAuth:
    def test_admin_routes_require_token(self, client: TestClient) -> None:
        assert client.get("/api/admin/vignettes").status_code == 401

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get("/api/admin/vignettes", headers={"Authorization": "Bearer forged"})

        assert response.status_code == 401

    def test_wrong_password(self, client: TestClient) -> None:
        response = client.post("/api/admin/login", json={"password": "guess"})

        assert response.status_code == 401

    def test_login_sets_cookie(self, client: TestClient) -> None:
        response = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD})

        assert response.status_code == 200
        assert response.json()["expires_in"] == settings.admin_session_max_age_seconds
        assert "admin_session" in response.cookies
        # The client keeps the cookie, so the next call is authenticated
        assert client.get("/api/admin/vignettes").status_code == 200

    def test_password_not_configured(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "admin_password", "")

        response = client.post("/api/admin/login", json={"password": ""})

        assert response.status_code == 503
        assert response.json()["status"] == "error"


class TestAdminVignettes:
    def test_crud(self, admin_client: TestClient) -> None:
        created = admin_client.post(
            "/api/admin/vignettes",
            json={"category": "emergent", "patient_initials": "TS", "content": "Chest pain for 2 hours"},
        )
        assert created.status_code == 201
        vignette_id = created.json()["vignette_id"]

        fetched = admin_client.get(f"/api/admin/vignettes/{vignette_id}").json()
        assert fetched["vignette"]["category"] == "emergent"
        assert fetched["evaluation_count"] == 0
        assert fetched["has_llm_output"] is False

        updated = admin_client.put(
            f"/api/admin/vignettes/{vignette_id}",
            json={"category": "emergent", "patient_initials": "TS", "content": "Chest pain for 3 hours"},
        )
        assert updated.status_code == 200
        listing = admin_client.get("/api/admin/vignettes").json()
        assert [v["content"] for v in listing] == ["Chest pain for 3 hours"]

        deleted = admin_client.delete(f"/api/admin/vignettes/{vignette_id}")
        assert deleted.json() == {"status": "success", "deleted_evaluations": 0, "deleted_llm_output": False}
        assert admin_client.get(f"/api/admin/vignettes/{vignette_id}").status_code == 404

    def test_invalid_category(self, admin_client: TestClient) -> None:
        response = admin_client.post(
            "/api/admin/vignettes",
            json={"category": "weird", "patient_initials": "TS", "content": "text"},
        )

        assert response.status_code == 422
        assert response.json()["status"] == "error"
        assert response.json()["field"] == "category"

    def test_missing_vignette(self, admin_client: TestClient) -> None:
        assert admin_client.put(
            "/api/admin/vignettes/999",
            json={"category": "rare", "patient_initials": "TS", "content": "text"},
        ).status_code == 404
        assert admin_client.delete("/api/admin/vignettes/999").status_code == 404

    def test_delete_reports_removed_rows(self, admin_client: TestClient, make_vignettes) -> None:
        vignette_id = make_vignettes(1)[0]
        admin_client.post("/api/survey/raters/R1/evaluations", json=_evaluation_json(vignette_id))

        response = admin_client.delete(f"/api/admin/vignettes/{vignette_id}")

        assert response.json()["deleted_evaluations"] == 1
        assert response.json()["deleted_llm_output"] is True
        assert admin_client.get("/api/admin/raters/R1/evaluations").json() == []


class TestAdminGeneration:
    @pytest.fixture()
    def fake_model(self, monkeypatch: pytest.MonkeyPatch) -> list:
        calls = []

        def fake(vignette_text, model_name, temperature, api_key, **kwargs):
            calls.append(api_key)
            return llm.GeneratedDifferential(diagnoses=sample_diagnoses(4))

        monkeypatch.setattr(llm, "generate_differential_diagnoses", fake)
        return calls

    def test_generate_one(self, admin_client: TestClient, make_vignettes, fake_model) -> None:
        vignette_id = make_vignettes(1, with_outputs=False)[0]

        response = admin_client.post(
            f"/api/admin/vignettes/{vignette_id}/generate", json={"api_key": "sk-admin"}
        )

        assert response.status_code == 200
        assert response.json()["vignette_id"] == vignette_id
        assert len(response.json()["diagnoses"]) == 4
        assert fake_model == ["sk-admin"]

    def test_generate_existing_without_force(self, admin_client: TestClient, make_vignettes, fake_model) -> None:
        vignette_id = make_vignettes(1)[0]

        response = admin_client.post(f"/api/admin/vignettes/{vignette_id}/generate", json={})

        assert response.status_code == 200
        assert len(response.json()["diagnoses"]) == 5
        assert fake_model == []

    def test_force_regenerates(self, admin_client: TestClient, make_vignettes, fake_model) -> None:
        vignette_id = make_vignettes(1)[0]

        response = admin_client.post(
            f"/api/admin/vignettes/{vignette_id}/generate", json={"api_key": "sk", "force": True}
        )

        assert len(response.json()["diagnoses"]) == 4
        outputs = admin_client.get("/api/admin/llm-outputs").json()
        assert len([o for o in outputs if o["vignette_id"] == vignette_id]) == 2

    def test_missing_credential(self, admin_client: TestClient, make_vignettes, fake_model) -> None:
        vignette_id = make_vignettes(1, with_outputs=False)[0]

        response = admin_client.post(f"/api/admin/vignettes/{vignette_id}/generate", json={})

        assert response.status_code == 400
        assert response.json()["status"] == "error"

    def test_generate_all(self, admin_client: TestClient, make_vignettes, fake_model) -> None:
        make_vignettes(1)
        make_vignettes(2, with_outputs=False)

        summary = admin_client.post("/api/admin/generate-all", json={"api_key": "sk"}).json()

        assert (summary["total"], summary["generated"], summary["skipped"], summary["failed"]) == (3, 2, 1, 0)


class TestSurvey:
    def test_calibration_content(self, client: TestClient) -> None:
        content = client.get("/api/survey/calibration").json()

        assert len(content["cases"]) == 2
        assert content["instructions"]
        assert all(case["diagnoses"] for case in content["cases"])

    def test_consent(self, client: TestClient) -> None:
        accepted = client.post("/api/survey/consent", json={"rater_id": "R1", "agreed": True})
        refused = client.post("/api/survey/consent", json={"rater_id": "R1", "agreed": False})

        assert accepted.json()["stage"] == "calibration"
        assert refused.status_code == 422
        assert refused.json()["field"] == "agreed"

    def test_full_session(self, client: TestClient, make_vignettes) -> None:
        ids = make_vignettes(3)

        session = client.get("/api/survey/raters/R1").json()
        assert session["stage"] == "evaluating"
        assert session["current"]["vignette"]["id"] == ids[0]
        assert session["can_submit"] is True

        after_second = client.post("/api/survey/raters/R1/evaluations", json=_evaluation_json(ids[1]))
        assert after_second.status_code == 200
        assert after_second.json()["current"]["vignette"]["id"] == ids[2]

        duplicate = client.post("/api/survey/raters/R1/evaluations", json=_evaluation_json(ids[1]))
        assert duplicate.status_code == 409
        assert duplicate.json()["status"] == "error"

        unanswered = client.post(
            "/api/survey/raters/R1/evaluations", json=_evaluation_json(ids[0], relevance_score=0)
        )
        assert unanswered.status_code == 422
        assert unanswered.json()["field"] == "relevance_score"

        resumed = client.get("/api/survey/raters/R1").json()
        assert resumed["current"]["vignette"]["id"] == ids[0]
        assert resumed["completed_ids"] == [ids[1]]

        client.post("/api/survey/raters/R1/evaluations", json=_evaluation_json(ids[0]))
        last = client.post("/api/survey/raters/R1/evaluations", json=_evaluation_json(ids[2])).json()
        assert last["stage"] == "demographics"

        progress = client.get("/api/survey/raters/R1/progress").json()
        assert progress["completed_vignettes"] == 3
        assert progress["total_vignettes"] == 3

        demographics = client.post(
            "/api/survey/raters/R1/demographics", json=valid_demographics_form().model_dump()
        )
        assert demographics.json()["stage"] == "complete"
        assert client.get("/api/survey/raters/R1").json()["stage"] == "complete"

        again = client.post(
            "/api/survey/raters/R1/demographics", json=valid_demographics_form().model_dump()
        )
        assert again.status_code == 409

        stored = client.get("/api/survey/raters/R1/demographics").json()
        assert stored["phone_number"] == "081234567890"

    def test_unknown_vignette(self, client: TestClient, make_vignettes) -> None:
        make_vignettes(1)

        response = client.post("/api/survey/raters/R1/evaluations", json=_evaluation_json(999))

        assert response.status_code == 404

    def test_evaluation_without_output(self, client: TestClient, make_vignettes) -> None:
        vignette_id = make_vignettes(1, with_outputs=False)[0]

        response = client.post("/api/survey/raters/R1/evaluations", json=_evaluation_json(vignette_id))

        assert response.status_code == 404

    def test_vignette_list_in_display_order(self, client: TestClient, make_vignettes) -> None:
        rare = make_vignettes(1, category="rare")[0]
        common = make_vignettes(1, category="common")[0]

        vignettes = client.get("/api/survey/raters/R1/vignettes").json()

        assert [v["vignette"]["id"] for v in vignettes] == [common, rare]

    def test_early_demographics_keeps_vignettes_open(self, client: TestClient, make_vignettes) -> None:
        ids = make_vignettes(3)

        response = client.post(
            "/api/survey/raters/R1/demographics", json=valid_demographics_form().model_dump()
        )
        assert response.json()["stage"] == "complete"

        resumed = client.get("/api/survey/raters/R1").json()
        assert resumed["stage"] == "evaluating"
        assert resumed["index"] == 0
        assert resumed["completed_ids"] == []

        evaluated = client.post("/api/survey/raters/R1/evaluations", json=_evaluation_json(ids[0]))
        assert evaluated.status_code == 200
        assert evaluated.json()["current"]["vignette"]["id"] == ids[1]

        again = client.post(
            "/api/survey/raters/R1/demographics", json=valid_demographics_form().model_dump()
        )
        assert again.status_code == 409

    def test_no_demographics_yet(self, client: TestClient) -> None:
        response = client.get("/api/survey/raters/R1/demographics")

        assert response.status_code == 404
        assert response.json()["status"] == "error"
