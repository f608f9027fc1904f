"""HTTP layer: caller headers, permission checks, status codes, error bodies.

Uses FastAPI's TestClient against ``create_app()`` with ``get_db`` and
``get_service`` overridden, so no database is needed.  The lifespan is not
entered (TestClient is used without a ``with`` block).
"""

import base64
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from clinic_server.app import create_app
from clinic_server.config import ServerSettings
from clinic_server.dependencies import get_db, get_service

from helpers.clinic import TENANT_A

API = "/api/v1"


def _user_header(user_id="u-therapist", role="TERAPEUTA", tenant_id=TENANT_A, **extra):
    payload = {"id": user_id, "role": role, "email": f"{user_id}@clinic.test", **extra}
    if tenant_id is not None:
        payload["tenant"] = {"id": tenant_id, "name": "Clínica"}
    raw = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return {"X-User-Data": raw}


def _build_client(service, settings=None, raise_server_exceptions=True):
    app = create_app(settings or ServerSettings())

    async def _db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_service] = lambda: service
    return TestClient(app, raise_server_exceptions=raise_server_exceptions)


@pytest.fixture
def client(service, clinic):
    return _build_client(service)


class TestCallerHeaders:

    def test_missing_header_is_401(self, client):
        resp = client.get(f"{API}/sessions")
        assert resp.status_code == 401
        assert resp.json() == {
            "success": False,
            "error": "Usuário não autenticado",
            "kind": "unauthenticated",
        }

    def test_garbage_header_is_401(self, client):
        resp = client.get(f"{API}/sessions", headers={"X-User-Data": "%%%not-base64"})
        assert resp.status_code == 401

    def test_non_object_payload_is_401(self, client):
        raw = base64.b64encode(b"[1, 2]").decode("ascii")
        resp = client.get(f"{API}/sessions", headers={"X-User-Data": raw})
        assert resp.status_code == 401

    def test_latin1_encoded_header_accepted(self, client):
        # btoa() in the browser emits Latin-1 bytes for accented names
        payload = {
            "id": "u-admin",
            "role": "ADMIN",
            "name": "José",
            "tenant": {"id": TENANT_A, "name": "Clínica"},
        }
        raw = base64.b64encode(
            json.dumps(payload, ensure_ascii=False).encode("latin-1")
        ).decode("ascii")
        resp = client.get(f"{API}/sessions", headers={"X-User-Data": raw})
        assert resp.status_code == 200, resp.json()
        assert resp.json() == []

    def test_utf8_encoded_header_accepted(self, client):
        payload = {"id": "u-admin", "role": "ADMIN", "tenant": {"id": TENANT_A, "name": "Clínica"}}
        raw = base64.b64encode(
            json.dumps(payload, ensure_ascii=False).encode("utf-8")
        ).decode("ascii")
        resp = client.get(f"{API}/sessions", headers={"X-User-Data": raw})
        assert resp.status_code == 200

    def test_missing_tenant_is_403(self, client):
        resp = client.get(f"{API}/sessions", headers=_user_header(tenant_id=None))
        assert resp.status_code == 403
        assert resp.json()["kind"] == "forbidden"
        assert "clínica" in resp.json()["error"]

    def test_role_without_capability_is_403(self, client):
        resp = client.get(f"{API}/sessions", headers=_user_header(role="VIEWER"))
        assert resp.status_code == 403
        assert resp.json()["error"] == "Sem permissão para visualizar sessões"


class TestProxySecret:

    def test_missing_secret_is_403(self, service, clinic):
        client = _build_client(service, ServerSettings(trusted_proxy_secret="s3cret"))
        resp = client.get(f"{API}/sessions", headers=_user_header())
        assert resp.status_code == 403

    def test_wrong_secret_is_403(self, service, clinic):
        client = _build_client(service, ServerSettings(trusted_proxy_secret="s3cret"))
        resp = client.get(
            f"{API}/sessions",
            headers={**_user_header(), "X-Proxy-Secret": "guess"},
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "Segredo de proxy inválido"

    def test_matching_secret_passes(self, service, clinic):
        client = _build_client(service, ServerSettings(trusted_proxy_secret="s3cret"))
        resp = client.get(
            f"{API}/sessions",
            headers={**_user_header(), "X-Proxy-Secret": "s3cret"},
        )
        assert resp.status_code == 200
        assert resp.json() == []


class TestActivityFlow:

    def test_start_score_finalize(self, client, clinic, repo):
        headers = _user_header()
        resp = client.post(
            f"{API}/activity-sessions",
            json={"patient_id": str(clinic.patient.id), "activity_id": str(clinic.activity.id)},
            headers=headers,
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["task_count"] == 5
        assert body["session"]["kind"] == "activity"
        assert body["session"]["status"] == "in_progress"
        sid = body["session"]["id"]

        task_id = str(clinic.activity.tasks[0].id)
        resp = client.post(
            f"{API}/activity-sessions/{sid}/responses",
            json={"task_id": task_id, "score": 2, "help_types": ["AFP"]},
            headers=headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"ok": True, "message": "Resposta salva com sucesso"}

        resp = client.post(f"{API}/activity-sessions/{sid}/finalize", headers=headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["message"] == "Sessão finalizada com sucesso"

        resp = client.get(f"{API}/sessions/{sid}", headers=headers)
        assert resp.status_code == 200
        detail = resp.json()
        assert detail["status"] == "finalized"
        assert detail["finalized_at"] is not None
        assert detail["responses"][0]["help_types"] == ["AFP"]

    def test_second_start_is_409(self, client, clinic):
        headers = _user_header()
        body = {"patient_id": str(clinic.patient.id), "activity_id": str(clinic.activity.id)}
        assert client.post(f"{API}/activity-sessions", json=body, headers=headers).status_code == 201

        resp = client.post(f"{API}/activity-sessions", json=body, headers=headers)
        assert resp.status_code == 409
        assert resp.json()["kind"] == "conflict"
        assert resp.json()["error"].startswith("Já existe uma sessão em andamento")

    def test_missing_fields_is_400(self, client):
        resp = client.post(f"{API}/activity-sessions", json={}, headers=_user_header())
        assert resp.status_code == 400
        assert resp.json()["kind"] == "validation"

    def test_malformed_body_is_400(self, client):
        resp = client.post(
            f"{API}/activity-sessions",
            content=b"not json",
            headers={**_user_header(), "Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Dados da requisição inválidos"

    def test_invalid_help_type_is_400(self, client, clinic):
        headers = _user_header()
        started = client.post(
            f"{API}/activity-sessions",
            json={"patient_id": str(clinic.patient.id), "activity_id": str(clinic.activity.id)},
            headers=headers,
        ).json()
        resp = client.post(
            f"{API}/activity-sessions/{started['session']['id']}/responses",
            json={"task_id": str(clinic.activity.tasks[0].id), "score": 1, "help_types": ["X"]},
            headers=headers,
        )
        assert resp.status_code == 400
        assert "Tipo de ajuda inválido" in resp.json()["error"]


class TestAssessmentFlow:

    def test_start_and_finalize_with_notes(self, client, clinic, repo):
        headers = _user_header()
        resp = client.post(
            f"{API}/assessment-sessions",
            json={
                "patient_id": str(clinic.patient.id),
                "assessment_id": str(clinic.assessment.id),
            },
            headers=headers,
        )
        assert resp.status_code == 201, resp.text
        sid = resp.json()["session"]["id"]
        assert resp.json()["message"] == "Sessão iniciada com 3 tarefas"

        resp = client.post(
            f"{API}/assessment-sessions/{sid}/finalize",
            json={"general_notes": "Sem intercorrências"},
            headers=headers,
        )
        assert resp.status_code == 200

        summary = client.get(f"{API}/sessions/{sid}/summary", headers=headers).json()
        assert summary["kind"] == "assessment"
        assert summary["status"] == "finalized"
        assert summary["pending_count"] == 3


class TestLookupRoutes:

    def test_unknown_session_is_404(self, client):
        resp = client.get(
            f"{API}/sessions/00000000-0000-0000-0000-000000000000",
            headers=_user_header(),
        )
        assert resp.status_code == 404
        assert resp.json() == {
            "success": False,
            "error": "Sessão não encontrada",
            "kind": "not_found",
        }

    def test_invalid_status_filter_is_400(self, client):
        resp = client.get(f"{API}/sessions?status=paused", headers=_user_header())
        assert resp.status_code == 400

    def test_dashboard(self, client, clinic):
        headers = _user_header(user_id="u-admin", role="ADMIN")
        client.post(
            f"{API}/activity-sessions",
            json={"patient_id": str(clinic.patient.id), "activity_id": str(clinic.activity.id)},
            headers=headers,
        )
        resp = client.get(f"{API}/dashboard/recent-sessions", headers=headers)
        assert resp.status_code == 200
        body = resp.json()
        assert len(body["in_progress"]) == 1
        assert body["in_progress"][0]["professional"]["id"] == str(clinic.default.id)
        assert body["recently_finalized"] == []


class TestUnexpectedErrors:

    @pytest.mark.parametrize("exc", [KeyError("task"), ValueError("bad state")])
    def test_stray_exception_is_500(self, service, monkeypatch, exc):
        async def _boom(*args, **kwargs):
            raise exc

        monkeypatch.setattr(service, "list_sessions", _boom)
        app_client = _build_client(service, raise_server_exceptions=False)
        resp = app_client.get(f"{API}/sessions", headers=_user_header())
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "error": "Erro interno do servidor",
            "kind": "internal",
        }
