"""Tests for the HTTP API (FastAPI TestClient, in-memory store)."""
import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

HEADERS = {"X-User-Id": "student-1"}


def _make_client(reasoning_client=None):
    from dayhoff.api import create_app
    from dayhoff.config import Settings
    from dayhoff.progress_store import InMemoryProgressStore
    app = create_app(
        settings=Settings(api_key=None),
        store=InMemoryProgressStore(),
        reasoning_client=reasoning_client,
    )
    return TestClient(app)


@pytest.fixture
def client():
    return _make_client()


class TestCatalogRoutes:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "ai_enabled": False, "modules": 8}

    def test_list_modules(self, client):
        modules = client.get("/modules").json()["modules"]
        assert [m["id"] for m in modules][:2] == ["rfdiffusion", "proteinmpnn"]

    def test_compatible_modules(self, client):
        response = client.get("/modules/proteinmpnn/compatible", params={"direction": "upstream"})
        assert response.status_code == 200
        assert response.json()["modules"] == ["rfdiffusion", "alphafold2", "esmfold", "rfantibody", "geodock"]

    def test_compatible_defaults_downstream(self, client):
        body = client.get("/modules/proteinmpnn/compatible").json()
        assert body["direction"] == "downstream"
        assert body["modules"] == ["alphafold2", "esmfold", "evoprotgrad", "temstapro"]

    def test_compatible_bad_direction(self, client):
        assert client.get("/modules/proteinmpnn/compatible", params={"direction": "left"}).status_code == 400

    def test_compatible_unknown_module(self, client):
        assert client.get("/modules/nope/compatible").status_code == 404


class TestWorkflowRoutes:

    def test_validate_connection(self, client):
        response = client.post("/workflows/validate-connection", json={"fromId": "rfdiffusion", "toId": "proteinmpnn"})
        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["message"] == "Compatible via PDB"
        assert body["learningNote"]

    def test_validate_unknown(self, client):
        body = client.post("/workflows/validate-connection", json={"fromId": "x", "toId": "y"}).json()
        assert body == {"valid": False, "message": "Module not found", "learningNote": ""}

    def test_compose_requires_user(self, client):
        response = client.post("/workflows/compose", json={"goal": "design a novel protein"})
        assert response.status_code == 401

    def test_compose_requires_goal(self, client):
        response = client.post("/workflows/compose", json={"goal": "  "}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json() == {"error": "Research goal is required"}

    def test_compose_fallback(self, client):
        response = client.post(
            "/workflows/compose",
            json={"goal": "design a novel protein", "constraints": {"gpuAvailable": False}},
            headers=HEADERS,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "fallback"
        assert body["confidenceScore"] == 0.6
        assert [m["moduleId"] for m in body["workflow"]["modules"]] == ["proteinmpnn"]

    def test_compose_with_ai(self):
        reply = json.dumps({
            "workflow": {
                "name": "Fold check",
                "description": "Predict a structure.",
                "modules": [{"moduleId": "esmfold", "reasoning": "fast"}],
                "connections": [],
            },
            "confidenceScore": 0.8,
        })
        reasoning = MagicMock()
        reasoning.generate.return_value = reply
        body = _make_client(reasoning).post(
            "/workflows/compose", json={"goal": "quick fold"}, headers=HEADERS,
        ).json()
        assert body["source"] == "ai"
        assert body["workflow"]["name"] == "Fold check"
        assert body["confidenceScore"] == 0.8


class TestLearningRoutes:

    def test_ask_without_ai_uses_module_docs(self, client):
        response = client.post("/modules/rfdiffusion/ask", json={"question": "What is diffusion?"}, headers=HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "fallback"
        assert "RFdiffusion" in body["answer"]
        assert "skillLevelUp" not in body

    def test_ask_requires_question(self, client):
        assert client.post("/modules/rfdiffusion/ask", json={}, headers=HEADERS).status_code == 400

    def test_ask_unknown_module(self, client):
        response = client.post("/modules/nope/ask", json={"question": "?"}, headers=HEADERS)
        assert response.status_code == 404

    def test_ask_with_ai(self):
        reasoning = MagicMock()
        reasoning.generate.return_value = "Diffusion removes noise step by step."
        client = _make_client(reasoning)
        body = client.post("/modules/rfdiffusion/ask", json={"question": "What is diffusion?"}, headers=HEADERS).json()
        assert body == {"answer": "Diffusion removes noise step by step.", "source": "ai"}
        assert "RFdiffusion" in reasoning.generate.call_args[1]["system"]

    def test_ask_ai_failure_degrades(self):
        from dayhoff.errors import ReasoningServiceError
        reasoning = MagicMock()
        reasoning.generate.side_effect = ReasoningServiceError("API returned HTTP 500")
        client = _make_client(reasoning)
        body = client.post("/modules/rfdiffusion/ask", json={"question": "Why?"}, headers=HEADERS).json()
        assert body["source"] == "fallback"
        assert "HTTP 500" in body["warning"]

    def test_ask_unexpected_client_error_degrades(self):
        reasoning = MagicMock()
        reasoning.generate.side_effect = AttributeError("'list' object has no attribute 'get'")
        client = _make_client(reasoning)
        response = client.post("/modules/rfdiffusion/ask", json={"question": "Why?"}, headers=HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "fallback"
        assert "AI request failed" in body["warning"]
        progress = client.get("/modules/rfdiffusion/progress", headers=HEADERS).json()
        assert progress["questionsAsked"] == 1

    def test_questions_and_concepts_level_up(self, client):
        client.post("/modules/rfdiffusion/track", json={"action": "expandedWhyItMatters"}, headers=HEADERS)
        for _ in range(2):
            body = client.post("/modules/rfdiffusion/ask", json={"question": "Why?"}, headers=HEADERS).json()
            assert "skillLevelUp" not in body
        body = client.post("/modules/rfdiffusion/ask", json={"question": "Why?"}, headers=HEADERS).json()
        assert body["skillLevelUp"] == "BEGINNER"

        progress = client.get("/modules/rfdiffusion/progress", headers=HEADERS).json()
        assert progress["skillLevel"] == "BEGINNER"
        assert progress["questionsAsked"] == 3
        assert progress["nextLevel"] == "INTERMEDIATE"

    def test_track_unknown_action(self, client):
        response = client.post("/modules/rfdiffusion/track", json={"action": "nope"}, headers=HEADERS)
        assert response.status_code == 400

    def test_exercise_complete_requires_id(self, client):
        response = client.post("/modules/rfdiffusion/exercise-complete", json={}, headers=HEADERS)
        assert response.status_code == 400

    def test_exercise_complete(self, client):
        response = client.post(
            "/modules/rfdiffusion/exercise-complete", json={"exerciseId": "ex-1"}, headers=HEADERS,
        )
        assert response.json() == {"ok": True}
        progress = client.get("/modules/rfdiffusion/progress", headers=HEADERS).json()
        assert progress["exercisesCompleted"] == ["ex-1"]

    def test_progress_defaults(self, client):
        progress = client.get("/modules/proteinmpnn/progress", headers=HEADERS).json()
        assert progress["skillLevel"] == "NOVICE"
        assert progress["userId"] == "student-1"


class TestQuizRoutes:

    def test_novice_gets_beginner_tier(self, client):
        body = client.get("/modules/rfdiffusion/quiz", headers=HEADERS).json()
        assert body["skillTier"] == "beginner"
        assert body["totalQuestions"] == 2
        assert "lastQuiz" not in body

    def test_no_quiz_for_unknown_module(self, client):
        assert client.get("/modules/nope/quiz", headers=HEADERS).status_code == 404

    def test_every_module_has_a_quiz(self, client):
        from dayhoff.module_catalog import MODULE_CATALOG
        for module in MODULE_CATALOG:
            response = client.get(f"/modules/{module.id}/quiz", headers=HEADERS)
            assert response.status_code == 200, module.id
            assert response.json()["totalQuestions"] == 2

    def test_submit_records_score(self, client):
        response = client.post(
            "/modules/rfdiffusion/quiz",
            json={"answers": [
                {"questionId": "rfdiffusion-q1", "selectedIndex": 1},
                {"questionId": "rfdiffusion-q2", "selectedIndex": 0},
            ]},
            headers=HEADERS,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 50
        assert body["correctCount"] == 1
        assert body["totalQuestions"] == 2

        quiz = client.get("/modules/rfdiffusion/quiz", headers=HEADERS).json()
        assert quiz["lastQuiz"]["score"] == 50

    def test_submit_requires_answers(self, client):
        assert client.post("/modules/rfdiffusion/quiz", json={}, headers=HEADERS).status_code == 400

    def test_quiz_promotes_beginner(self, client):
        client.post("/modules/proteinmpnn/track", json={"action": "expandedWhyItMatters"}, headers=HEADERS)
        for i in range(4):
            client.post(
                "/modules/proteinmpnn/track",
                json={"action": "expandedDeepDive", "topic": f"topic-{i}"},
                headers=HEADERS,
            )
        for _ in range(3):
            client.post("/modules/proteinmpnn/ask", json={"question": "?"}, headers=HEADERS)

        body = client.post(
            "/modules/proteinmpnn/quiz",
            json={"answers": [
                {"questionId": "proteinmpnn-q1", "selectedIndex": 1},
                {"questionId": "proteinmpnn-q2", "selectedIndex": 1},
            ]},
            headers=HEADERS,
        ).json()
        assert body["score"] == 100
        assert body["skillLevelUp"] == "INTERMEDIATE"


class TestAppFactory:

    def test_import_does_not_build_app(self):
        import dayhoff.api as api
        assert not hasattr(api, "app")

    def test_build_default_app_reads_environment(self, monkeypatch):
        from unittest.mock import patch
        from dayhoff.api import build_default_app
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("CLAUDE_API_KEY", raising=False)
        monkeypatch.delenv("PROGRESS_STORE_DIR", raising=False)
        monkeypatch.setenv("LOG_LEVEL", "warning")
        with patch("dayhoff.api.configure_logging") as configure:
            app = build_default_app()
        configure.assert_called_once_with("WARNING")
        body = TestClient(app).get("/health").json()
        assert body["ai_enabled"] is False

    def test_explicit_empty_catalog_is_served(self):
        from dayhoff.api import create_app
        from dayhoff.config import Settings
        from dayhoff.module_catalog import ModuleCatalog
        from dayhoff.progress_store import InMemoryProgressStore
        app = create_app(
            settings=Settings(api_key=None),
            store=InMemoryProgressStore(),
            catalog=ModuleCatalog(()),
        )
        client = TestClient(app)
        assert client.get("/modules").json() == {"modules": []}
        assert client.get("/health").json()["modules"] == 0
