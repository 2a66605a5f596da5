"""HTTP tests for the FastAPI app, with the backend swapped for a test instance."""

import json

import pytest
from fastapi.testclient import TestClient

from classes.config import CURATOR_PASSWORD
from classes.errors import AiRateLimitedError, AiServiceError
from conftest import PNG_B64
from server import app, get_backend

CURATOR = {"X-Curator-Password": CURATOR_PASSWORD}


@pytest.fixture()
def client(backend):
    app.dependency_overrides[get_backend] = lambda: backend
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestData:
    def test_get_document(self, client):
        response = client.get("/api/data")
        assert response.status_code == 200
        body = response.json()
        assert len(body["minerals"]) == 6
        assert body["homePageLayout"][0]["type"] == "hero"

    def test_put_replaces_document(self, client, backend):
        doc = client.get("/api/data").json()
        doc["minerals"] = doc["minerals"][:2]
        response = client.put("/api/data", json=doc)
        assert response.status_code == 200
        assert response.json() == {"message": "Data saved successfully"}
        assert [m["id"] for m in backend.get_document()["minerals"]] == ["1", "2"]
        assert backend.get_document()["homePageLayout"][1]["mineralIds"] == ["2"]

    def test_malformed_document_is_a_bad_request(self, client):
        response = client.post("/api/data", json={"minerals": [{"name": "no id"}]})
        assert response.status_code == 400


class TestAiEndpoints:
    def test_generate_description(self, client, backend):
        backend.llm.replies.append("A golden disc.")
        response = client.post("/api/ai/generate-description", json={"mineral": {"name": "Pyrite Sun"}})
        assert response.json() == {"description": "A golden disc."}

    def test_rate_limit_is_429(self, client, backend):
        backend.chat_llm.replies.append(AiRateLimitedError("quota exhausted"))
        response = client.post("/api/ai/suggest-type", json={"imageBase64": PNG_B64, "imageMimeType": "image/png"})
        assert response.status_code == 429

    def test_service_failure_is_502(self, client, backend):
        backend.chat_llm.replies.append(AiServiceError("upstream 500"))
        response = client.post("/api/ai/get-dominant-color", json={"imageBase64": PNG_B64, "imageMimeType": "image/png"})
        assert response.status_code == 502

    def test_bad_image_is_400(self, client):
        response = client.post("/api/ai/suggest-rarity", json={"imageBase64": PNG_B64, "imageMimeType": "text/plain"})
        assert response.status_code == 400

    def test_edit_without_image_in_reply(self, client, backend):
        backend.image_llm.replies.append(None)
        response = client.post("/api/ai/clarify-image", json={"imageBase64": PNG_B64, "imageMimeType": "image/png"})
        assert response.status_code == 200
        assert response.json() == {"imageUrl": None}

    def test_public_edits_share_the_slot_cooldown(self, client, backend):
        backend.image_llm.replies.extend(["data:image/png;base64,QUJD", "data:image/png;base64,REVG"])
        body = {"imageBase64": PNG_B64, "imageMimeType": "image/png"}
        assert client.post("/api/ai/remove-background", json=body).status_code == 200

        again = client.post("/api/ai/remove-background", json=body)
        assert again.status_code == 429
        assert again.headers["Retry-After"] == "61"

        other_slot = client.post("/api/ai/remove-background", json={**body, "slot": 1})
        assert other_slot.json() == {"imageUrl": "data:image/png;base64,REVG"}
        assert len(backend.image_llm.calls) == 2

    def test_generate_layout_unfulfilled_is_null(self, client, backend):
        backend.chat_llm.replies.append("I am not sure what you mean.")
        doc = backend.get_document()
        response = client.post("/api/ai/generate-layout", json={
            "currentLayout": doc["homePageLayout"], "minerals": doc["minerals"], "prompt": "surprise me",
        })
        assert response.status_code == 200
        assert response.json() is None

    def test_generate_layout_clarification(self, client, backend):
        backend.chat_llm.replies.append(json.dumps({"clarification": {
            "question": "Which one?", "options": [{"id": "2", "name": "Rhodochrosite"}],
        }}))
        doc = backend.get_document()
        response = client.post("/api/ai/generate-layout", json={
            "currentLayout": doc["homePageLayout"], "minerals": doc["minerals"], "prompt": "the pink one",
        })
        assert response.json() == {"clarification": {"question": "Which one?", "options": [{"id": "2", "name": "Rhodochrosite"}]}}


class TestViewer:
    def test_home(self, client):
        components = client.get("/api/home").json()["components"]
        assert [c["id"] for c in components] == ["h1", "g1"]

    def test_minerals_filters(self, client):
        body = client.get("/api/minerals", params={"rarity": "Rare", "type": "all"}).json()
        assert [m["id"] for m in body["minerals"]] == ["4", "5"]
        assert "Pyrite" in body["types"]


class TestCurator:
    def test_login(self, client):
        assert client.post("/api/curator/login", json={"password": CURATOR_PASSWORD}).status_code == 200
        assert client.post("/api/curator/login", json={"password": "wrong"}).status_code == 401

    def test_requests_need_the_password(self, client):
        response = client.post("/api/curator/requests", json={"type": "load_collection"})
        assert response.status_code == 401
        response = client.post(
            "/api/curator/requests", json={"type": "load_collection"}, headers={"X-Curator-Password": "nope"},
        )
        assert response.status_code == 401

    def test_delete_through_requests(self, client):
        response = client.post(
            "/api/curator/requests", json={"type": "delete_mineral", "payload": {"id": "1"}}, headers=CURATOR,
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Specimen deleted."

    def test_unknown_request_type(self, client):
        response = client.post("/api/curator/requests", json={"type": "reboot"}, headers=CURATOR)
        assert response.status_code == 400

    def test_cooldown_is_429_with_retry_after(self, client, backend):
        backend.image_llm.replies.append("data:image/png;base64,QUJD")
        payload = {"slot": 2, "operation": "clarify", "imageBase64": PNG_B64, "imageMimeType": "image/png"}
        first = client.post("/api/curator/requests", json={"type": "edit_image", "payload": payload}, headers=CURATOR)
        assert first.status_code == 200

        second = client.post("/api/curator/requests", json={"type": "edit_image", "payload": payload}, headers=CURATOR)
        assert second.status_code == 429
        assert second.json()["remainingSeconds"] == 60
        assert second.headers["Retry-After"] == "61"
