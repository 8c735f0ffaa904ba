"""Tests for the initial-questions and profile endpoints."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from english_tutor import db
from english_tutor.app import app
from english_tutor.db import init_db
from english_tutor.deps import get_model_client
from english_tutor.errors import UpstreamModelError


class FakeModel:
    def __init__(self):
        self.replies: list = []
        self.prompts: list[str] = []

    def generate(self, prompt: str, *, operation: str = "conversation") -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(autouse=True)
def _setup_db(tmp_path):
    db.DB_PATH = tmp_path / "test.db"
    init_db()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def model():
    fake = FakeModel()
    app.dependency_overrides[get_model_client] = lambda: fake
    return fake


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user():
    return db.upsert_user("a@x.com", name="Ana", interests=["football"], learning_goal="Speaking fluency")


class TestInitialQuestions:
    def test_six_questions_from_model(self, client, model, user):
        questions = [f"Question {i}?" for i in range(6)]
        model.replies.append(json.dumps(questions))
        response = client.post("/initial-questions", json={"email": "a@x.com"})
        assert response.json() == {"success": True, "questions": questions}
        assert "Interests: football" in model.prompts[0]

    def test_wrong_count_falls_back(self, client, model, user):
        model.replies.append(json.dumps(["Only one?"]))
        data = client.post("/initial-questions", json={"email": "a@x.com"}).json()
        assert data["fallback"] is True
        assert len(data["questions"]) == 6
        assert "Ana" in data["questions"][0]

    def test_model_failure_falls_back(self, client, model, user):
        model.replies.append(UpstreamModelError())
        data = client.post("/initial-questions", json={"email": "a@x.com"}).json()
        assert len(data["questions"]) == 6

    def test_unknown_user(self, client, model):
        response = client.post("/initial-questions", json={"email": "ghost@x.com"})
        assert response.status_code == 404
        assert model.prompts == []

    def test_requires_email(self, client, model):
        assert client.post("/initial-questions", json={}).status_code == 400


class TestProfile:
    def test_stats(self, client, user):
        db.insert_turn(user.id, "Hello", "{}")
        for accuracy in (70, 81):
            db.insert_pronunciation_attempt(
                user_id=user.id, word="cat", audio_url="u", accuracy=accuracy, feedback="{}"
            )
        data = client.get("/profile", params={"email": "a@x.com"}).json()
        assert data["user"]["email"] == "a@x.com"
        assert data["user"]["interests"] == ["football"]
        assert data["stats"] == {"turnCount": 1, "pronunciationAttempts": 2, "pronunciationAccuracy": 76}

    def test_stats_without_attempts(self, client, user):
        data = client.get("/profile", params={"email": "a@x.com"}).json()
        assert data["stats"]["pronunciationAccuracy"] == 0

    def test_unknown_user(self, client):
        assert client.get("/profile", params={"email": "ghost@x.com"}).status_code == 404
