"""
Router tests for language recommendations and session extension.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from auth import CurrentUser, get_current_user
from deps import get_db
from routers.language import router as language_router
from routers.session_auth import router as session_router

pytestmark = pytest.mark.api


@pytest.fixture
def db():
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    return session


@pytest.fixture
def client(db, user_id):
    app = FastAPI()
    app.include_router(language_router)
    app.include_router(session_router)
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id=user_id, session_token="tok")
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)


def test_recommendation(client):
    resp = client.post("/language-recommendation", json={"nativeLanguage": "ko", "targetLanguage": "en"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["nativeLanguage"] == "한국어"
    assert data["targetLanguage"] == "영어"
    assert data["filterType"] == "recommendation"
    scores = [r["score"] for r in data["recommendations"]]
    assert scores == sorted(scores, reverse=True)


def test_recommendation_by_size(client):
    resp = client.post("/language-recommendation", json={
        "nativeLanguage": "ko", "targetLanguage": "en", "filterType": "size",
    })
    sizes = [r["sizeInGB"] for r in resp.json()["recommendations"]]
    assert sizes == sorted(sizes)


def test_recommendation_requires_both_languages(client):
    resp = client.post("/language-recommendation", json={"nativeLanguage": "ko"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "주언어와 배울언어를 모두 선택해주세요"


def test_extend_session(client, db):
    before = datetime.now(timezone.utc)
    resp = client.post("/auth/extend-session")
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    new_expires = datetime.fromisoformat(data["newExpires"])
    assert new_expires >= before + timedelta(hours=1)
    db.execute.assert_awaited_once()
    db.commit.assert_awaited_once()
