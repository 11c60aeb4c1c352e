"""
Pytest configuration and fixtures for the tutor API tests.

Upstream services never see a real request: the language model and the
speech service sit behind httpx.MockTransport handlers, and Stripe behind a
fake gateway object.
"""
import asyncio
import json
from typing import Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext

from tutor.auth import auth_utils
from tutor.config import Settings
from tutor.database.store import ContextStore, SessionStore, UserStore
from tutor.main import create_app
from tutor.services.billing import BillingService
from tutor.services.llm_client import ChatCompletionClient
from tutor.services.tts_service import TTSClient

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "correct-horse"


def sse_chunk(content: Optional[str] = None, **delta) -> str:
    if content is not None:
        delta["content"] = content
    return "data: " + json.dumps({"choices": [{"delta": delta}]}) + "\n\n"


def sse_body(*deltas: str) -> bytes:
    """An upstream stream carrying each delta as content, then [DONE]."""
    return ("".join(sse_chunk(d) for d in deltas) + "data: [DONE]\n\n").encode()


def parse_sse(text: str) -> List[dict]:
    return [json.loads(line[len("data: "):]) for line in text.splitlines() if line.startswith("data: ")]


def collect(agen) -> List[dict]:
    async def run():
        return [event async for event in agen]

    return asyncio.run(run())


class LLMUpstream:
    """Scriptable chat-completion endpoint."""

    def __init__(self):
        self.requests: List[dict] = []
        self.status = 200
        self.body = sse_body("Bon", "jour")
        self.chunks = None  # async iterable overriding body
        self.error: Optional[Exception] = None
        self.completion = "Good morning"

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        if self.error is not None:
            raise self.error
        if self.status != 200:
            return httpx.Response(self.status, json={"error": "boom"})
        if not payload["stream"]:
            return httpx.Response(200, json={"choices": [{"message": {"content": f"  {self.completion}\n"}}]})
        if self.chunks is not None:
            return httpx.Response(200, content=self.chunks)
        return httpx.Response(200, content=self.body, headers={"content-type": "text/event-stream"})


class TTSUpstream:
    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status = 200
        self.audio = b"ID3fake-mp3-bytes"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, json={"detail": "quota exceeded"})
        return httpx.Response(200, content=self.audio, headers={"content-type": "audio/mpeg"})


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Low bcrypt cost keeps the suite fast; production uses the fixed cost of 12."""
    monkeypatch.setattr(auth_utils, "pwd_context", CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        jwt_secret="test-secret",
        llm_api_key="test-key",
        llm_base_url="http://llm.test/v1",
        users_file=str(tmp_path / "data" / "users.json"),
        admin_email=ADMIN_EMAIL,
        elevenlabs_voice_es="voice-es",
    )


@pytest.fixture
def user_store(settings) -> UserStore:
    return UserStore(settings.users_file, admin_email=settings.admin_email)


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def context_store() -> ContextStore:
    return ContextStore()


@pytest.fixture
def llm_upstream() -> LLMUpstream:
    return LLMUpstream()


@pytest.fixture
def tts_upstream() -> TTSUpstream:
    return TTSUpstream()


@pytest.fixture
def llm_client(settings, llm_upstream) -> ChatCompletionClient:
    return ChatCompletionClient(
        settings.llm_base_url, settings.llm_api_key, "test-model",
        transport=httpx.MockTransport(llm_upstream.handler),
    )


@pytest.fixture
def billing_service(user_store) -> BillingService:
    return BillingService(user_store, None)


@pytest.fixture
def app(settings, user_store, session_store, context_store, llm_client, tts_upstream, billing_service):
    tts_client = TTSClient("el-key", "eleven_multilingual_v2", transport=httpx.MockTransport(tts_upstream.handler))
    return create_app(
        settings=settings,
        user_store=user_store,
        session_store=session_store,
        context_store=context_store,
        llm_client=llm_client,
        tts_client=tts_client,
        billing_service=billing_service,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def register(client: TestClient, email: str, username: str = "student", password: str = PASSWORD) -> Dict[str, str]:
    """Registers a user (billing disabled, so a token comes straight back) and returns auth headers."""
    response = client.post("/api/auth/register", json={"email": email, "username": username, "password": password})
    assert response.status_code == 201, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['token']}"}
