from fastapi.testclient import TestClient

from support_chat.agents.reply_generator import NOT_CONFIGURED_REPLY, ReplyGenerator
from support_chat.agents.support_agent import SupportAgent
from support_chat.api.app import create_app
from support_chat.api.service import build_agent
from support_chat.config.settings import AppSettings
from support_chat.domain.exceptions import StorageUnavailable
from support_chat.domain.models import ChatResult, ContentBlock
from support_chat.infrastructure.storage.memory_store import InMemoryMessageStore


class FakeProvider:
    name = "fake"

    def is_configured(self):
        return True

    def chat(self, req):
        return ChatResult(provider="fake", model=req.model, content=[ContentBlock(type="text", text="Happy to help!")])


def _settings(**overrides):
    values = {"storage_backend": "memory", "chat_rate_limit": "100/minute", "anthropic_api_key": None}
    values.update(overrides)
    return AppSettings(**values)


def _client(store=None, **overrides):
    cfg = _settings(**overrides)
    store = store if store is not None else InMemoryMessageStore()
    agent = SupportAgent(store, ReplyGenerator(FakeProvider(), cfg, system_prompt="SYSTEM"), cfg)
    return TestClient(create_app(agent=agent, cfg=cfg)), store


def test_health():
    client, _ = _client()
    assert client.get("/health").json() == {"status": "ok"}


def test_create_conversation_and_chat():
    client, _ = _client()
    conv = client.post("/api/conversations").json()
    assert isinstance(conv["id"], int)
    assert "createdAt" in conv

    resp = client.post("/api/chat", json={"conversationId": conv["id"], "text": "Hello"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["conversationId"] == conv["id"]
    assert data["userMessage"]["text"] == "Hello"
    assert data["userMessage"]["sender"] == "user"
    assert data["aiMessage"]["sender"] == "ai"
    assert data["aiMessage"]["text"] == "Happy to help!"
    assert set(data["aiMessage"]) == {"id", "conversationId", "sender", "text", "createdAt"}


def test_chat_without_conversation_id_mints_one():
    client, _ = _client()
    data = client.post("/chat", json={"text": "Where is my parcel?"}).json()
    cid = data["conversationId"]

    history = client.get(f"/conversations/{cid}/messages").json()
    assert [m["id"] for m in history] == [data["userMessage"]["id"], data["aiMessage"]["id"]]
    assert [m["sender"] for m in history] == ["user", "ai"]


def test_text_too_long_is_rejected_without_persisting():
    client, store = _client()
    cid = client.post("/api/conversations").json()["id"]

    resp = client.post("/api/chat", json={"conversationId": cid, "text": "x" * 501})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["details"][0]["field"] == "text"
    assert store.list_messages(cid) == []


def test_configured_message_length_is_honoured():
    client, store = _client(max_message_length=1000)
    cid = client.post("/api/conversations").json()["id"]

    resp = client.post("/api/chat", json={"conversationId": cid, "text": "x" * 600})
    assert resp.status_code == 200
    assert resp.json()["userMessage"]["text"] == "x" * 600

    resp = client.post("/api/chat", json={"conversationId": cid, "text": "x" * 1001})
    assert resp.status_code == 400
    assert resp.json()["details"][0]["field"] == "text"
    assert len(store.list_messages(cid)) == 2


def test_invalid_payloads_are_400():
    client, _ = _client()
    assert client.post("/api/chat", json={"text": ""}).status_code == 400
    assert client.post("/api/chat", json={"text": "   "}).status_code == 400
    assert client.post("/api/chat", json={"conversationId": "1", "text": "hi"}).status_code == 400
    assert client.post("/api/chat", json={"conversationId": 0, "text": "hi"}).status_code == 400
    assert client.post("/api/chat", json={}).status_code == 400


def test_unknown_conversation_is_404():
    client, _ = _client()
    assert client.get("/api/conversations/999/messages").status_code == 404
    resp = client.post("/api/chat", json={"conversationId": 999, "text": "hi"})
    assert resp.status_code == 404
    assert resp.json()["error"] == "CONVERSATION_NOT_FOUND"


def test_history_is_ordered_and_stable():
    client, _ = _client()
    cid = client.post("/api/conversations").json()["id"]
    for text in ("one", "two", "three"):
        client.post("/api/chat", json={"conversationId": cid, "text": text})

    first = client.get(f"/api/conversations/{cid}/messages").json()
    second = client.get(f"/api/conversations/{cid}/messages").json()
    assert first == second
    assert [m["text"] for m in first if m["sender"] == "user"] == ["one", "two", "three"]
    ids = [m["id"] for m in first]
    assert ids == sorted(ids)


def test_rate_limit_returns_429():
    client, _ = _client(chat_rate_limit="2/minute")
    for _ in range(2):
        assert client.post("/api/chat", json={"text": "hi"}).status_code == 200
    resp = client.post("/api/chat", json={"text": "hi"})
    assert resp.status_code == 429
    assert resp.json()["error"] == "RATE_LIMITED"


class BrokenStore(InMemoryMessageStore):
    def append_message(self, conversation_id, sender, text):
        raise StorageUnavailable("connection refused")


def test_storage_failure_is_generic_500():
    client, _ = _client(store=BrokenStore())
    cid = client.post("/api/conversations").json()["id"]
    resp = client.post("/api/chat", json={"conversationId": cid, "text": "hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "STORAGE_UNAVAILABLE", "message": "Internal Server Error"}


class ExplodingStore(InMemoryMessageStore):
    def create_conversation(self):
        raise RuntimeError("unexpected")


def test_unexpected_failure_is_500():
    cfg = _settings()
    agent = SupportAgent(ExplodingStore(), ReplyGenerator(FakeProvider(), cfg, system_prompt="SYSTEM"), cfg)
    client = TestClient(create_app(agent=agent, cfg=cfg), raise_server_exceptions=False)
    resp = client.post("/api/conversations")
    assert resp.status_code == 500
    assert resp.json()["error"] == "INTERNAL_ERROR"


def test_default_agent_without_api_key_uses_placeholder():
    cfg = _settings()
    client = TestClient(create_app(agent=build_agent(cfg), cfg=cfg))
    data = client.post("/api/chat", json={"text": "hi"}).json()
    assert data["aiMessage"]["text"] == NOT_CONFIGURED_REPLY
