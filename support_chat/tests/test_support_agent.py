"""测试对话编排。"""

import tempfile
from pathlib import Path

import pytest

from support_chat.agents.reply_generator import AUTH_ERROR_REPLY, ReplyGenerator
from support_chat.agents.support_agent import SupportAgent
from support_chat.domain.exceptions import (
    AuthenticationError,
    ConversationNotFound,
    StorageUnavailable,
    ValidationError,
)
from support_chat.domain.models import ChatResult, ContentBlock, Sender
from support_chat.infrastructure.storage.memory_store import InMemoryMessageStore
from support_chat.infrastructure.storage.sql_store import SqlMessageStore


class SettingsStub:
    default_model = "support-chat"
    max_context_messages = 10
    max_message_length = 500


class FakeProvider:
    """模拟的 Provider。"""

    name = "fake"

    def __init__(self, reply="这是测试回复", error=None):
        self._reply = reply
        self._error = error
        self.requests = []

    def is_configured(self):
        return True

    def chat(self, req):
        self.requests.append(req)
        if self._error is not None:
            raise self._error
        return ChatResult(provider="fake", model=req.model, content=[ContentBlock(type="text", text=self._reply)])


def _agent(store=None, provider=None):
    store = store or InMemoryMessageStore()
    provider = provider or FakeProvider()
    return SupportAgent(store, ReplyGenerator(provider, SettingsStub(), system_prompt="SYSTEM"), SettingsStub())


def test_create_then_send_hello():
    agent = _agent()
    conv = agent.create_conversation()

    turn = agent.process_message(conv.id, "Hello")

    assert turn.conversation_id == conv.id
    assert turn.user_message.text == "Hello"
    assert turn.user_message.sender is Sender.USER
    assert turn.ai_message.sender is Sender.AI
    assert turn.ai_message.text
    assert turn.ai_message.id > turn.user_message.id


def test_send_without_conversation_creates_one():
    with tempfile.TemporaryDirectory() as d:
        store = SqlMessageStore(database_url=f"sqlite:///{Path(d) / 'chat.db'}")
        agent = _agent(store=store)

        turn = agent.process_message(None, "Do you ship to Canada?")

        assert store.conversation_exists(turn.conversation_id)
        msgs = agent.get_messages(turn.conversation_id)
        assert [m.id for m in msgs] == [turn.user_message.id, turn.ai_message.id]
        assert [m.sender for m in msgs] == [Sender.USER, Sender.AI]
        store.engine.dispose()


def test_auth_failure_still_persists_both_messages():
    store = InMemoryMessageStore()
    provider = FakeProvider(error=AuthenticationError(code="AUTH_ERROR", message="invalid x-api-key", http_status=401))
    agent = _agent(store=store, provider=provider)
    conv = agent.create_conversation()

    turn = agent.process_message(conv.id, "hi")

    assert turn.ai_message.text == AUTH_ERROR_REPLY
    texts = [m.text for m in store.list_messages(conv.id)]
    assert texts == ["hi", AUTH_ERROR_REPLY]


def test_eleventh_message_sees_previous_ten_in_order():
    store = InMemoryMessageStore()
    conv = store.create_conversation()
    for i in range(10):
        store.append_message(conv.id, Sender.USER if i % 2 == 0 else Sender.AI, f"prior-{i}")
    provider = FakeProvider()
    agent = _agent(store=store, provider=provider)

    agent.process_message(conv.id, "eleventh")

    sent = provider.requests[0].messages
    assert [m.content for m in sent[:-1]] == [f"prior-{i}" for i in range(10)]
    assert sent[0].role == "user" and sent[1].role == "assistant"
    assert (sent[-1].role, sent[-1].content) == ("user", "eleventh")


def test_context_is_capped_at_window_size():
    store = InMemoryMessageStore()
    conv = store.create_conversation()
    for i in range(15):
        store.append_message(conv.id, Sender.USER, f"prior-{i}")
    provider = FakeProvider()
    _agent(store=store, provider=provider).process_message(conv.id, "next")

    sent = provider.requests[0].messages
    assert len(sent) == 11
    assert sent[0].content == "prior-5"


@pytest.mark.parametrize("text", ["x" * 501, "", "   "])
def test_invalid_text_is_rejected_and_nothing_persisted(text):
    store = InMemoryMessageStore()
    provider = FakeProvider()
    agent = _agent(store=store, provider=provider)
    conv = agent.create_conversation()

    with pytest.raises(ValidationError):
        agent.process_message(conv.id, text)

    assert store.list_messages(conv.id) == []
    assert provider.requests == []


def test_unknown_conversation_is_rejected():
    agent = _agent()
    with pytest.raises(ConversationNotFound):
        agent.process_message(424242, "hi")
    with pytest.raises(ConversationNotFound):
        agent.get_messages(424242)


class FailingStore(InMemoryMessageStore):
    """第 fail_on 次 append 时抛出 StorageUnavailable。"""

    def __init__(self, fail_on):
        super().__init__()
        self._fail_on = fail_on
        self._appends = 0

    def append_message(self, conversation_id, sender, text):
        self._appends += 1
        if self._appends == self._fail_on:
            raise StorageUnavailable("disk full")
        return super().append_message(conversation_id, sender, text)


def test_storage_failure_on_user_message_aborts_before_reply():
    store = FailingStore(fail_on=1)
    provider = FakeProvider()
    agent = _agent(store=store, provider=provider)
    conv = agent.create_conversation()

    with pytest.raises(StorageUnavailable):
        agent.process_message(conv.id, "hi")

    assert provider.requests == []
    assert store.list_messages(conv.id) == []


def test_storage_failure_on_reply_keeps_user_message():
    store = FailingStore(fail_on=2)
    provider = FakeProvider()
    agent = _agent(store=store, provider=provider)
    conv = agent.create_conversation()

    with pytest.raises(StorageUnavailable):
        agent.process_message(conv.id, "hi")

    assert len(provider.requests) == 1
    assert [m.text for m in store.list_messages(conv.id)] == ["hi"]
