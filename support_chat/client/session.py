"""挂件侧会话逻辑。

ChatSession 是聊天挂件背后的无界面状态：
- 打开时恢复本地缓存的会话（拉取历史）或新建会话；
- 发送时先追加一条乐观的 PendingEntry，服务端确认后用真实消息替换它；
- 网络失败或被限流时追加一条本地提示，不静默丢弃。
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

import httpx

from support_chat.client.id_cache import IdCache, MemoryIdCache
from support_chat.infrastructure.logging.logger import logger

DEFAULT_BASE_URL = "http://localhost:3000/api"
GREETING = "Hello! How can I help you with your order today?"
SEND_FAILED_TEXT = "Something went wrong. Please try again."
RATE_LIMITED_TEXT = "You're sending messages too quickly. Please wait a moment."


class SessionState(str, Enum):
    CLOSED = "closed"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass(frozen=True)
class ServerMessage:
    """服务端确认过的消息。"""

    id: int
    conversation_id: int
    sender: str
    text: str
    created_at: str

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ServerMessage":
        return cls(
            id=int(data["id"]),
            conversation_id=int(data["conversationId"]),
            sender=str(data["sender"]),
            text=str(data["text"]),
            created_at=str(data["createdAt"]),
        )


@dataclass
class PendingEntry:
    """乐观追加的用户消息，临时 id 只在本地有效。"""

    temp_id: str
    text: str
    created_at: datetime
    failed: bool = False
    sender: str = "user"

    @property
    def key(self) -> str:
        return self.temp_id


@dataclass
class ConfirmedEntry:
    message: ServerMessage

    @property
    def key(self) -> str:
        return str(self.message.id)

    @property
    def sender(self) -> str:
        return self.message.sender

    @property
    def text(self) -> str:
        return self.message.text


@dataclass
class LocalNoticeEntry:
    """本地生成的 AI 角色提示（发送失败时使用），不会写入服务端。"""

    temp_id: str
    text: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sender: str = "ai"

    @property
    def key(self) -> str:
        return self.temp_id


Entry = Union[PendingEntry, ConfirmedEntry, LocalNoticeEntry]


class ChatSession:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        id_cache: Optional[IdCache] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 60.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._id_cache = id_cache if id_cache is not None else MemoryIdCache()
        # 只关闭自己创建的 httpx.Client
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(timeout=timeout)
        self._state = SessionState.CLOSED
        self._conversation_id: Optional[int] = None
        self._entries: List[Entry] = []
        self._send_lock = threading.Lock()

    # ---- 状态 ----

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def conversation_id(self) -> Optional[int]:
        return self._conversation_id

    @property
    def entries(self) -> List[Entry]:
        return list(self._entries)

    @property
    def is_sending(self) -> bool:
        return self._send_lock.locked()

    @property
    def greeting(self) -> Optional[str]:
        """对话为空时展示的欢迎语。"""
        return GREETING if not self._entries else None

    # ---- 生命周期 ----

    def open(self) -> SessionState:
        """打开挂件：恢复缓存的会话，或新建一个。"""

        if self._state is SessionState.READY:
            return self._state
        if self._conversation_id is not None:
            # 本进程内已经初始化过，直接恢复
            self._state = SessionState.READY
            return self._state

        self._state = SessionState.INITIALIZING
        cached_id = self._id_cache.load()
        if cached_id is not None:
            history = self._fetch_history(cached_id)
            if history is not None:
                self._conversation_id = cached_id
                self._entries = [ConfirmedEntry(m) for m in history]
                self._state = SessionState.READY
                return self._state

        conversation_id = self._create_conversation()
        if conversation_id is not None:
            self._id_cache.save(conversation_id)
        self._conversation_id = conversation_id
        self._entries = []
        self._state = SessionState.READY
        return self._state

    def close(self) -> None:
        self._state = SessionState.CLOSED

    def reset(self) -> None:
        """忘记当前会话；下次 open 会新建会话。"""
        self._id_cache.clear()
        self._conversation_id = None
        self._entries = []
        self._state = SessionState.CLOSED

    def shutdown(self) -> None:
        """关闭挂件并释放自建的 HTTP 连接。"""
        self.close()
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "ChatSession":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()

    # ---- 发送 ----

    def send(self, text: str) -> Optional[Entry]:
        """发送一条消息，返回追加的回复条目。

        未就绪、已有请求在途或 text 为空时不发送，返回 None。
        """

        text = (text or "").strip()
        if self._state is not SessionState.READY or not text:
            return None
        if not self._send_lock.acquire(blocking=False):
            return None
        try:
            pending = PendingEntry(
                temp_id=f"tmp-{uuid4().hex}",
                text=text,
                created_at=datetime.now(timezone.utc),
            )
            self._entries.append(pending)
            return self._deliver(pending)
        finally:
            self._send_lock.release()

    def _deliver(self, pending: PendingEntry) -> Entry:
        body: Dict[str, Any] = {"text": pending.text}
        if self._conversation_id is not None:
            body["conversationId"] = self._conversation_id
        try:
            resp = self._http.post(f"{self._base_url}/chat", json=body)
        except httpx.HTTPError as e:
            logger.error(f"Error sending message: {e}")
            return self._fail(pending, SEND_FAILED_TEXT)
        if resp.status_code == 429:
            return self._fail(pending, RATE_LIMITED_TEXT)
        if resp.status_code >= 400:
            logger.error(f"Error sending message: HTTP {resp.status_code}")
            return self._fail(pending, SEND_FAILED_TEXT)
        try:
            data = resp.json()
            user_msg = ServerMessage.from_json(data["userMessage"])
            ai_msg = ServerMessage.from_json(data["aiMessage"])
            conversation_id = int(data.get("conversationId") or ai_msg.conversation_id)
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Malformed chat response: {e}")
            return self._fail(pending, SEND_FAILED_TEXT)

        if conversation_id != self._conversation_id:
            self._conversation_id = conversation_id
            self._id_cache.save(conversation_id)
        # 用服务端消息替换乐观条目，而不是合并
        self._replace(pending, ConfirmedEntry(user_msg))
        reply = ConfirmedEntry(ai_msg)
        self._entries.append(reply)
        return reply

    def _fail(self, pending: PendingEntry, text: str) -> LocalNoticeEntry:
        pending.failed = True
        notice = LocalNoticeEntry(temp_id=f"tmp-{uuid4().hex}", text=text)
        self._entries.append(notice)
        return notice

    def _replace(self, old: Entry, new: Entry) -> None:
        for idx, entry in enumerate(self._entries):
            if entry is old:
                self._entries[idx] = new
                return
        self._entries.append(new)

    # ---- HTTP ----

    def _fetch_history(self, conversation_id: int) -> Optional[List[ServerMessage]]:
        try:
            resp = self._http.get(f"{self._base_url}/conversations/{conversation_id}/messages")
            resp.raise_for_status()
            return [ServerMessage.from_json(item) for item in resp.json()]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to load conversation {conversation_id}: {e}")
            return None

    def _create_conversation(self) -> Optional[int]:
        try:
            resp = self._http.post(f"{self._base_url}/conversations")
            resp.raise_for_status()
            return int(resp.json()["id"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            # 没有会话 id 时仍可发送，服务端会自动新建
            logger.error(f"Failed to create conversation: {e}")
            return None
