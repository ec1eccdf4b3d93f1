"""基于 SQLAlchemy 的消息存储。

两张表：conversations(id, created_at) 与 messages(id, conversation_id, sender, text, created_at)。
id 由数据库自增分配，并发追加时由事务保证唯一且递增。
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Text, create_engine, exists, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from support_chat.config.settings import settings
from support_chat.domain.conversation import Conversation, MessageRecord, MessageStore
from support_chat.domain.exceptions import BusinessError, ConversationNotFound, StorageUnavailable
from support_chat.domain.models import Sender
from support_chat.infrastructure.logging.logger import logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite 不保存时区信息
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    pass


class ConversationRow(Base):
    __tablename__ = "conversations"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class MessageRow(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_id_id", "conversation_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id"), nullable=False)
    sender: Mapped[Sender] = mapped_column(
        Enum(Sender, name="sender", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


def create_db_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        database = url.database
        if not database or database == ":memory:":
            # 内存库只能共享同一个连接
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


class SqlMessageStore(MessageStore):
    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        self._engine = engine or create_db_engine(database_url or settings.database_url)
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise StorageUnavailable(str(e)) from e

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_conversation(self) -> Conversation:
        with self._transaction() as session:
            row = ConversationRow(created_at=_utcnow())
            session.add(row)
            session.flush()
            return self._to_conversation(row)

    def conversation_exists(self, conversation_id: int) -> bool:
        with self._transaction() as session:
            return bool(session.scalar(select(exists().where(ConversationRow.id == conversation_id))))

    def get_conversation(self, conversation_id: int) -> Conversation:
        with self._transaction() as session:
            row = session.get(ConversationRow, conversation_id)
            if row is None:
                raise ConversationNotFound(conversation_id)
            return self._to_conversation(row)

    def append_message(self, conversation_id: int, sender: Sender, text: str) -> MessageRecord:
        with self._transaction() as session:
            if session.get(ConversationRow, conversation_id) is None:
                raise ConversationNotFound(conversation_id)
            row = MessageRow(
                conversation_id=conversation_id,
                sender=Sender(sender),
                text=text,
                created_at=_utcnow(),
            )
            session.add(row)
            session.flush()
            return self._to_message(row)

    def list_messages(self, conversation_id: int) -> List[MessageRecord]:
        stmt = (
            select(MessageRow)
            .where(MessageRow.conversation_id == conversation_id)
            .order_by(MessageRow.id.asc())
        )
        with self._transaction() as session:
            return [self._to_message(row) for row in session.scalars(stmt)]

    def list_recent_messages(self, conversation_id: int, before_id: int, limit: int) -> List[MessageRecord]:
        stmt = (
            select(MessageRow)
            .where(MessageRow.conversation_id == conversation_id, MessageRow.id < before_id)
            .order_by(MessageRow.id.desc())
            .limit(limit)
        )
        with self._transaction() as session:
            return [self._to_message(row) for row in session.scalars(stmt)]

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._sessions.begin() as session:
                yield session
        except BusinessError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Storage failure: {e}", extra={"extra": {"error": type(e).__name__}})
            raise StorageUnavailable(str(e)) from e

    @staticmethod
    def _to_conversation(row: ConversationRow) -> Conversation:
        return Conversation(id=row.id, created_at=_as_utc(row.created_at))

    @staticmethod
    def _to_message(row: MessageRow) -> MessageRecord:
        return MessageRecord(
            id=row.id,
            conversation_id=row.conversation_id,
            sender=Sender(row.sender),
            text=row.text,
            created_at=_as_utc(row.created_at),
        )
