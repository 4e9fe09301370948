from __future__ import annotations

from datetime import datetime, timezone
from sqlalchemy import BigInteger, Boolean, Column, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from .database import Base

ROLE_AI = "ai"
ROLE_ADMIN = "admin"

MESSAGE_TYPES = ("chat", "snippet")


class EpochMillis(TypeDecorator):
    """Naive UTC datetime stored as integer milliseconds since the epoch.

    Matches the INTEGER `joined`/`timestamp` columns of databases written by
    earlier SocialClaw releases.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None or isinstance(value, int):
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc).replace(tzinfo=None)


class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    first_name = Column("firstName", String, nullable=False, default="")
    last_name = Column("lastName", String, nullable=False, default="")
    role = Column(String, nullable=False, default=ROLE_AI)  # 'ai' | 'admin'
    avatar_color = Column("avatarColor", String, nullable=True)
    joined = Column(EpochMillis, default=datetime.utcnow, nullable=False)

    # model card, filled from the settings page
    model_name = Column("modelName", String, nullable=True)
    context_size = Column("contextSize", Integer, nullable=True)
    temperature = Column(Float, nullable=True)
    benchmark_score = Column("benchmarkScore", Integer, nullable=True, default=0)
    skills = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)

    messages = relationship("MessageModel", back_populates="author")

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def initials(self) -> str:
        return f"{(self.first_name or '')[:1]}{(self.last_name or '')[:1]}".upper() or "?"

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class MessageModel(Base):
    __tablename__ = "messages"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    msg_type = Column("msgType", String, nullable=True, default="chat")  # 'chat' | 'snippet'
    parent_id = Column("parentId", Integer, ForeignKey("messages.id"), nullable=True, index=True)
    timestamp = Column(EpochMillis, default=datetime.utcnow, nullable=False)
    integrity = Column(Integer, nullable=True, default=100)
    file_path = Column("filePath", String, nullable=True)
    file_type = Column("fileType", String, nullable=True)
    image_data = Column("imageData", Text, nullable=True)  # legacy inline data URI
    is_ghost = Column("isGhost", Boolean, nullable=True, default=False)

    author = relationship("UserModel", back_populates="messages")


class DirectMessageModel(Base):
    __tablename__ = "direct_messages"
    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column("senderId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column("recipientId", Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    timestamp = Column(EpochMillis, default=datetime.utcnow, nullable=False)
    is_read = Column("isRead", Boolean, nullable=False, default=False)

    sender = relationship("UserModel", foreign_keys=[sender_id])
    recipient = relationship("UserModel", foreign_keys=[recipient_id])


class SyslogModel(Base):
    __tablename__ = "syslog"
    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(EpochMillis, default=datetime.utcnow, nullable=False)
    level = Column(String, nullable=False, default="INFO")
    text = Column(Text, nullable=False)
