# app/models/chat.py

import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, ForeignKey, CHAR, DateTime, Enum, UniqueConstraint
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import relationship
from app.core.database import Base

class ConversationTypeEnum(str, enum.Enum):
    dm = "dm"
    group = "group"

class MessageContentTypeEnum(str, enum.Enum):
    text = "text"
    file = "file"
    image = "image"
    system = "system"

# 訊息與對話的排序鍵需要微秒精度，TIMESTAMP 預設只到秒
PreciseDateTime = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")

def utcnow() -> datetime:
    """應用端產生的 naive UTC 時間 (微秒精度)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def make_dm_key(user_a: str, user_b: str) -> str:
    """兩人 DM 的標準 key (與順序無關)"""
    return ":".join(sorted([user_a, user_b]))

class Conversation(Base):
    __tablename__ = "conversations"

    conversation_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(
        Enum(ConversationTypeEnum, values_callable=lambda obj: [e.value for e in obj]),
        default=ConversationTypeEnum.dm,
        nullable=False
    )
    title = Column(String(255))

    # (關鍵) 僅 DM 會填，UNIQUE 保證同一對使用者只有一個 DM
    dm_key = Column(String(80), unique=True, nullable=True)

    created_by_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    created_at = Column(PreciseDateTime, default=utcnow)
    updated_at = Column(PreciseDateTime, default=utcnow, onupdate=utcnow, index=True)

    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    messages = relationship(
        "ChatMessage",
        back_populates="conversation",
        cascade="all, delete-orphan"
    )

class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participant"),
    )

    participant_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(CHAR(36), ForeignKey("conversations.conversation_id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), default="member")
    joined_at = Column(PreciseDateTime, default=utcnow)

    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User", lazy="selectin")

class ChatMessage(Base):
    __tablename__ = "chat_messages"

    message_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(CHAR(36), ForeignKey("conversations.conversation_id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    content_type = Column(
        Enum(MessageContentTypeEnum, values_callable=lambda obj: [e.value for e in obj]),
        default=MessageContentTypeEnum.text,
        nullable=False
    )
    content = Column(Text)
    created_at = Column(PreciseDateTime, default=utcnow, index=True)

    # 軟刪除標記，非 NULL 代表已刪除
    deleted_at = Column(PreciseDateTime, nullable=True)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User", lazy="selectin")
    reactions = relationship(
        "MessageReaction",
        back_populates="message",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MessageReaction.created_at"
    )

class MessageReaction(Base):
    __tablename__ = "message_reactions"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_message_reaction"),
    )

    reaction_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    message_id = Column(CHAR(36), ForeignKey("chat_messages.message_id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    emoji = Column(String(32), nullable=False)
    created_at = Column(PreciseDateTime, default=utcnow)

    message = relationship("ChatMessage", back_populates="reactions")
