# app/schemas/chat_schema.py

from pydantic import AliasChoices, Field
from typing import List, Optional
from datetime import datetime

from app.models.chat import ConversationTypeEnum, MessageContentTypeEnum
from app.schemas.base_schema import CamelModel
from app.schemas.user_schema import UserBrief

class ReactionGroup(CamelModel):
    emoji: str
    count: int
    user_ids: List[str]

class ParticipantOut(CamelModel):
    user_id: str
    role: Optional[str] = None
    joined_at: Optional[datetime] = None

class ParticipantDetailOut(ParticipantOut):
    user: Optional[UserBrief] = None

class ParticipantsIn(CamelModel):
    user_ids: List[str] = Field(..., min_length=1)

class ParticipantsAddedOut(CamelModel):
    ok: bool = True
    added: int

class ParticipantRemovedOut(CamelModel):
    ok: bool = True
    removed: str

class RosterOut(CamelModel):
    """
    目前使用者可以私訊的對象
    """
    users: List[UserBrief]
    count: int
    q: Optional[str] = None

class ConversationOut(CamelModel):
    id: str = Field(validation_alias=AliasChoices("conversation_id", "id"))
    type: ConversationTypeEnum
    title: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    participants: List[ParticipantOut] = []

class ConversationPage(CamelModel):
    results: List[ConversationOut]
    next_cursor: Optional[str] = None

class ConversationCreate(CamelModel):
    """
    建立群組聊天室 (DM 請改用 POST /chat/dm)
    """
    title: Optional[str] = Field(None, max_length=255)
    member_ids: List[str] = Field(..., min_length=1)

class DmCreate(CamelModel):
    user_id: str = Field(..., min_length=1)

class DmOut(CamelModel):
    id: str

class MessageOut(CamelModel):
    id: str
    conversation_id: str
    content: Optional[str] = None
    content_type: MessageContentTypeEnum
    created_at: datetime
    sender: Optional[UserBrief] = None
    reactions: List[ReactionGroup] = []

class MessagePage(CamelModel):
    messages: List[MessageOut]
    next_cursor: Optional[str] = None

class MessageIn(CamelModel):
    content: Optional[str] = None
    content_type: MessageContentTypeEnum = MessageContentTypeEnum.text

class MessageSentOut(CamelModel):
    ok: bool = True
    message: MessageOut

class SearchHit(CamelModel):
    id: str = Field(validation_alias=AliasChoices("message_id", "id"))
    content: Optional[str] = None
    created_at: datetime
    sender: Optional[UserBrief] = None

class SearchPage(CamelModel):
    results: List[SearchHit]
    next_cursor: Optional[str] = None

class ReactionIn(CamelModel):
    emoji: str = Field(..., min_length=1, max_length=32)

class ReactionsOut(CamelModel):
    reactions: List[ReactionGroup]

class ForwardIn(CamelModel):
    target_user_ids: List[str] = []
    target_conversation_ids: List[str] = []

class ForwardResult(CamelModel):
    conversation_id: str
    message_id: str

class ForwardOut(CamelModel):
    results: List[ForwardResult]
