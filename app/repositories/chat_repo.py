# app/repositories/chat_repo.py

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.chat import (
    ChatMessage,
    Conversation,
    ConversationParticipant,
    ConversationTypeEnum,
    MessageContentTypeEnum,
    MessageReaction,
    make_dm_key,
    utcnow,
)
from app.utils.pagination import Page, paginate

logger = logging.getLogger(__name__)

class ChatRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # --- Conversation 相關操作 ---

    async def is_member(self, conversation_id: str, user_id: str) -> bool:
        """
        每次請求都重新確認成員資格 (不快取)
        """
        stmt = select(ConversationParticipant.participant_id).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
        return (await self.db.execute(stmt)).first() is not None

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        stmt = (
            select(Conversation)
            .where(Conversation.conversation_id == conversation_id)
            .options(selectinload(Conversation.participants))
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def get_member_conversation_ids(self, user_id: str, conversation_ids: List[str]) -> List[str]:
        if not conversation_ids:
            return []
        stmt = select(ConversationParticipant.conversation_id).where(
            ConversationParticipant.user_id == user_id,
            ConversationParticipant.conversation_id.in_(conversation_ids),
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def list_conversations_for_user(self, user_id: str, take: int, cursor: Optional[str] = None) -> Page:
        member_of = select(ConversationParticipant.conversation_id).where(
            ConversationParticipant.user_id == user_id
        )
        stmt = select(Conversation).where(Conversation.conversation_id.in_(member_of))
        return await paginate(
            self.db,
            stmt,
            order_column=Conversation.updated_at,
            id_column=Conversation.conversation_id,
            take=take,
            cursor_id=cursor,
            cursor_scope=[Conversation.conversation_id.in_(member_of)],
        )

    async def find_dm(self, user_a: str, user_b: str) -> Optional[Conversation]:
        stmt = (
            select(Conversation)
            .where(Conversation.dm_key == make_dm_key(user_a, user_b))
            .options(selectinload(Conversation.participants))
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def get_or_create_dm(self, user_a: str, user_b: str) -> Conversation:
        """
        找到或建立兩人之間唯一的 DM。

        以 dm_key (排序後的兩個 user_id) 的 UNIQUE 限制做「不存在才新增」:
        兩個請求同時建立時，後到的那個會撞到 IntegrityError，
        這時回滾 savepoint 並改讀已存在的那一筆，所以兩邊拿到同一個 id。
        """
        existing = await self.find_dm(user_a, user_b)
        if existing:
            return existing

        conversation_id = str(uuid.uuid4())
        try:
            async with self.db.begin_nested():
                self.db.add(Conversation(
                    conversation_id=conversation_id,
                    type=ConversationTypeEnum.dm,
                    dm_key=make_dm_key(user_a, user_b),
                    created_by_id=user_a,
                ))
                # 先寫入 conversation，participant 的 FK 才有對象
                await self.db.flush()
                self.db.add_all([
                    ConversationParticipant(conversation_id=conversation_id, user_id=user_a, role="owner"),
                    ConversationParticipant(conversation_id=conversation_id, user_id=user_b, role="member"),
                ])
            await self.db.commit()
            logger.info(f"Created DM {conversation_id} between {user_a} and {user_b}")
        except IntegrityError:
            logger.info(f"DM between {user_a} and {user_b} created concurrently, reusing it")
            await self.db.commit()

        conversation = await self.find_dm(user_a, user_b)
        if conversation is None:
            raise RuntimeError("Failed to re-fetch DM conversation")
        return conversation

    async def create_group(self, creator_id: str, member_ids: List[str], title: Optional[str]) -> Conversation:
        conversation_id = str(uuid.uuid4())
        self.db.add(Conversation(
            conversation_id=conversation_id,
            type=ConversationTypeEnum.group,
            title=title,
            created_by_id=creator_id,
        ))
        await self.db.flush()
        self.db.add_all([
            ConversationParticipant(
                conversation_id=conversation_id,
                user_id=uid,
                role="owner" if uid == creator_id else "member",
            )
            for uid in member_ids
        ])
        await self.db.commit()
        return await self.get_conversation(conversation_id)

    # --- Participant 相關操作 ---

    async def list_participants(self, conversation_id: str) -> List[ConversationParticipant]:
        stmt = (
            select(ConversationParticipant)
            .where(ConversationParticipant.conversation_id == conversation_id)
            .order_by(ConversationParticipant.joined_at, ConversationParticipant.participant_id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def add_participants(self, conversation_id: str, user_ids: List[str]) -> int:
        """
        加入尚未在對話中的使用者，回傳實際新增的人數。
        每一筆各自一個 savepoint，同時被別人加入的那筆撞到 UNIQUE 就略過。
        """
        existing = set(await self.get_member_ids(conversation_id))
        added = 0
        for uid in user_ids:
            if uid in existing:
                continue
            try:
                async with self.db.begin_nested():
                    self.db.add(ConversationParticipant(conversation_id=conversation_id, user_id=uid, role="member"))
                    await self.db.flush()
                added += 1
            except IntegrityError:
                logger.info(f"User {uid} joined {conversation_id} concurrently, skipping")
        await self.db.commit()
        return added

    async def remove_participant(self, conversation_id: str, user_id: str) -> bool:
        stmt = delete(ConversationParticipant).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount > 0

    async def get_member_ids(self, conversation_id: str) -> List[str]:
        stmt = select(ConversationParticipant.user_id).where(
            ConversationParticipant.conversation_id == conversation_id
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def touch_conversation(self, conversation_id: str) -> None:
        conversation = await self.db.get(Conversation, conversation_id)
        if conversation is not None:
            conversation.updated_at = utcnow()

    # --- Message 相關操作 ---

    async def get_message(self, message_id: str, include_deleted: bool = False) -> Optional[ChatMessage]:
        stmt = select(ChatMessage).where(ChatMessage.message_id == message_id)
        if not include_deleted:
            stmt = stmt.where(ChatMessage.deleted_at.is_(None))
        return (await self.db.execute(stmt)).scalars().first()

    async def list_messages(self, conversation_id: str, take: int, cursor: Optional[str] = None) -> Page:
        """
        未刪除的訊息，由新到舊取一頁
        """
        stmt = select(ChatMessage).where(
            ChatMessage.conversation_id == conversation_id,
            ChatMessage.deleted_at.is_(None),
        )
        return await paginate(
            self.db,
            stmt,
            order_column=ChatMessage.created_at,
            id_column=ChatMessage.message_id,
            take=take,
            cursor_id=cursor,
            cursor_scope=[ChatMessage.conversation_id == conversation_id],
        )

    async def search_messages(
        self,
        conversation_id: str,
        q: Optional[str],
        take: int,
        cursor: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Page:
        """
        對話中的訊息搜尋: 不分大小寫的子字串，排除已刪除，由新到舊
        """
        stmt = select(ChatMessage).where(
            ChatMessage.conversation_id == conversation_id,
            ChatMessage.deleted_at.is_(None),
        )
        if q:
            stmt = stmt.where(ChatMessage.content.icontains(q, autoescape=True))
        if date_from is not None:
            stmt = stmt.where(ChatMessage.created_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(ChatMessage.created_at <= date_to)

        return await paginate(
            self.db,
            stmt,
            order_column=ChatMessage.created_at,
            id_column=ChatMessage.message_id,
            take=take,
            cursor_id=cursor,
            cursor_scope=[ChatMessage.conversation_id == conversation_id],
        )

    async def save_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: Optional[str],
        content_type: MessageContentTypeEnum,
    ) -> ChatMessage:
        new_message = ChatMessage(
            message_id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            content_type=content_type,
        )
        self.db.add(new_message)
        await self.touch_conversation(conversation_id)
        await self.db.flush()
        await self.db.refresh(new_message)
        return new_message

    async def soft_delete_message(self, message: ChatMessage) -> None:
        message.deleted_at = utcnow()
        await self.db.commit()

    # --- Reaction 相關操作 ---

    async def toggle_reaction(self, message_id: str, user_id: str, emoji: str) -> bool:
        """
        已按過同一個 emoji 就移除，否則新增。回傳 True 代表新增。
        """
        stmt = select(MessageReaction).where(
            MessageReaction.message_id == message_id,
            MessageReaction.user_id == user_id,
            MessageReaction.emoji == emoji,
        )
        existing = (await self.db.execute(stmt)).scalars().first()
        if existing:
            await self.db.delete(existing)
            await self.db.commit()
            return False

        self.db.add(MessageReaction(message_id=message_id, user_id=user_id, emoji=emoji))
        try:
            await self.db.commit()
        except IntegrityError:
            # 同一個使用者的重複點擊同時抵達，視為已新增
            await self.db.rollback()
        return True

    async def list_reaction_rows(self, message_id: str) -> List[tuple]:
        stmt = (
            select(MessageReaction.emoji, MessageReaction.user_id)
            .where(MessageReaction.message_id == message_id)
            .order_by(MessageReaction.created_at, MessageReaction.reaction_id)
        )
        return [tuple(row) for row in (await self.db.execute(stmt)).all()]
