# app/services/chat_service.py

import logging
from typing import Callable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat import ChatMessage, Conversation, ConversationTypeEnum, MessageContentTypeEnum
from app.models.user import User, UserRoleEnum
from app.repositories.chat_repo import ChatRepository
from app.repositories.user_repo import UserRepository
from app.schemas.chat_schema import (
    ConversationCreate,
    ConversationOut,
    ConversationPage,
    DmOut,
    ForwardIn,
    ForwardOut,
    ForwardResult,
    MessageIn,
    MessageOut,
    MessagePage,
    ParticipantDetailOut,
    ParticipantRemovedOut,
    ParticipantsAddedOut,
    ParticipantsIn,
    ReactionsOut,
    RosterOut,
    SearchHit,
    SearchPage,
)
from app.schemas.user_schema import UserBrief
from app.utils.query_filters import parse_date_range
from app.utils.reactions import aggregate_reactions

logger = logging.getLogger(__name__)

FORBIDDEN = "Forbidden"

# AM 可以主動私訊的角色
AM_DM_TARGET_ROLES = {UserRoleEnum.admin, UserRoleEnum.manager}
# Agent 不可私訊的角色
AGENT_BLOCKED_ROLES = {UserRoleEnum.am, UserRoleEnum.client}
# 不可建立群組的角色
GROUP_BLOCKED_ROLES = {UserRoleEnum.client, UserRoleEnum.agent}
# 建立者以外，可以調整群組成員的角色
GROUP_MANAGER_ROLES = {UserRoleEnum.admin, UserRoleEnum.manager}


def to_message_out(message: ChatMessage) -> MessageOut:
    return MessageOut(
        id=message.message_id,
        conversation_id=message.conversation_id,
        content=message.content,
        content_type=message.content_type,
        created_at=message.created_at,
        sender=UserBrief.model_validate(message.sender) if message.sender else None,
        reactions=aggregate_reactions((r.emoji, r.user_id) for r in message.reactions),
    )


class ChatService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.chat_repo = ChatRepository(db)
        self.user_repo = UserRepository(db)

    # --- 權限 ---

    async def _require_member(self, conversation_id: str, user: User) -> None:
        if not await self.chat_repo.is_member(conversation_id, user.user_id):
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail=FORBIDDEN)

    async def _dm_rule(self, me: User) -> Callable[[User], bool]:
        """
        私訊規則 (DM 建立、轉寄、roster 共用):
        - client 只能私訊自己的 AM
        - agent 不能私訊 AM 或 client
        - AM 只能私訊 admin / manager，或自己負責的客戶帳號
        - 其他角色不受限
        """
        if me.role == UserRoleEnum.client:
            am_id = await self.user_repo.get_client_am_id(me.client_id)
            return lambda target: am_id is not None and target.user_id == am_id

        if me.role == UserRoleEnum.agent:
            return lambda target: target.role not in AGENT_BLOCKED_ROLES

        if me.role == UserRoleEnum.am:
            managed = await self.user_repo.get_managed_client_ids(me.user_id)
            return lambda target: target.role in AM_DM_TARGET_ROLES or target.client_id in managed

        return lambda target: True

    async def _check_dm_policy(self, me: User, target: User) -> None:
        may_dm = await self._dm_rule(me)
        if not may_dm(target):
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail=FORBIDDEN)

    async def _client_may_post(self, me: User, conversation: Optional[Conversation]) -> bool:
        """
        client 只能在「自己與 AM 的 DM」中發訊息；其他角色不受限
        """
        if me.role != UserRoleEnum.client:
            return True
        if conversation is None or conversation.type != ConversationTypeEnum.dm:
            return False
        am_id = await self.user_repo.get_client_am_id(me.client_id)
        participant_ids = {p.user_id for p in conversation.participants}
        return am_id is not None and participant_ids == {me.user_id, am_id}

    # --- Conversation ---

    async def get_or_create_dm(self, me: User, target_user_id: Optional[str]) -> DmOut:
        if not target_user_id or target_user_id == me.user_id:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid userId")

        target = await self.user_repo.get_user_by_id(target_user_id)
        if not target:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="User not found")

        await self._check_dm_policy(me, target)
        conversation = await self.chat_repo.get_or_create_dm(me.user_id, target.user_id)
        return DmOut(id=conversation.conversation_id)

    async def list_conversations(self, me: User, take: int, cursor: Optional[str] = None) -> ConversationPage:
        page = await self.chat_repo.list_conversations_for_user(me.user_id, take=take, cursor=cursor)
        return ConversationPage(
            results=[ConversationOut.model_validate(c) for c in page.items],
            next_cursor=page.next_cursor,
        )

    async def create_group(self, me: User, data: ConversationCreate) -> ConversationOut:
        if me.role in GROUP_BLOCKED_ROLES:
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail=FORBIDDEN)

        member_ids = list(dict.fromkeys([*data.member_ids, me.user_id]))
        found = await self.user_repo.get_users_by_ids(member_ids)
        if len(found) != len(member_ids):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid member")

        conversation = await self.chat_repo.create_group(me.user_id, member_ids, data.title)
        logger.info(f"User {me.user_id} created group {conversation.conversation_id} with {len(member_ids)} members")
        return ConversationOut.model_validate(conversation)

    # --- Participant ---

    async def _require_group_manager(self, conversation_id: str, me: User) -> Conversation:
        """
        只有群組建立者或 admin / manager 可以調整成員；DM 的成員固定
        """
        conversation = await self.chat_repo.get_conversation(conversation_id)
        if conversation is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Conversation not found")
        if conversation.created_by_id != me.user_id and me.role not in GROUP_MANAGER_ROLES:
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail=FORBIDDEN)
        if conversation.type != ConversationTypeEnum.group:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Only group members can be changed")
        return conversation

    async def list_participants(self, conversation_id: str, me: User) -> List[ParticipantDetailOut]:
        await self._require_member(conversation_id, me)
        participants = await self.chat_repo.list_participants(conversation_id)
        return [ParticipantDetailOut.model_validate(p) for p in participants]

    async def add_participants(self, conversation_id: str, me: User, data: ParticipantsIn) -> ParticipantsAddedOut:
        await self._require_group_manager(conversation_id, me)

        user_ids = [uid for uid in dict.fromkeys(data.user_ids) if uid]
        if not user_ids:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="userIds required")
        found = await self.user_repo.get_users_by_ids(user_ids)
        if len(found) != len(user_ids):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid member")

        added = await self.chat_repo.add_participants(conversation_id, user_ids)
        logger.info(f"User {me.user_id} added {added} members to {conversation_id}")
        return ParticipantsAddedOut(added=added)

    async def remove_participant(self, conversation_id: str, me: User, user_id: str) -> ParticipantRemovedOut:
        conversation = await self._require_group_manager(conversation_id, me)
        if conversation.created_by_id == user_id:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Cannot remove conversation owner")

        if not await self.chat_repo.remove_participant(conversation_id, user_id):
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Participant not found")
        logger.info(f"User {me.user_id} removed {user_id} from {conversation_id}")
        return ParticipantRemovedOut(removed=user_id)

    async def get_roster(self, me: User, q: Optional[str] = None) -> RosterOut:
        """
        可以私訊的對象 (與建立 DM 使用同一套規則)
        """
        q = (q or "").strip() or None
        may_dm = await self._dm_rule(me)
        users = [u for u in await self.user_repo.search_active_users(me.user_id, q) if may_dm(u)]
        return RosterOut(
            users=[UserBrief.model_validate(u) for u in users],
            count=len(users),
            q=q,
        )

    # --- Message ---

    async def list_messages(self, conversation_id: str, me: User, take: int, cursor: Optional[str] = None) -> MessagePage:
        """
        由新到舊取一頁，再反轉成由舊到新回傳 (方便前端直接接在上方)
        """
        await self._require_member(conversation_id, me)
        page = await self.chat_repo.list_messages(conversation_id, take=take, cursor=cursor)
        return MessagePage(
            messages=[to_message_out(m) for m in reversed(page.items)],
            next_cursor=page.next_cursor,
        )

    async def send_message(self, conversation_id: str, me: User, data: MessageIn) -> MessageOut:
        await self._require_member(conversation_id, me)

        if me.role == UserRoleEnum.client:
            conversation = await self.chat_repo.get_conversation(conversation_id)
            if not await self._client_may_post(me, conversation):
                raise HTTPException(status.HTTP_403_FORBIDDEN, detail=FORBIDDEN)

        content = (data.content or "").strip()
        if data.content_type == MessageContentTypeEnum.text and not content:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Content required")

        try:
            message = await self.chat_repo.save_message(
                conversation_id=conversation_id,
                sender_id=me.user_id,
                content=content or None,
                content_type=data.content_type,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to save message in {conversation_id}: {e}", exc_info=True)
            raise

        return MessageOut(
            id=message.message_id,
            conversation_id=conversation_id,
            content=message.content,
            content_type=message.content_type,
            created_at=message.created_at,
            sender=UserBrief.model_validate(me),
            reactions=[],
        )

    async def search_messages(
        self,
        conversation_id: str,
        me: User,
        q: Optional[str],
        take: int,
        cursor: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> SearchPage:
        await self._require_member(conversation_id, me)
        start, end = parse_date_range(date_from, date_to)
        page = await self.chat_repo.search_messages(
            conversation_id,
            q=(q or "").strip() or None,
            take=take,
            cursor=cursor,
            date_from=start,
            date_to=end,
        )
        return SearchPage(
            results=[SearchHit.model_validate(m) for m in page.items],
            next_cursor=page.next_cursor,
        )

    async def delete_message(self, message_id: str, me: User) -> None:
        message = await self.chat_repo.get_message(message_id)
        if not message:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Message not found")
        if message.sender_id != me.user_id:
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail=FORBIDDEN)
        await self.chat_repo.soft_delete_message(message)
        logger.info(f"User {me.user_id} deleted message {message_id}")

    async def toggle_reaction(self, message_id: str, me: User, emoji: str) -> ReactionsOut:
        message = await self.chat_repo.get_message(message_id)
        if not message:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Message not found")
        await self._require_member(message.conversation_id, me)

        await self.chat_repo.toggle_reaction(message_id, me.user_id, emoji)
        rows = await self.chat_repo.list_reaction_rows(message_id)
        return ReactionsOut(reactions=aggregate_reactions(rows))

    async def forward_message(self, message_id: str, me: User, data: ForwardIn) -> ForwardOut:
        """
        轉寄訊息到其他使用者 (透過 DM) 或自己所在的對話
        """
        target_user_ids = [uid for uid in dict.fromkeys(data.target_user_ids) if uid != me.user_id]
        target_conversation_ids = list(dict.fromkeys(data.target_conversation_ids))
        if not target_user_ids and not target_conversation_ids:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="No targets")

        source = await self.chat_repo.get_message(message_id)
        if not source:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Source not found")
        await self._require_member(source.conversation_id, me)

        targets = await self.user_repo.get_users_by_ids(target_user_ids)
        if len(targets) != len(target_user_ids):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid target user")
        may_dm = await self._dm_rule(me)
        if not all(may_dm(target) for target in targets):
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail=FORBIDDEN)

        # 只轉寄到自己所在、且自己可以發言的對話
        allowed_conversation_ids = []
        for cid in await self.chat_repo.get_member_conversation_ids(me.user_id, target_conversation_ids):
            if await self._client_may_post(me, await self.chat_repo.get_conversation(cid)):
                allowed_conversation_ids.append(cid)

        if not targets and not allowed_conversation_ids:
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail=FORBIDDEN)

        sender_name = source.sender.name if source.sender and source.sender.name else None
        prefix = f"↪️ Forwarded from {sender_name}: " if sender_name else "↪️ Forwarded: "
        content = f"{prefix}{source.content or ''}".strip()
        content_type = source.content_type

        destination_ids: List[str] = []
        for target in targets:
            dm = await self.chat_repo.get_or_create_dm(me.user_id, target.user_id)
            destination_ids.append(dm.conversation_id)
        destination_ids.extend(cid for cid in allowed_conversation_ids if cid not in destination_ids)

        results = []
        try:
            for cid in destination_ids:
                forwarded = await self.chat_repo.save_message(
                    conversation_id=cid,
                    sender_id=me.user_id,
                    content=content,
                    content_type=content_type,
                )
                results.append(ForwardResult(conversation_id=cid, message_id=forwarded.message_id))
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to forward message {message_id}: {e}", exc_info=True)
            raise

        logger.info(f"User {me.user_id} forwarded message {message_id} to {len(results)} conversations")
        return ForwardOut(results=results)
