# app/routers/chat_router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.base_schema import OkOut
from app.schemas.chat_schema import (
    ConversationCreate,
    ConversationOut,
    ConversationPage,
    DmCreate,
    DmOut,
    ForwardIn,
    ForwardOut,
    MessageIn,
    MessagePage,
    MessageSentOut,
    ParticipantDetailOut,
    ParticipantRemovedOut,
    ParticipantsAddedOut,
    ParticipantsIn,
    ReactionIn,
    ReactionsOut,
    RosterOut,
    SearchPage,
)
from app.services.chat_service import ChatService

router = APIRouter(
    prefix="/chat",
    tags=["Chat"]
)

@router.post("/dm", response_model=DmOut, summary="取得或建立一對一聊天室")
async def get_or_create_dm(
    body: DmCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    同一組使用者永遠只有一個 DM，(A, B) 與 (B, A) 拿到同一個 id。
    """
    service = ChatService(db)
    return await service.get_or_create_dm(current_user, body.user_id)

@router.get("/conversations", response_model=ConversationPage, summary="我的聊天室列表")
async def list_conversations(
    take: int = Query(30, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    return await service.list_conversations(current_user, take=take, cursor=cursor)

@router.post(
    "/conversations",
    response_model=ConversationOut,
    status_code=status.HTTP_201_CREATED,
    summary="建立群組聊天室"
)
async def create_group(
    body: ConversationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    return await service.create_group(current_user, body)

@router.get("/roster", response_model=RosterOut, summary="可以私訊的對象")
async def get_roster(
    q: Optional[str] = Query(None, max_length=255),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    return await service.get_roster(current_user, q=q)

@router.get(
    "/conversations/{conversation_id}/participants",
    response_model=List[ParticipantDetailOut],
    summary="聊天室成員"
)
async def list_participants(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    return await service.list_participants(conversation_id, current_user)

@router.post(
    "/conversations/{conversation_id}/participants",
    response_model=ParticipantsAddedOut,
    summary="加入群組成員"
)
async def add_participants(
    conversation_id: str,
    body: ParticipantsIn,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    已在群組中的使用者會略過，added 為實際新增的人數
    """
    service = ChatService(db)
    return await service.add_participants(conversation_id, current_user, body)

@router.delete(
    "/conversations/{conversation_id}/participants/{user_id}",
    response_model=ParticipantRemovedOut,
    summary="移除群組成員"
)
async def remove_participant(
    conversation_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    return await service.remove_participant(conversation_id, current_user, user_id)

@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=MessagePage,
    summary="聊天室訊息 (游標分頁)"
)
async def list_messages(
    conversation_id: str,
    take: int = Query(30, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    回傳的訊息由舊到新；nextCursor 用來往前 (更舊) 載入
    """
    service = ChatService(db)
    return await service.list_messages(conversation_id, current_user, take=take, cursor=cursor)

@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageSentOut,
    summary="發送訊息"
)
async def send_message(
    conversation_id: str,
    body: MessageIn,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    message = await service.send_message(conversation_id, current_user, body)
    return MessageSentOut(ok=True, message=message)

@router.get(
    "/conversations/{conversation_id}/messages/search",
    response_model=SearchPage,
    summary="搜尋聊天室訊息"
)
async def search_messages(
    conversation_id: str,
    q: Optional[str] = Query(None),
    take: int = Query(20, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    return await service.search_messages(
        conversation_id,
        current_user,
        q=q,
        take=take,
        cursor=cursor,
        date_from=date_from,
        date_to=date_to,
    )

@router.delete("/messages/{message_id}", response_model=OkOut, summary="刪除訊息")
async def delete_message(
    message_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    await service.delete_message(message_id, current_user)
    return OkOut()

@router.post("/messages/{message_id}/reactions", response_model=ReactionsOut, summary="切換表情回應")
async def toggle_reaction(
    message_id: str,
    body: ReactionIn,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    return await service.toggle_reaction(message_id, current_user, body.emoji)

@router.post("/messages/{message_id}/forward", response_model=ForwardOut, summary="轉寄訊息")
async def forward_message(
    message_id: str,
    body: ForwardIn,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ChatService(db)
    return await service.forward_message(message_id, current_user, body)
