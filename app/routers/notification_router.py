# app/routers/notification_router.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.config import settings
from app.core.database import get_db
from app.models.user import User
from app.core.security import get_current_user
from app.services.notification_service import NotificationService
from app.schemas.base_schema import OkOut
from app.schemas.notification_schema import MarkReadIn, NotificationOut, UnreadCountOut
from app.utils.query_filters import build_notification_filter

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"]
)

@router.get(
    "",
    response_model=List[NotificationOut],
    summary="AM 的通知列表 (篩選 + 游標分頁)"
)
async def list_notifications(
    is_read: Optional[str] = Query(None, alias="isRead"),
    only_unread: Optional[str] = Query(None, alias="onlyUnread"),
    type: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    take: int = Query(50, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor_id: Optional[int] = Query(None, alias="cursorId"),
    sort: str = Query("desc"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    只會看到自己負責的 Client 底下任務的通知。
    - isRead=true/false，onlyUnread=1 (舊參數，isRead 優先)
    - from / to 為 ISO 日期，to 包含當天整天
    - 下一頁: 以上一頁最後一筆的 id 當作 cursorId
    """
    filters = build_notification_filter(
        is_read=is_read,
        only_unread=only_unread,
        type=type,
        q=q,
        date_from=date_from,
        date_to=date_to,
    )
    service = NotificationService(db)
    page = await service.list_notifications(current_user, filters, take=take, cursor_id=cursor_id, sort=sort)
    return page.items

@router.patch("/mark-read", response_model=OkOut, summary="將一則通知設為已讀")
async def mark_read(
    body: MarkReadIn,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = NotificationService(db)
    await service.mark_notification_as_read(body.id, current_user)
    return OkOut()

@router.patch("/mark-all-read", response_model=OkOut, summary="全部設為已讀")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = NotificationService(db)
    await service.mark_all_as_read(current_user)
    return OkOut()

@router.get("/unread-count", response_model=UnreadCountOut, summary="未讀數量")
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = NotificationService(db)
    return UnreadCountOut(count=await service.count_unread(current_user))

@router.get(
    "/my",
    response_model=List[NotificationOut],
    summary="獲取我的通知列表"
)
async def get_my_notifications(
    take: int = Query(50, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor_id: Optional[int] = Query(None, alias="cursorId"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    直接寄給當前登入者的通知 (依時間倒序)，例如 agent 收到的 QC 結果。
    前端應使用此 API 定期輪詢 (Polling)。
    """
    service = NotificationService(db)
    page = await service.get_my_notifications(current_user, take=take, cursor_id=cursor_id)
    return page.items

@router.patch(
    "/{notification_id}/read",
    response_model=OkOut,
    summary="將寄給我的通知設為已讀"
)
async def mark_my_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = NotificationService(db)
    await service.mark_my_notification_as_read(notification_id, current_user)
    return OkOut()
