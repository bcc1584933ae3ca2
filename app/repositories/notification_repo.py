# app/repositories/notification_repo.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from typing import Optional
import logging

from app.models.notification import Notification
from app.models.task import Task
from app.models.client import Client
from app.schemas.notification_schema import NotificationFilter
from app.utils.pagination import Page, paginate

logger = logging.getLogger(__name__)

def _managed_task_ids(am_id: str):
    """
    (重要) 租戶範圍: AM 只能看到「自己負責的 Client」底下的任務通知。
    所有 AM 查詢都必須套用，呼叫端無法覆寫。
    """
    return (
        select(Task.task_id)
        .join(Client, Client.client_id == Task.client_id)
        .where(Client.am_id == am_id)
    )

class NotificationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_notification(self, notification: Notification) -> Notification:
        """
        新增一筆通知
        """
        try:
            self.db.add(notification)
            await self.db.flush()
            await self.db.refresh(notification)
            await self.db.commit()
            return notification
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create notification: {e}", exc_info=True)
            raise

    async def list_for_am(
        self,
        am_id: str,
        filters: NotificationFilter,
        take: int,
        cursor_id: Optional[int] = None,
        descending: bool = True,
    ) -> Page:
        """
        AM 的通知列表 (篩選 + 游標分頁)
        """
        tenant_scope = Notification.task_id.in_(_managed_task_ids(am_id))
        stmt = select(Notification).where(tenant_scope)

        if filters.is_read is not None:
            stmt = stmt.where(Notification.is_read == filters.is_read)
        if filters.type is not None:
            stmt = stmt.where(Notification.type == filters.type)
        if filters.q:
            stmt = stmt.where(Notification.message.icontains(filters.q, autoescape=True))
        if filters.date_from is not None:
            stmt = stmt.where(Notification.created_at >= filters.date_from)
        if filters.date_to is not None:
            stmt = stmt.where(Notification.created_at <= filters.date_to)

        return await paginate(
            self.db,
            stmt,
            order_column=Notification.created_at,
            id_column=Notification.notification_id,
            take=take,
            cursor_id=cursor_id,
            descending=descending,
            cursor_scope=[tenant_scope],
        )

    async def list_for_recipient(self, user_id: str, take: int, cursor_id: Optional[int] = None) -> Page:
        """
        直接寄給某位使用者的通知 (依時間降序排列)
        """
        recipient_scope = Notification.user_id == user_id
        stmt = select(Notification).where(recipient_scope)
        return await paginate(
            self.db,
            stmt,
            order_column=Notification.created_at,
            id_column=Notification.notification_id,
            take=take,
            cursor_id=cursor_id,
            cursor_scope=[recipient_scope],
        )

    async def mark_read_for_am(self, notification_id: int, am_id: str) -> bool:
        """
        將單一通知設為已讀。權限檢查與更新在同一個 UPDATE 中完成。
        回傳 False 代表找不到 (或不屬於該 AM)。
        """
        stmt = (
            update(Notification)
            .where(
                Notification.notification_id == notification_id,
                Notification.task_id.in_(_managed_task_ids(am_id)),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount > 0

    async def mark_read_for_recipient(self, notification_id: int, user_id: str) -> bool:
        stmt = (
            update(Notification)
            .where(
                Notification.notification_id == notification_id,
                Notification.user_id == user_id,
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount > 0

    async def mark_all_read_for_am(self, am_id: str) -> int:
        stmt = (
            update(Notification)
            .where(
                Notification.is_read == False,
                Notification.task_id.in_(_managed_task_ids(am_id)),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount

    async def count_unread_for_am(self, am_id: str) -> int:
        stmt = (
            select(func.count(Notification.notification_id))
            .where(
                Notification.is_read == False,
                Notification.task_id.in_(_managed_task_ids(am_id)),
            )
        )
        return (await self.db.execute(stmt)).scalar_one()
