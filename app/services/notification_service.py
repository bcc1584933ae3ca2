# app/services/notification_service.py

from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status
from typing import Optional

from app.models.user import User
from app.models.notification import Notification, NotificationTypeEnum
from app.repositories.notification_repo import NotificationRepository
from app.schemas.notification_schema import NotificationFilter
from app.utils.pagination import Page

import logging

logger = logging.getLogger(__name__)

class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = NotificationRepository(db)

    async def create_notification(
        self,
        task_id: str,
        type: NotificationTypeEnum,
        message: str,
        user_id: Optional[str] = None
    ) -> Notification:
        """
        (內部使用) 供其他 Service 呼叫的介面，例如任務狀態變更、QC 審核
        """
        new_notification = Notification(
            task_id=task_id,
            type=type,
            message=message,
            user_id=user_id,
            is_read=False
        )
        logger.info(f"Creating {type.value} notification for task {task_id}, recipient {user_id}")
        return await self.repo.create_notification(new_notification)

    async def list_notifications(
        self,
        user: User,
        filters: NotificationFilter,
        take: int,
        cursor_id: Optional[int] = None,
        sort: str = "desc"
    ) -> Page:
        """
        (API 用) 當前 AM 可見的通知列表
        """
        return await self.repo.list_for_am(
            am_id=user.user_id,
            filters=filters,
            take=take,
            cursor_id=cursor_id,
            descending=sort != "asc",
        )

    async def get_my_notifications(self, user: User, take: int, cursor_id: Optional[int] = None) -> Page:
        """
        (API 用) 直接寄給當前登入者的通知
        """
        return await self.repo.list_for_recipient(user.user_id, take=take, cursor_id=cursor_id)

    async def mark_notification_as_read(self, notification_id: int, user: User) -> None:
        """
        (API 用) 將通知設為已讀。
        不屬於呼叫者的通知一律回 404 (不透露是否存在)。重複呼叫不會出錯。
        """
        if not await self.repo.mark_read_for_am(notification_id, user.user_id):
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Not found")
        logger.info(f"User {user.user_id} marked notification {notification_id} as read")

    async def mark_my_notification_as_read(self, notification_id: int, user: User) -> None:
        if not await self.repo.mark_read_for_recipient(notification_id, user.user_id):
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Not found")

    async def mark_all_as_read(self, user: User) -> int:
        updated = await self.repo.mark_all_read_for_am(user.user_id)
        logger.info(f"User {user.user_id} marked {updated} notifications as read")
        return updated

    async def count_unread(self, user: User) -> int:
        return await self.repo.count_unread_for_am(user.user_id)
