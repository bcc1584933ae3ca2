# app/schemas/notification_schema.py

from pydantic import AliasChoices, BaseModel, Field
from datetime import datetime
from typing import Optional

from app.models.notification import NotificationTypeEnum
from app.schemas.base_schema import CamelModel

class NotificationOut(CamelModel):
    """
    用於 API 回傳的通知格式
    """
    id: int = Field(validation_alias=AliasChoices("notification_id", "id"))
    type: NotificationTypeEnum
    message: str
    is_read: bool
    created_at: datetime
    task_id: str
    user_id: Optional[str] = None

class MarkReadIn(CamelModel):
    id: int = Field(..., gt=0)

class UnreadCountOut(CamelModel):
    count: int

class NotificationFilter(BaseModel):
    """
    由 query string 轉換後的篩選條件 (不含租戶範圍，那一段由 Repository 強制加上)
    """
    is_read: Optional[bool] = None
    type: Optional[NotificationTypeEnum] = None
    q: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
