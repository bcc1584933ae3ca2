# app/models/notification.py

import enum
from sqlalchemy import Column, Integer, TEXT, BOOLEAN, CHAR, Enum, ForeignKey, TIMESTAMP, func
from sqlalchemy.orm import relationship
from app.core.database import Base

class NotificationTypeEnum(str, enum.Enum):
    general = "general"
    performance = "performance"
    frequency_missed = "frequency_missed"

class Notification(Base):
    __tablename__ = "notifications"

    notification_id = Column(Integer, primary_key=True, autoincrement=True)

    type = Column(
        Enum(NotificationTypeEnum, values_callable=lambda obj: [e.value for e in obj]),
        default=NotificationTypeEnum.general,
        nullable=False
    )
    message = Column(TEXT, nullable=False)
    is_read = Column(BOOLEAN, default=False, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now(), index=True)

    # (重要) 通知屬於某個 Task，AM 的可見範圍: task -> client -> am_id
    task_id = Column(CHAR(36), ForeignKey("tasks.task_id", ondelete="CASCADE"), nullable=False, index=True)

    # 直接收件人 (例如 QC 結果通知給 agent)，可為 NULL
    user_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=True, index=True)

    task = relationship("Task", back_populates="notifications")
    user = relationship("User")
