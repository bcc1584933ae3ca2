# models/task.py
import enum
from sqlalchemy import Column, String, TEXT, INT, Float, TIMESTAMP, ForeignKey, Enum, CHAR, func
from sqlalchemy.orm import relationship
from app.core.database import Base

class TaskStatusEnum(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    paused = "paused"
    reassigned = "reassigned"
    completed = "completed"
    qc_approved = "qc_approved"

class PerformanceRatingEnum(str, enum.Enum):
    excellent = "Excellent"
    good = "Good"
    average = "Average"
    lazy = "Lazy"

class Task(Base):
    __tablename__ = "tasks"

    task_id = Column(CHAR(36), primary_key=True)
    name = Column(String(255))
    status = Column(
        Enum(TaskStatusEnum, values_callable=lambda obj: [e.value for e in obj]),
        default=TaskStatusEnum.pending,
        nullable=False,
        index=True
    )
    client_id = Column(CHAR(36), ForeignKey("clients.client_id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_to_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True)

    # 績效指標 (皆可為 NULL)
    performance_rating = Column(
        Enum(PerformanceRatingEnum, values_callable=lambda obj: [e.value for e in obj]),
        nullable=True
    )
    ideal_duration_minutes = Column(Float, nullable=True)
    actual_duration_minutes = Column(Float, nullable=True)

    # QC 審核結果
    qc_total_score = Column(INT, nullable=True)
    qc_notes = Column(TEXT, nullable=True)
    reviewer_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="tasks", lazy="selectin")
    assigned_to = relationship(
        "User",
        foreign_keys="[Task.assigned_to_id]",
        back_populates="assigned_tasks",
        lazy="selectin"
    )
    notifications = relationship(
        "Notification",
        back_populates="task",
        cascade="all, delete-orphan"
    )
