# app/schemas/task_schema.py

from pydantic import Field, field_validator
from datetime import datetime
from typing import Optional

from app.models.task import TaskStatusEnum, PerformanceRatingEnum
from app.schemas.base_schema import CamelModel

class TaskHistoryRow(CamelModel):
    """
    Agent 歷史任務列表的一列 (已正規化)
    """
    id: str
    name: str
    client_name: str
    status: str
    date: datetime
    performance_rating: Optional[str] = None
    ideal_duration_minutes: Optional[float] = None
    actual_duration_minutes: Optional[float] = None

class TaskOut(CamelModel):
    task_id: str
    name: Optional[str] = None
    status: TaskStatusEnum
    client_id: str
    assigned_to_id: Optional[str] = None
    performance_rating: Optional[PerformanceRatingEnum] = None
    ideal_duration_minutes: Optional[float] = None
    actual_duration_minutes: Optional[float] = None
    qc_total_score: Optional[int] = None
    qc_notes: Optional[str] = None
    reviewer_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

def _clamp_metric(v) -> int:
    # 手動評分: 整數 0..5，無法解析時視為 0
    try:
        n = int(v)
    except (TypeError, ValueError):
        return 0
    return max(0, min(5, n))

class TaskApproveIn(CamelModel):
    """
    QC 審核請求。六項手動評分各 0..5 (超出範圍會被夾到邊界)
    """
    performance_rating: PerformanceRatingEnum
    keyword: int = 0
    content_quality: int = 0
    image: int = 0
    seo: int = 0
    grammar: int = 0
    humanization: int = 0
    notes: Optional[str] = None

    @field_validator(
        "keyword", "content_quality", "image", "seo", "grammar", "humanization",
        mode="before"
    )
    @classmethod
    def clamp_metric(cls, v):
        return _clamp_metric(v)

class TaskStatusUpdate(CamelModel):
    status: TaskStatusEnum
