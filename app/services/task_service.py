# app/services/task_service.py

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, UserRoleEnum
from app.models.task import Task, TaskStatusEnum
from app.models.notification import NotificationTypeEnum
from app.repositories.task_repo import TaskRepository
from app.schemas.task_schema import TaskApproveIn, TaskHistoryRow, TaskStatusUpdate
from app.services.notification_service import NotificationService
from app.utils.task_scoring import compute_qc_total

logger = logging.getLogger(__name__)

# 歷史列表只允許這兩種狀態
HISTORY_STATUSES = (TaskStatusEnum.qc_approved, TaskStatusEnum.completed)

# 可查看任何 agent 歷史的角色
HISTORY_VIEWER_ROLES = {UserRoleEnum.admin, UserRoleEnum.manager, UserRoleEnum.qc, UserRoleEnum.am}

# 可直接改任何任務狀態的角色
STATUS_EDITOR_ROLES = {UserRoleEnum.admin, UserRoleEnum.manager}

# qc_approved 只能由 QC 流程 (或管理者) 設定，agent 不能自己標記
QC_STATUS_ROLES = {UserRoleEnum.qc, UserRoleEnum.admin, UserRoleEnum.manager}


def parse_history_statuses(raw: Optional[str]) -> List[TaskStatusEnum]:
    """
    解析 status=csv。只保留允許的狀態，全部無效或空白時回到預設 (兩種都要)。
    """
    allowed = {s.value: s for s in HISTORY_STATUSES}
    requested = [s.strip().lower() for s in (raw or "").split(",") if s.strip()]
    statuses = [allowed[s] for s in requested if s in allowed]
    return statuses or list(HISTORY_STATUSES)


class TaskService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = TaskRepository(db)
        self.notification_service = NotificationService(db)

    async def get_agent_history(
        self,
        agent_id: str,
        user: User,
        limit: int,
        date_field: Optional[str] = None,
        status_csv: Optional[str] = None,
        q: Optional[str] = None
    ) -> List[TaskHistoryRow]:
        """
        Agent 已完成 / 已審核的任務歷史 (正規化後的列)
        """
        if user.user_id != agent_id and user.role not in HISTORY_VIEWER_ROLES:
            # 不透露該 agent 是否存在
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Not found")

        use_created_at = date_field == "created"
        tasks = await self.repo.list_history_for_agent(
            agent_id=agent_id,
            statuses=parse_history_statuses(status_csv),
            use_created_at=use_created_at,
            limit=limit,
            name_query=q.strip() if q else None,
        )

        return [
            TaskHistoryRow(
                id=str(t.task_id),
                name=t.name or "(Untitled Task)",
                client_name=t.client.name if t.client else "-",
                status=t.status.value,
                date=t.created_at if use_created_at else t.updated_at,
                performance_rating=t.performance_rating.value if t.performance_rating else None,
                ideal_duration_minutes=t.ideal_duration_minutes,
                actual_duration_minutes=t.actual_duration_minutes,
            )
            for t in tasks
        ]

    async def approve_task(self, task_id: str, review: TaskApproveIn, reviewer: User) -> Task:
        """
        QC 審核通過: 計算分數、更新任務、通知被指派的 agent
        """
        task = await self.repo.get_task_by_id(task_id)
        if not task:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Task not found")

        total = compute_qc_total(
            review.performance_rating,
            review.keyword,
            review.content_quality,
            review.image,
            review.seo,
            review.grammar,
            review.humanization,
        )

        task.status = TaskStatusEnum.qc_approved
        task.performance_rating = review.performance_rating
        task.qc_total_score = total
        task.qc_notes = review.notes
        task.reviewer_id = reviewer.user_id
        task.reviewed_at = datetime.now(timezone.utc).replace(tzinfo=None)
        task = await self.repo.save(task)
        logger.info(f"Task {task_id} approved by {reviewer.user_id}, score {total}")

        if task.assigned_to_id:
            owner = task.assigned_to.name if task.assigned_to and task.assigned_to.name else "Your"
            await self.notification_service.create_notification(
                task_id=task.task_id,
                type=NotificationTypeEnum.performance,
                user_id=task.assigned_to_id,
                message=(
                    f'{owner} task "{task.name}" has been QC approved. '
                    f"Rating: {review.performance_rating.value}. Score: {total}%."
                ),
            )
        return task

    async def update_status(self, task_id: str, update: TaskStatusUpdate, user: User) -> Task:
        """
        更新任務狀態，並通知該 Client 的 AM
        """
        task = await self.repo.get_task_by_id(task_id)
        if not task or (task.assigned_to_id != user.user_id and user.role not in STATUS_EDITOR_ROLES):
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Task not found")
        if update.status == TaskStatusEnum.qc_approved and user.role not in QC_STATUS_ROLES:
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Use the QC approve flow")

        task.status = update.status
        task = await self.repo.save(task)
        logger.info(f"Task {task_id} status -> {update.status.value} by {user.user_id}")

        actor = task.assigned_to.name if task.assigned_to and task.assigned_to.name else "An agent"
        if update.status == TaskStatusEnum.completed:
            notif_type = NotificationTypeEnum.performance
            message = f'{actor} completed task "{task.name}".'
        else:
            notif_type = NotificationTypeEnum.general
            message = f'{actor} updated task "{task.name}" → {update.status.value}.'

        await self.notification_service.create_notification(
            task_id=task.task_id,
            type=notif_type,
            message=message,
            user_id=task.client.am_id if task.client else None,
        )
        return task
