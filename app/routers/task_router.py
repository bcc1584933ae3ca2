# app/routers/task_router.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.security import get_current_user, require_roles
from app.models.user import User, UserRoleEnum
from app.schemas.task_schema import TaskApproveIn, TaskHistoryRow, TaskOut, TaskStatusUpdate
from app.services.task_service import TaskService

router = APIRouter(
    prefix="/tasks",
    tags=["Tasks"]
)

@router.get(
    "/history/{agent_id}",
    response_model=List[TaskHistoryRow],
    summary="Agent 的任務歷史"
)
async def get_agent_history(
    agent_id: str,
    limit: int = Query(settings.MAX_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    date: Optional[str] = Query(None, description="created 或 updated (預設)"),
    status: Optional[str] = Query(None, description="逗號分隔: qc_approved,completed"),
    q: Optional[str] = Query(None),
    name: Optional[str] = Query(None, description="舊參數，同 q"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    只列出已完成 / QC 已審核的任務，依日期倒序。
    本人以外只有 admin / manager / qc / am 可以查看。
    """
    service = TaskService(db)
    return await service.get_agent_history(
        agent_id=agent_id,
        user=current_user,
        limit=limit,
        date_field=date,
        status_csv=status,
        q=q if q is not None else name,
    )

@router.put(
    "/{task_id}/approve",
    response_model=TaskOut,
    summary="QC 審核通過"
)
async def approve_task(
    task_id: str,
    review: TaskApproveIn,
    current_user: User = Depends(require_roles(UserRoleEnum.qc, UserRoleEnum.admin, UserRoleEnum.manager)),
    db: AsyncSession = Depends(get_db)
):
    service = TaskService(db)
    return await service.approve_task(task_id, review, current_user)

@router.patch(
    "/{task_id}/status",
    response_model=TaskOut,
    summary="更新任務狀態"
)
async def update_task_status(
    task_id: str,
    update: TaskStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    被指派的 agent 或 admin / manager 可以更新，並會通知該 Client 的 AM
    """
    service = TaskService(db)
    return await service.update_status(task_id, update, current_user)
