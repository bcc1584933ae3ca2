# app/repositories/task_repo.py

import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.models.task import Task, TaskStatusEnum

logger = logging.getLogger(__name__)

class TaskRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_task_by_id(self, task_id: str, refresh: bool = False) -> Task | None:
        """
        透過 ID 獲取單一任務 (含 Client 與被指派人)
        """
        stmt = (
            select(Task)
            .where(Task.task_id == task_id)
            .options(selectinload(Task.client), selectinload(Task.assigned_to))
        )
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_history_for_agent(
        self,
        agent_id: str,
        statuses: List[TaskStatusEnum],
        use_created_at: bool,
        limit: int,
        name_query: Optional[str] = None
    ) -> List[Task]:
        """
        Agent 的歷史任務: 依狀態、名稱 (模糊) 篩選，依日期降序
        """
        date_column = Task.created_at if use_created_at else Task.updated_at

        stmt = (
            select(Task)
            .where(Task.assigned_to_id == agent_id, Task.status.in_(statuses))
            .options(selectinload(Task.client))
        )
        if name_query:
            stmt = stmt.where(Task.name.icontains(name_query, autoescape=True))

        stmt = stmt.order_by(date_column.desc(), Task.task_id.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def save(self, task: Task) -> Task:
        """
        寫入任務異動。
        commit 後不用 refresh()，改用 get_task_by_id() 重新抓取，確保關聯也一併載入
        """
        task_id = task.task_id
        try:
            await self.db.flush()
            await self.db.commit()
            return await self.get_task_by_id(task_id, refresh=True)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to save task {task_id}: {e}", exc_info=True)
            raise
