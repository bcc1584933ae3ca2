# app/repositories/user_repo.py
# 負責與使用者相關的資料庫操作
from typing import List, Optional, Set
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import or_
from sqlalchemy.future import select
from app.models.user import User
from app.models.client import Client

class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> User | None:
        """
        透過 email 查詢使用者
        """
        stmt = select(User).where(User.email == email)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def create_user(self, user: User) -> User:
        """
        新增使用者到資料庫
        """
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def get_user_by_id(self, user_id: str) -> User | None:
        """
        透過 user_id 查詢使用者
        """
        stmt = select(User).where(User.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_users_by_ids(self, user_ids: List[str]) -> List[User]:
        if not user_ids:
            return []
        stmt = select(User).where(User.user_id.in_(user_ids))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_client_am_id(self, client_id: Optional[str]) -> Optional[str]:
        """
        查詢某個 Client 的負責 AM
        """
        if not client_id:
            return None
        stmt = select(Client.am_id).where(Client.client_id == client_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_managed_client_ids(self, am_id: str) -> Set[str]:
        stmt = select(Client.client_id).where(Client.am_id == am_id)
        return set((await self.db.execute(stmt)).scalars().all())

    async def search_active_users(self, exclude_user_id: str, q: Optional[str] = None) -> List[User]:
        """
        啟用中的使用者 (排除自己)，可用名稱或 email 模糊搜尋，依名稱排序
        """
        stmt = select(User).where(User.is_active == True, User.user_id != exclude_user_id)
        if q:
            stmt = stmt.where(or_(
                User.name.icontains(q, autoescape=True),
                User.email.icontains(q, autoescape=True),
            ))
        stmt = stmt.order_by(User.name, User.user_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
