# models/user.py
from sqlalchemy import Column, String, Boolean, Enum, CHAR, TIMESTAMP, func
from app.core.database import Base
import enum
from sqlalchemy.orm import relationship

# 對應 SQL 中的 ENUM 型別
class UserRoleEnum(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    am = "am"             # 客戶經理 (account manager)
    agent = "agent"       # 資料輸入人員
    qc = "qc"             # 品質審核
    client = "client"

class User(Base):
    __tablename__ = "users"

    # 基本欄位
    user_id = Column(CHAR(36), primary_key=True, index=True)
    name = Column(String(255))
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRoleEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    is_active = Column(Boolean, default=True)

    # 客戶帳號所屬的 Client (其他角色為 NULL)
    # 不加 FK: clients.am_id 已指向 users，兩邊都加會形成循環依賴
    client_id = Column(CHAR(36), nullable=True, index=True)
    created_at = Column(TIMESTAMP, server_default=func.now())

    # 作為 AM 時，管理的所有 Client
    managed_clients = relationship(
        "Client",
        foreign_keys="[Client.am_id]",
        back_populates="am"
    )

    # 作為 Agent 時，被指派的任務
    assigned_tasks = relationship(
        "Task",
        foreign_keys="[Task.assigned_to_id]",
        back_populates="assigned_to"
    )
