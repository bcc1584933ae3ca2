# models/client.py
from sqlalchemy import Column, String, CHAR, ForeignKey, TIMESTAMP, func
from sqlalchemy.orm import relationship
from app.core.database import Base

class Client(Base):
    __tablename__ = "clients"

    client_id = Column(CHAR(36), primary_key=True)
    name = Column(String(255), nullable=False)
    company = Column(String(255))

    # (重要) 負責此客戶的 AM，通知的可見範圍由此推導
    am_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(TIMESTAMP, server_default=func.now())

    am = relationship(
        "User",
        foreign_keys="[Client.am_id]",
        back_populates="managed_clients"
    )
    tasks = relationship(
        "Task",
        back_populates="client",
        cascade="all, delete-orphan"
    )
