# app/schemas/user_schema.py
from pydantic import BaseModel, EmailStr, Field, field_validator
import re
from typing import Optional
from app.models.user import UserRoleEnum
from app.schemas.base_schema import CamelModel

# Token 回應的格式
class Token(CamelModel):
    access_token: str
    token_type: str

# Token 內的資料
class TokenData(BaseModel):
    user_id: str
    role: str


# 註冊請求 Body
class UserCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    # 密碼要求英數混合
    password: str = Field(..., min_length=8)
    role: UserRoleEnum
    client_id: Optional[str] = None

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        """
        驗證密碼是否至少8碼且包含英文和數字
        """
        if not re.search(r'(?=.*[a-zA-Z])(?=.*[0-9])', v):
            raise ValueError('Password must contain letters and digits')
        return v

# 註冊/查詢使用者的安全回應
class UserOut(CamelModel):
    user_id: str
    name: Optional[str] = None
    email: EmailStr
    role: UserRoleEnum
    is_active: bool
    client_id: Optional[str] = None

# 聊天訊息中顯示的寄件者 (精簡)
class UserBrief(CamelModel):
    user_id: str = Field(serialization_alias="id")
    name: Optional[str] = None
    email: Optional[str] = None
