# app/core/config.py
# 應用程式設定 (資料庫連線字串、JWT 秘鑰、分頁上限等)
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # 資料庫設定
    DATABASE_URL: str
    SQL_ECHO: bool = False
    # JWT 設定
    JWT_SECRET_KEY: str
    # JWT 演算法
    JWT_ALGORITHM: str = "HS256"
    # 存取令牌過期時間（分鐘）
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    # 瀏覽器端 session cookie 名稱 (內容為同一組 JWT)
    SESSION_COOKIE_NAME: str = "access_token"

    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # 所有列表 API 的 take / limit 上限
    MAX_PAGE_SIZE: int = 100
    # validate-url 對外探測的逾時秒數
    URL_CHECK_TIMEOUT_SECONDS: float = 5.0

    # 環境變數檔案
    class Config:
        env_file = ".env"

# 建立設定實例
settings = Settings()
