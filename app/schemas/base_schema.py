# app/schemas/base_schema.py

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """
    API 對外的 JSON 欄位一律使用 camelCase (isRead, nextCursor ...)，
    Python 端仍使用 snake_case；兩種命名在輸入時都接受。
    """
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

class OkOut(CamelModel):
    ok: bool = True
