# app/schemas/utils_schema.py

from typing import Optional
from app.schemas.base_schema import CamelModel

class UrlCheckOut(CamelModel):
    ok: bool
    reason: Optional[str] = None
