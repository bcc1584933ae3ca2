# app/routers/utils_router.py

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from typing import Optional

from app.core.security import get_current_user
from app.models.user import User
from app.services.url_check_service import check_url

router = APIRouter(
    prefix="/utils",
    tags=["Utils"]
)

@router.get("/validate-url", summary="檢查連結是否可以開啟")
async def validate_url(
    url: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
):
    """
    可以開啟回 200 {ok: true}，否則回 400 {ok: false, reason}。
    內網 / localhost 位址一律拒絕，不會發出請求。
    """
    result = await check_url(url)
    return JSONResponse(
        status_code=status.HTTP_200_OK if result.ok else status.HTTP_400_BAD_REQUEST,
        content=result.model_dump(by_alias=True, exclude_none=True),
    )
