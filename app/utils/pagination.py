# app/utils/pagination.py
# 游標 (cursor) 分頁: 從上一頁最後一筆之後繼續，而不是用 offset

from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Sequence, TypeVar
import logging

from fastapi import HTTPException, status
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T]
    next_cursor: Optional[Any] = None


async def paginate(
    db: AsyncSession,
    stmt: Select,
    order_column,
    id_column,
    take: int,
    cursor_id: Optional[Any] = None,
    descending: bool = True,
    cursor_scope: Sequence = (),
) -> Page:
    """
    依 (order_column, id_column) 排序並取出 take 筆。

    - 有 cursor_id 時，只回傳排序上嚴格位於該列之後的資料
    - 游標列以主鍵加上 cursor_scope (租戶或對話範圍) 查找，不套用其他篩選條件，
      所以翻頁之間該列被修改 (例如被標記已讀) 仍可當作游標
    - 範圍外的 id 與不存在的 id 一樣回 400，無法藉此探知其他租戶的資料
    - 游標不存在時回 400，不會默默回傳空頁
    - 回傳筆數等於 take 時，next_cursor 為最後一筆的 id
    """
    if cursor_id is not None:
        cursor_stmt = select(order_column, id_column).where(id_column == cursor_id, *cursor_scope)
        cursor_row = (await db.execute(cursor_stmt)).first()
        if cursor_row is None:
            logger.info(f"Unknown cursor {cursor_id} for {id_column}")
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid cursor")

        cursor_value, cursor_key = cursor_row
        if descending:
            after = or_(
                order_column < cursor_value,
                and_(order_column == cursor_value, id_column < cursor_key),
            )
        else:
            after = or_(
                order_column > cursor_value,
                and_(order_column == cursor_value, id_column > cursor_key),
            )
        stmt = stmt.where(after)

    if descending:
        stmt = stmt.order_by(order_column.desc(), id_column.desc())
    else:
        stmt = stmt.order_by(order_column.asc(), id_column.asc())

    result = await db.execute(stmt.limit(take))
    items = list(result.scalars().unique().all())

    next_cursor = None
    if len(items) == take and items:
        next_cursor = getattr(items[-1], id_column.key)

    return Page(items=items, next_cursor=next_cursor)
