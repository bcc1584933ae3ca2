# app/utils/query_filters.py
# 將 URL query string 轉換成結構化的篩選條件

from datetime import datetime, time, timezone
from typing import Optional, Tuple
from fastapi import HTTPException, status

from app.models.notification import NotificationTypeEnum
from app.schemas.notification_schema import NotificationFilter

NOTIFICATION_TYPES = {t.value for t in NotificationTypeEnum}

# 結束日擴展到當天最後一毫秒，讓 to=2026-01-31 包含整天
END_OF_DAY = time(23, 59, 59, 999000)


def _parse_datetime(raw: str, field: str) -> datetime:
    try:
        value = datetime.fromisoformat(raw.strip())
    except ValueError:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=f"Invalid date for '{field}'")
    # 資料庫存的是 naive UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date_range(
    date_from: Optional[str],
    date_to: Optional[str]
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    解析 from / to。to 一律擴展到當天 23:59:59.999 (包含整天)。
    格式錯誤回 400。
    """
    start = _parse_datetime(date_from, "from") if date_from else None
    end = None
    if date_to:
        end = datetime.combine(_parse_datetime(date_to, "to").date(), END_OF_DAY)
    return start, end


def parse_bool_flag(raw: Optional[str]) -> Optional[bool]:
    if raw is None:
        return None
    raw = raw.strip().lower()
    if raw == "true":
        return True
    if raw == "false":
        return False
    return None


def build_notification_filter(
    is_read: Optional[str] = None,
    only_unread: Optional[str] = None,
    type: Optional[str] = None,
    q: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> NotificationFilter:
    """
    通知列表的篩選條件。

    - onlyUnread 是舊版參數 (保留相容)，等同 isRead=false；兩者同時給時以明確的 isRead 為準
    - type 不在允許清單內時直接忽略
    - q 為不分大小寫的子字串比對
    """
    read_state = parse_bool_flag(is_read)
    if read_state is None and only_unread is not None and only_unread.strip().lower() in ("1", "true"):
        read_state = False

    type_value = NotificationTypeEnum(type) if type in NOTIFICATION_TYPES else None

    text = q.strip() if q else None
    start, end = parse_date_range(date_from, date_to)

    return NotificationFilter(
        is_read=read_state,
        type=type_value,
        q=text or None,
        date_from=start,
        date_to=end,
    )
