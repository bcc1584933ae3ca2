# app/utils/reactions.py

from typing import Iterable, List, Tuple

from app.schemas.chat_schema import ReactionGroup


def aggregate_reactions(rows: Iterable[Tuple[str, str]]) -> List[ReactionGroup]:
    """
    將 (emoji, user_id) 的扁平列表彙總成每個 emoji 一組，
    保留 emoji 第一次出現的順序。
    """
    groups = {}
    for emoji, user_id in rows:
        if emoji not in groups:
            groups[emoji] = ReactionGroup(emoji=emoji, count=0, user_ids=[])
        group = groups[emoji]
        group.count += 1
        group.user_ids.append(user_id)
    # dict 保留插入順序
    return list(groups.values())
