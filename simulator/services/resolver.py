"""识别用户输入 / 对话历史中所指的端点"""

import logging
from typing import Callable, List, Optional, Sequence

from ..models.ai import ChatMessage, MessageRole
from ..models.mapping import RequestMapping

logger = logging.getLogger(__name__)


def _path_of(mapping: RequestMapping) -> Optional[str]:
    return mapping.request.path.lower() if mapping.request and mapping.request.path else None


def _name_of(mapping: RequestMapping) -> Optional[str]:
    return mapping.name.lower() if mapping.name else None


def _id_of(mapping: RequestMapping) -> Optional[str]:
    return mapping.id.lower() if mapping.id else None


# 优先级：路径 > 名称 > ID，前一种命中即返回，不跨策略打分
STRATEGIES: List[tuple] = [
    ("path", _path_of),
    ("name", _name_of),
    ("id", _id_of),
]


def _match_text(text: str, mappings: Sequence[RequestMapping]) -> Optional[RequestMapping]:
    lowered = text.lower()
    for label, key in STRATEGIES:
        hits = _hits(lowered, mappings, key)
        if hits:
            if len(hits) > 1:
                logger.warning(
                    f"多个端点同时按{label}命中，取存储顺序第一个: "
                    f"{', '.join(m.name for m in hits)}"
                )
            logger.info(f"按{label}识别到端点: {hits[0].name} ({hits[0].id})")
            return hits[0]
    return None


def _hits(text: str, mappings: Sequence[RequestMapping], key: Callable) -> List[RequestMapping]:
    hits = []
    for mapping in mappings:
        value = key(mapping)
        if value and value in text:
            hits.append(mapping)
    return hits


def resolve(prompt: str, mappings: Sequence[RequestMapping]) -> Optional[RequestMapping]:
    """从当前输入识别端点；只有一个端点时直接返回它"""
    if not mappings:
        return None

    found = _match_text(prompt or "", mappings)
    if found is not None:
        return found

    if len(mappings) == 1:
        logger.info(f"工作区只有一个端点，默认使用: {mappings[0].name}")
        return mappings[0]
    return None


def resolve_from_history(turns: Sequence[ChatMessage], mappings: Sequence[RequestMapping]) -> Optional[RequestMapping]:
    """从对话历史识别端点（由新到旧），不使用单端点兜底"""
    if not turns or not mappings:
        return None

    for index in range(len(turns) - 1, -1, -1):
        found = _match_text(turns[index].content, mappings)
        if found is not None:
            logger.info(f"在对话历史第 {index + 1} 条消息中找到端点: {found.name}")
            return found
    return None


def resolve_target(
    prompt: str,
    history: Sequence[ChatMessage],
    mappings: Sequence[RequestMapping],
) -> Optional[RequestMapping]:
    """先看当前输入，未命中且有历史时再看历史"""
    target = resolve(prompt, mappings)
    if target is None and history:
        target = resolve_from_history(history, mappings)
    return target


def mentions_explicitly(prompt: str, mappings: Sequence[RequestMapping]) -> bool:
    """输入中是否直接写出了某个端点的路径或名称"""
    lowered = (prompt or "").lower()
    return bool(_hits(lowered, mappings, _path_of) or _hits(lowered, mappings, _name_of))


def find_mentioned(
    turns: Sequence[ChatMessage],
    mappings: Sequence[RequestMapping],
    window: int = 3,
) -> List[RequestMapping]:
    """最近 window 条 assistant 消息中提到（名称或路径）的全部端点，按存储顺序"""
    recent = [turn.content.lower() for turn in turns if turn.role == MessageRole.ASSISTANT][-window:]
    if not recent:
        return []

    mentioned = []
    for mapping in mappings:
        name, path = _name_of(mapping), _path_of(mapping)
        if any((name and name in text) or (path and path in text) for text in recent):
            mentioned.append(mapping)
    return mentioned
