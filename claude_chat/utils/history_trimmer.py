"""有界集合的裁剪策略。

会话历史和 UI 消息控件都会随着长会话不断增长，这里提供统一的 FIFO 裁剪：
超过上限时从头部移除最旧的元素，只保留最近的 trim_to_count 个。
"""

from typing import Callable, MutableSequence, Optional, TypeVar

T = TypeVar("T")


def calculate_items_to_remove(current_count: int, max_count: int, trim_to_count: int) -> int:
    """计算需要移除的元素数量；不需要裁剪时返回 0。"""

    if max_count <= 0 or current_count <= max_count:
        return 0
    trim_to_count = min(max(trim_to_count, 0), max_count)
    return current_count - trim_to_count


def trim_if_needed(items: Optional[MutableSequence[T]], max_count: int, trim_to_count: int) -> bool:
    """超过 max_count 时移除最旧的元素，只保留最近的 trim_to_count 个。

    Args:
        items: 被原地裁剪的序列。
        max_count: 允许的最大长度，<= 0 表示不限制。
        trim_to_count: 裁剪后的目标长度，会被限制在 [0, max_count] 之间。

    Returns:
        是否发生了裁剪。
    """

    if items is None:
        return False
    to_remove = calculate_items_to_remove(len(items), max_count, trim_to_count)
    if to_remove <= 0:
        return False
    del items[:to_remove]
    return True


def trim_resources_if_needed(
    items: Optional[MutableSequence[T]],
    max_count: int,
    trim_to_count: int,
    release: Callable[[T], None],
) -> bool:
    """与 trim_if_needed 相同的策略，但在移除前对每个被淘汰的元素调用 release。

    用于 UI 控件等外部持有的资源，保证裁剪不会造成资源泄漏。None 元素直接跳过。
    """

    if items is None:
        return False
    to_remove = calculate_items_to_remove(len(items), max_count, trim_to_count)
    if to_remove <= 0:
        return False
    for item in items[:to_remove]:
        if item is not None:
            release(item)
    del items[:to_remove]
    return True
