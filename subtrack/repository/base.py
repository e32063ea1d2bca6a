"""
订阅仓储接口
定义各存储实现必须遵守的契约，以及共用的过滤条件归一化（保证 SQL 与内存实现语义一致）
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Union
from uuid import UUID

from ..domain.subscription import Subscription
from ..errors import InvalidFilter

MAX_LIST_LIMIT = 1000

UserIdFilter = Union[UUID, str, None]


def coerce_user_id(user_id: UserIdFilter) -> Optional[UUID]:
    """None / "" 表示不过滤；格式错误的字符串抛 InvalidFilter"""
    if user_id is None:
        return None
    if isinstance(user_id, UUID):
        return user_id
    text = str(user_id).strip()
    if not text:
        return None
    try:
        return UUID(text)
    except ValueError as e:
        raise InvalidFilter("user_id", user_id) from e


def coerce_service_name(service_name: Optional[str]) -> Optional[str]:
    return service_name if service_name else None


def clamp_page(limit: int, offset: int) -> tuple[Optional[int], Optional[int]]:
    """把调用方的分页参数映射为 (limit, offset)，None 表示不生效"""
    lim = min(limit, MAX_LIST_LIMIT) if limit and limit > 0 else None
    off = offset if offset and offset > 0 else None
    return lim, off


class SubscriptionRepository(ABC):
    """
    订阅持久化契约

    只抛 subtrack.errors 中的 NotFound / PersistenceError / InvalidFilter；
    本层不记日志、不重试。
    """

    @abstractmethod
    def create(self, sub: Subscription) -> int:
        """插入除 id 外的全部字段，返回存储分配的 id"""

    @abstractmethod
    def get(self, subscription_id: int) -> Subscription:
        """按主键获取，不存在抛 NotFound"""

    @abstractmethod
    def update(self, subscription_id: int, sub: Subscription) -> None:
        """单条语句整行替换 subscription_id 的可变字段"""

    @abstractmethod
    def delete(self, subscription_id: int) -> None:
        """删除记录，未删除任何行时抛 NotFound"""

    @abstractmethod
    def list(
        self,
        user_id: UserIdFilter = None,
        service_name: Optional[str] = None,
        limit: int = 0,
        offset: int = 0,
    ) -> List[Subscription]:
        """
        精确匹配过滤（AND），按 id 倒序。

        limit 上限为 MAX_LIST_LIMIT；limit <= 0 表示不限条数，offset <= 0 表示不跳过。
        无结果时返回空列表。
        """

    @abstractmethod
    def list_overlapping(
        self,
        period_start: date,
        period_end: date,
        user_id: UserIdFilter = None,
        service_name: Optional[str] = None,
    ) -> List[Subscription]:
        """
        粗筛可能与 [period_start, period_end] 有交集的订阅：
        start_date <= period_end 且 (end_date 为空 或 end_date >= period_start)
        """

    def with_timeout(self, seconds: Optional[float]) -> "SubscriptionRepository":
        """返回绑定了语句超时的仓储；不支持超时的实现直接返回 self"""
        return self
