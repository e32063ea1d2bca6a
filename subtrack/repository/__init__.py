"""
订阅数据访问层
负责订阅的持久化（SQLite / 内存两种实现），SQL 只出现在这一层
"""
from __future__ import annotations

from .base import MAX_LIST_LIMIT, SubscriptionRepository
from .memory_repo import InMemorySubscriptionRepository
from .subscription_repo import SqliteSubscriptionRepository

__all__ = [
    "MAX_LIST_LIMIT",
    "SubscriptionRepository",
    "InMemorySubscriptionRepository",
    "SqliteSubscriptionRepository",
]
