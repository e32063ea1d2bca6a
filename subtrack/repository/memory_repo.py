from __future__ import annotations

import itertools
from datetime import date
from typing import Dict, List, Optional

from ..domain.subscription import Subscription
from ..errors import NotFound
from .base import (
    SubscriptionRepository,
    UserIdFilter,
    clamp_page,
    coerce_service_name,
    coerce_user_id,
)


class InMemorySubscriptionRepository(SubscriptionRepository):
    """基于 dict 的内存实现，语义与 SQLite 仓储一致（用于测试）"""

    def __init__(self):
        self._rows: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def create(self, sub: Subscription) -> int:
        new_id = next(self._ids)
        self._rows[new_id] = sub.model_copy(update={"id": new_id})
        return new_id

    def get(self, subscription_id: int) -> Subscription:
        row = self._rows.get(subscription_id)
        if row is None:
            raise NotFound(subscription_id)
        return row.model_copy()

    def update(self, subscription_id: int, sub: Subscription) -> None:
        if subscription_id not in self._rows:
            raise NotFound(subscription_id)
        self._rows[subscription_id] = sub.model_copy(update={"id": subscription_id})

    def delete(self, subscription_id: int) -> None:
        if self._rows.pop(subscription_id, None) is None:
            raise NotFound(subscription_id)

    def _filtered(self, user_id: UserIdFilter, service_name: Optional[str]) -> List[Subscription]:
        uid = coerce_user_id(user_id)
        name = coerce_service_name(service_name)
        out = []
        for sid in sorted(self._rows, reverse=True):
            row = self._rows[sid]
            if uid is not None and row.user_id != uid:
                continue
            if name is not None and row.service_name != name:
                continue
            out.append(row.model_copy())
        return out

    def list(
        self,
        user_id: UserIdFilter = None,
        service_name: Optional[str] = None,
        limit: int = 0,
        offset: int = 0,
    ) -> List[Subscription]:
        rows = self._filtered(user_id, service_name)
        lim, off = clamp_page(limit, offset)
        start = off or 0
        return rows[start:start + lim] if lim is not None else rows[start:]

    def list_overlapping(
        self,
        period_start: date,
        period_end: date,
        user_id: UserIdFilter = None,
        service_name: Optional[str] = None,
    ) -> List[Subscription]:
        return [
            r for r in self._filtered(user_id, service_name)
            if r.start_date <= period_end and (r.end_date is None or r.end_date >= period_start)
        ]
