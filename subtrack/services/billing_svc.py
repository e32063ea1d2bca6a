"""
周期费用计算 - 按月粒度将订阅的活跃区间与查询周期求交，累计 price × 重叠月数。

SQL 只做粗筛（可能有交集的订阅），精确的月份重叠在这里计算。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from ..domain.months import OPEN_END, month_end, month_start, months_overlap
from ..domain.subscription import Subscription
from ..repository.base import SubscriptionRepository, UserIdFilter, coerce_user_id


@dataclass
class CostLine:
    """单个订阅在周期内的费用贡献"""
    subscription: Subscription
    months: int
    amount: int


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


class PeriodCostAggregator:
    def __init__(self, repo: SubscriptionRepository):
        self.repo = repo

    def breakdown_for_period(
        self,
        period_start: date,
        period_end: date,
        user_id: UserIdFilter = None,
        service_name: Optional[str] = None,
    ) -> List[CostLine]:
        # 先校验过滤条件，再访问存储
        uid = coerce_user_id(user_id)
        # 周期本身倒置（按原始日期判断，早于月份归一化）：不计费
        if _as_date(period_end) < _as_date(period_start):
            return []
        start = month_start(period_start)
        # period_end 覆盖其所在整月
        effective_end = month_end(period_end)

        candidates = self.repo.list_overlapping(start, effective_end, uid, service_name)
        lines: List[CostLine] = []
        for sub in candidates:
            sub_end = sub.end_date if sub.end_date is not None else OPEN_END
            months = months_overlap(sub.start_date, sub_end, start, effective_end)
            lines.append(CostLine(subscription=sub, months=months, amount=sub.price * months))
        return lines

    def total_for_period(
        self,
        period_start: date,
        period_end: date,
        user_id: UserIdFilter = None,
        service_name: Optional[str] = None,
    ) -> int:
        """
        计算 [period_start, period_end] 内活跃订阅的总费用（按月，两端均包含）。

        user_id 格式错误抛 InvalidFilter；存储失败抛 PersistenceError。
        """
        lines = self.breakdown_for_period(period_start, period_end, user_id, service_name)
        return sum(line.amount for line in lines)
