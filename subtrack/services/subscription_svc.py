from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ..domain.months import format_month_year, month_start
from ..domain.subscription import Subscription
from ..errors import NotFound, SubtrackError
from ..logs import ENTITY_SUBSCRIPTION, LogContext, decode_log_row, search_logs
from ..repository.base import SubscriptionRepository, UserIdFilter
from ..repository.subscription_repo import SqliteSubscriptionRepository
from .billing_svc import PeriodCostAggregator

logger = logging.getLogger(__name__)


def get_repository() -> SubscriptionRepository:
    return SqliteSubscriptionRepository()


def to_dict(sub: Subscription) -> dict:
    """对外输出格式：月份统一为 MM-YYYY，end_date 为空表示仍在订阅。"""
    return {
        "id": sub.id,
        "service_name": sub.service_name,
        "price": sub.price,
        "user_id": str(sub.user_id),
        "start_date": format_month_year(sub.start_date),
        "end_date": format_month_year(sub.end_date) if sub.end_date is not None else None,
    }


def create_subscription(sub: Subscription, log: LogContext, repo: SubscriptionRepository | None = None) -> Subscription:
    repo = repo or get_repository()
    log.set_payload(to_dict(sub))
    try:
        new_id = repo.create(sub)
    except SubtrackError as e:
        logger.error("create subscription failed: %s", e)
        log.write("ERROR", str(e))
        raise
    created = sub.model_copy(update={"id": new_id})
    log.set_entity(ENTITY_SUBSCRIPTION, new_id)
    log.set_after(to_dict(created))
    log.write("OK")
    return created


def get_subscription(subscription_id: int, repo: SubscriptionRepository | None = None) -> Subscription:
    repo = repo or get_repository()
    return repo.get(subscription_id)


def update_subscription(
    subscription_id: int, sub: Subscription, log: LogContext, repo: SubscriptionRepository | None = None
) -> Subscription:
    """整行替换；不存在时抛 NotFound，且不写入任何变更。"""
    repo = repo or get_repository()
    log.set_entity(ENTITY_SUBSCRIPTION, subscription_id)
    log.set_payload(to_dict(sub))
    try:
        before = repo.get(subscription_id)
        log.set_before(to_dict(before))
        repo.update(subscription_id, sub)
    except NotFound as e:
        logger.warning("update subscription %s: not found", subscription_id)
        log.write("ERROR", str(e))
        raise
    except SubtrackError as e:
        logger.error("update subscription %s failed: %s", subscription_id, e)
        log.write("ERROR", str(e))
        raise
    updated = sub.model_copy(update={"id": subscription_id})
    log.set_after(to_dict(updated))
    log.write("OK")
    return updated


def delete_subscription(subscription_id: int, log: LogContext, repo: SubscriptionRepository | None = None) -> None:
    repo = repo or get_repository()
    log.set_entity(ENTITY_SUBSCRIPTION, subscription_id)
    try:
        repo.delete(subscription_id)
    except NotFound as e:
        logger.warning("delete subscription %s: not found", subscription_id)
        log.write("ERROR", str(e))
        raise
    except SubtrackError as e:
        logger.error("delete subscription %s failed: %s", subscription_id, e)
        log.write("ERROR", str(e))
        raise
    log.write("OK")


def total_cost(
    period_start: date,
    period_end: date,
    user_id: UserIdFilter = None,
    service_name: Optional[str] = None,
    repo: SubscriptionRepository | None = None,
) -> int:
    repo = repo or get_repository()
    return PeriodCostAggregator(repo).total_for_period(period_start, period_end, user_id, service_name)


def list_subscriptions(
    user_id: UserIdFilter = None,
    service_name: Optional[str] = None,
    limit: int = 0,
    offset: int = 0,
    today: date | None = None,
    repo: SubscriptionRepository | None = None,
) -> dict:
    """
    分页查询订阅，并附带当月总费用：
    - items: 按 id 倒序
    - total: 与 items 相同过滤条件下，today 所在月份的费用合计
    负数 limit/offset 按 0 处理。
    """
    repo = repo or get_repository()
    if limit < 0:
        limit = 0
    if offset < 0:
        offset = 0

    items = repo.list(user_id, service_name, limit, offset)
    month = month_start(today or date.today())
    total = PeriodCostAggregator(repo).total_for_period(month, month, user_id, service_name)
    return {"items": [to_dict(s) for s in items], "total": total}


def subscription_history(
    subscription_id: int, page: int = 1, size: int = 20, db_path: str | None = None
) -> tuple[int, list[dict]]:
    """某个订阅的审计记录（新在前），before/after/payload 已解码。"""
    total, rows = search_logs(
        page=page,
        size=size,
        entity_type=ENTITY_SUBSCRIPTION,
        entity_id=subscription_id,
        db_path=db_path,
    )
    return total, [decode_log_row(r) for r in rows]
