from __future__ import annotations

import copy
import sqlite3
import time
from datetime import date
from sqlite3 import Connection
from typing import Callable, List, Optional, TypeVar
from uuid import UUID

from pydantic import ValidationError

from ..db import get_conn, get_query_timeout
from ..domain.subscription import Subscription
from ..errors import NotFound, PersistenceError
from .base import (
    SubscriptionRepository,
    UserIdFilter,
    clamp_page,
    coerce_service_name,
    coerce_user_id,
)
from .query import SelectBuilder

T = TypeVar("T")

TABLE = "subscriptions"
COLUMNS = ("id", "service_name", "price", "user_id", "start_date", "end_date")

# progress handler 每执行 N 条 VM 指令检查一次超时
_PROGRESS_STEPS = 1000


def _month_param(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None


def _row_to_sub(row: sqlite3.Row) -> Subscription:
    return Subscription(
        id=int(row["id"]),
        service_name=row["service_name"],
        price=int(row["price"]),
        user_id=UUID(row["user_id"]),
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]) if row["end_date"] else None,
    )


def _write_params(sub: Subscription) -> tuple:
    return (
        sub.service_name,
        sub.price,
        str(sub.user_id),
        _month_param(sub.start_date),
        _month_param(sub.end_date),
    )


def _apply_filters(sb: SelectBuilder, user_id: UserIdFilter, service_name: Optional[str]) -> SelectBuilder:
    uid = coerce_user_id(user_id)
    name = coerce_service_name(service_name)
    if uid is not None:
        sb.equal("user_id", str(uid))
    if name is not None:
        sb.equal("service_name", name)
    return sb


class SqliteSubscriptionRepository(SubscriptionRepository):
    """
    SQLite 实现。每次调用打开独立连接，单条语句完成读写。

    timeout: 语句超时（秒），None 表示读取配置（配置为 0 则不限制）。
    超时后语句被中断，以 PersistenceError 抛出。
    """

    def __init__(self, db_path: str | None = None, timeout: float | None = None):
        self.db_path = db_path
        self.timeout = timeout if timeout is not None else get_query_timeout()

    def with_timeout(self, seconds: Optional[float]) -> "SqliteSubscriptionRepository":
        repo = copy.copy(self)
        repo.timeout = seconds if seconds and seconds > 0 else None
        return repo

    def _run(self, operation: str, fn: Callable[[Connection], T]) -> T:
        try:
            with get_conn(self.db_path) as conn:
                if self.timeout:
                    deadline = time.monotonic() + self.timeout
                    conn.set_progress_handler(lambda: int(time.monotonic() > deadline), _PROGRESS_STEPS)
                return fn(conn)
        except sqlite3.Error as e:
            raise PersistenceError(operation) from e
        except (ValueError, ValidationError) as e:
            # 库中存在无法解析的行（UUID / 日期 / 字段约束）
            raise PersistenceError(operation) from e

    def create(self, sub: Subscription) -> int:
        def op(conn: Connection) -> int:
            cur = conn.execute(
                "INSERT INTO subscriptions(service_name, price, user_id, start_date, end_date) "
                "VALUES(?,?,?,?,?)",
                _write_params(sub),
            )
            return int(cur.lastrowid)

        return self._run("create", op)

    def get(self, subscription_id: int) -> Subscription:
        def op(conn: Connection) -> Subscription:
            sql, params = SelectBuilder(TABLE, COLUMNS).equal("id", subscription_id).build()
            row = conn.execute(sql, params).fetchone()
            if row is None:
                raise NotFound(subscription_id)
            return _row_to_sub(row)

        return self._run("get", op)

    def update(self, subscription_id: int, sub: Subscription) -> None:
        def op(conn: Connection) -> None:
            cur = conn.execute(
                "UPDATE subscriptions SET service_name=?, price=?, user_id=?, start_date=?, end_date=? "
                "WHERE id=?",
                (*_write_params(sub), subscription_id),
            )
            if cur.rowcount == 0:
                raise NotFound(subscription_id)

        self._run("update", op)

    def delete(self, subscription_id: int) -> None:
        def op(conn: Connection) -> None:
            cur = conn.execute("DELETE FROM subscriptions WHERE id=?", (subscription_id,))
            if cur.rowcount == 0:
                raise NotFound(subscription_id)

        self._run("delete", op)

    def list(
        self,
        user_id: UserIdFilter = None,
        service_name: Optional[str] = None,
        limit: int = 0,
        offset: int = 0,
    ) -> List[Subscription]:
        sb = _apply_filters(SelectBuilder(TABLE, COLUMNS), user_id, service_name)
        lim, off = clamp_page(limit, offset)
        sql, params = sb.order_by("id", desc=True).limit(lim).offset(off).build()
        return self._run("list", lambda conn: [_row_to_sub(r) for r in conn.execute(sql, params).fetchall()])

    def list_overlapping(
        self,
        period_start: date,
        period_end: date,
        user_id: UserIdFilter = None,
        service_name: Optional[str] = None,
    ) -> List[Subscription]:
        sb = (
            SelectBuilder(TABLE, COLUMNS)
            .less_equal("start_date", period_end.isoformat())
            .null_or_greater_equal("end_date", period_start.isoformat())
        )
        sql, params = _apply_filters(sb, user_id, service_name).order_by("id", desc=True).build()
        return self._run(
            "list_overlapping",
            lambda conn: [_row_to_sub(r) for r in conn.execute(sql, params).fetchall()],
        )
