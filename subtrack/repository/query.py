"""
参数化 SELECT 构造器
条件以 (clause, params) 形式保存，值一律通过 ? 绑定；表名、列名只来自代码本身
"""
from __future__ import annotations

from typing import Any, Sequence


class SelectBuilder:
    def __init__(self, table: str, columns: Sequence[str]):
        self.table = table
        self.columns = list(columns)
        self._where: list[tuple[str, tuple[Any, ...]]] = []
        self._order_by: list[str] = []
        self._limit: int | None = None
        self._offset: int | None = None

    def where(self, clause: str, *params: Any) -> "SelectBuilder":
        if clause.count("?") != len(params):
            raise ValueError(f"placeholder count mismatch in {clause!r}")
        self._where.append((clause, params))
        return self

    def equal(self, column: str, value: Any) -> "SelectBuilder":
        return self.where(f"{column} = ?", value)

    def less_equal(self, column: str, value: Any) -> "SelectBuilder":
        return self.where(f"{column} <= ?", value)

    def null_or_greater_equal(self, column: str, value: Any) -> "SelectBuilder":
        return self.where(f"({column} IS NULL OR {column} >= ?)", value)

    def order_by(self, column: str, desc: bool = False) -> "SelectBuilder":
        self._order_by.append(f"{column} DESC" if desc else column)
        return self

    def limit(self, n: int | None) -> "SelectBuilder":
        self._limit = n
        return self

    def offset(self, n: int | None) -> "SelectBuilder":
        self._offset = n
        return self

    def build(self) -> tuple[str, list[Any]]:
        sql = f"SELECT {', '.join(self.columns)} FROM {self.table}"
        params: list[Any] = []
        if self._where:
            sql += " WHERE " + " AND ".join(c for c, _ in self._where)
            for _, p in self._where:
                params.extend(p)
        if self._order_by:
            sql += " ORDER BY " + ", ".join(self._order_by)
        if self._limit is not None or self._offset is not None:
            # SQLite 的 OFFSET 必须跟在 LIMIT 后面；-1 表示不限
            sql += " LIMIT ?"
            params.append(self._limit if self._limit is not None else -1)
            if self._offset is not None:
                sql += " OFFSET ?"
                params.append(self._offset)
        return sql, params
