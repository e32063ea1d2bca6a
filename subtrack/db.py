from __future__ import annotations

# subtrack/db.py
import sqlite3
from contextlib import contextmanager
from typing import Iterator
import os
import yaml

# DB 路径解析顺序：
# 1) 环境变量 SUBTRACK_DB_PATH（最高优先级）
# 2) config.yaml 的 test_db_path（当检测到测试环境时）
# 3) config.yaml 的 db_path（生产默认）
# 4) 兜底：项目根 subtrack.db
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "subtrack.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS subscriptions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  service_name TEXT NOT NULL,
  price INTEGER NOT NULL,
  user_id TEXT NOT NULL,
  start_date TEXT NOT NULL,
  end_date TEXT
);
CREATE INDEX IF NOT EXISTS idx_subscriptions_user_id ON subscriptions(user_id);
CREATE INDEX IF NOT EXISTS idx_subscriptions_service_name ON subscriptions(service_name);
"""


def _read_config_yaml() -> dict:
    cfg_path = os.path.join(_PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(cfg, dict):
        return {}
    out = {}
    for k in ("db_path", "test_db_path"):
        v = cfg.get(k)
        if isinstance(v, str) and v.strip():
            out[k] = v.strip()
    timeout = cfg.get("query_timeout_ms")
    if isinstance(timeout, int) and timeout >= 0:
        out["query_timeout_ms"] = timeout
    return out


def get_db_path(_: str | None = None) -> str:
    env_path = os.environ.get("SUBTRACK_DB_PATH")
    cfg = _read_config_yaml()
    cfg_db = cfg.get("db_path")
    cfg_test = cfg.get("test_db_path")
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and cfg_test:
        path = cfg_test
    elif cfg_db:
        path = cfg_db
    else:
        path = _ROOT_DB

    # 确保目录存在
    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


def get_query_timeout() -> float | None:
    """语句超时（秒）。环境变量 SUBTRACK_QUERY_TIMEOUT_MS 优先，其次 config.yaml；0 表示不限制。"""
    raw = os.environ.get("SUBTRACK_QUERY_TIMEOUT_MS")
    if raw is not None and raw.strip():
        try:
            ms = int(raw)
        except ValueError:
            ms = 0
    else:
        ms = _read_config_yaml().get("query_timeout_ms", 0)
    return ms / 1000.0 if ms > 0 else None


@contextmanager
def get_conn(db_path: str | None = None) -> Iterator[sqlite3.Connection]:
    """
    获取 SQLite 连接。优先使用显式传入的 db_path，否则走 get_db_path()。
    row_factory 设为 Row；autocommit 模式，每条写语句自身即原子操作。
    """
    path = db_path or get_db_path()
    conn = sqlite3.connect(
        path,
        check_same_thread=False,
        isolation_level=None,
    )
    try:
        conn.row_factory = sqlite3.Row
        yield conn
    finally:
        conn.close()


def init_db(db_path: str | None = None) -> None:
    """建表（幂等），同时确保操作日志表存在。"""
    from .logs import ensure_log_schema

    with get_conn(db_path) as conn:
        conn.executescript(SCHEMA)
    ensure_log_schema(db_path)
