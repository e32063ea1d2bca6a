"""
操作日志：订阅的增删改都在 operation_log 中留一条审计记录（变更前后快照、耗时、结果）。
"""
import json, time, uuid, datetime as dt
from typing import Optional
from .db import get_conn

ENTITY_SUBSCRIPTION = "SUBSCRIPTION"

DDL = """
CREATE TABLE IF NOT EXISTS operation_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  user TEXT NOT NULL,
  action TEXT NOT NULL,
  entity_type TEXT,
  entity_id TEXT,
  request_id TEXT,
  before_json TEXT,
  after_json TEXT,
  payload_json TEXT,
  result TEXT,
  err_msg TEXT,
  latency_ms INTEGER
);
CREATE INDEX IF NOT EXISTS idx_log_ts ON operation_log(ts);
CREATE INDEX IF NOT EXISTS idx_log_action ON operation_log(action);
"""

def ensure_log_schema(db_path: str | None = None):
    with get_conn(db_path) as conn:
        conn.executescript(DDL)


def _dumps(obj) -> Optional[str]:
    # dates and UUIDs fall back to str()
    if obj is None:
        return None
    return json.dumps(obj, ensure_ascii=False, default=str)


class LogContext:
    def __init__(self, action: str, user: str = "owner", db_path: str | None = None):
        self.action = action
        self.user = user
        self.db_path = db_path
        self.request_id = str(uuid.uuid4())
        self.start = time.perf_counter()
        self.before = None
        self.after = None
        self.payload = None
        self.entity_type = None
        self.entity_id = None

    def set_entity(self, etype: str, eid):
        self.entity_type = etype
        self.entity_id = str(eid) if eid is not None else None

    def set_before(self, obj): self.before = obj
    def set_after(self, obj): self.after = obj
    def set_payload(self, obj): self.payload = obj

    def write(self, result: str = "OK", err: Optional[str] = None):
        elapsed_ms = int((time.perf_counter() - self.start) * 1000)
        rec = {
            "ts": dt.datetime.now(dt.timezone.utc).isoformat(),
            "user": self.user,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "request_id": self.request_id,
            "before_json": _dumps(self.before),
            "after_json": _dumps(self.after),
            "payload_json": _dumps(self.payload),
            "result": result,
            "err_msg": err,
            "latency_ms": elapsed_ms,
        }
        with get_conn(self.db_path) as conn:
            conn.execute(
                """INSERT INTO operation_log
                (ts,user,action,entity_type,entity_id,request_id,before_json,after_json,payload_json,result,err_msg,latency_ms)
                VALUES(:ts,:user,:action,:entity_type,:entity_id,:request_id,:before_json,:after_json,:payload_json,:result,:err_msg,:latency_ms)""",
                rec
            )


def decode_log_row(row: dict) -> dict:
    """把 *_json 列还原为对象。"""
    out = dict(row)
    for k in ("before_json", "after_json", "payload_json"):
        v = out.pop(k, None)
        out[k[: -len("_json")]] = json.loads(v) if v else None
    return out


def search_logs(
    q: str | None = None,
    action: str | None = None,
    ts_from: str | None = None,
    ts_to: str | None = None,
    page: int = 1,
    size: int = 20,
    entity_type: str | None = None,
    entity_id=None,
    db_path: str | None = None,
):
    """按条件分页查询操作日志，返回 (total, rows)，新记录在前。"""
    where = []
    params = {}
    if entity_type:
        where.append("entity_type = :entity_type")
        params["entity_type"] = entity_type
    if entity_id is not None:
        where.append("entity_id = :entity_id")
        params["entity_id"] = str(entity_id)
    if q:
        where.append("(payload_json LIKE :q OR before_json LIKE :q OR after_json LIKE :q)")
        params["q"] = f"%{q}%"
    if action:
        where.append("action = :action")
        params["action"] = action
    if ts_from:
        where.append("ts >= :from")
        params["from"] = ts_from
    if ts_to:
        where.append("ts <= :to")
        params["to"] = ts_to
    wh = " WHERE " + " AND ".join(where) if where else ""
    sql = f"SELECT * FROM operation_log{wh} ORDER BY ts DESC, id DESC LIMIT :limit OFFSET :offset"
    count_sql = f"SELECT COUNT(1) AS cnt FROM operation_log{wh}"
    page = max(page, 1)
    with get_conn(db_path) as conn:
        total = conn.execute(count_sql, params).fetchone()["cnt"]
        rows = conn.execute(sql, {**params, "limit": size, "offset": (page-1)*size}).fetchall()
        return total, [dict(r) for r in rows]
