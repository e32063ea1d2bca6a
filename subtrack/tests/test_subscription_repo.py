"""
订阅仓储层测试
SQLite 与内存实现共用同一组契约测试（见 conftest.repo fixture）
"""
from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

import pytest

from subtrack.db import get_conn
from subtrack.domain.subscription import Subscription
from subtrack.errors import InvalidFilter, NotFound, PersistenceError
from subtrack.repository import MAX_LIST_LIMIT, SqliteSubscriptionRepository

USER_A = UUID("60601fee-2bf1-4721-ae6f-7636e79a0cba")
USER_B = UUID("1f2a3b4c-5d6e-4f70-8192-a3b4c5d6e7f8")


def make_sub(**kw) -> Subscription:
    data = {
        "service_name": "Yandex Plus",
        "price": 400,
        "user_id": USER_A,
        "start_date": date(2025, 7, 1),
        "end_date": None,
    }
    data.update(kw)
    return Subscription(**data)


class TestSubscriptionRepo:
    """订阅仓储契约测试"""

    def test_create_then_get_round_trip(self, repo):
        sub = make_sub(end_date=date(2025, 12, 1))
        new_id = repo.create(sub)
        assert isinstance(new_id, int)

        got = repo.get(new_id)
        assert got == sub.model_copy(update={"id": new_id})

    def test_create_open_ended(self, repo):
        new_id = repo.create(make_sub())
        assert repo.get(new_id).end_date is None

    def test_ids_are_distinct(self, repo):
        a = repo.create(make_sub())
        b = repo.create(make_sub())
        assert a != b

    def test_get_missing_raises_not_found(self, repo):
        with pytest.raises(NotFound):
            repo.get(999999)

    def test_update_replaces_all_fields(self, repo):
        new_id = repo.create(make_sub())
        repl = make_sub(service_name="Spotify", price=199, user_id=USER_B,
                        start_date=date(2024, 1, 1), end_date=date(2024, 6, 1))
        repo.update(new_id, repl)
        assert repo.get(new_id) == repl.model_copy(update={"id": new_id})

    def test_update_can_clear_end_date(self, repo):
        new_id = repo.create(make_sub(end_date=date(2026, 1, 1)))
        repo.update(new_id, make_sub(end_date=None))
        assert repo.get(new_id).end_date is None

    def test_update_missing_raises_and_changes_nothing(self, repo):
        existing = repo.create(make_sub())
        before = repo.list()
        with pytest.raises(NotFound):
            repo.update(existing + 1000, make_sub(service_name="Other"))
        assert repo.list() == before

    def test_delete(self, repo):
        new_id = repo.create(make_sub())
        repo.delete(new_id)
        with pytest.raises(NotFound):
            repo.get(new_id)

    def test_delete_missing_raises_not_found(self, repo):
        with pytest.raises(NotFound):
            repo.delete(424242)

    def test_delete_twice(self, repo):
        new_id = repo.create(make_sub())
        repo.delete(new_id)
        with pytest.raises(NotFound):
            repo.delete(new_id)

    def test_inverted_range_is_stored(self, repo):
        # end before start is accepted at write time
        new_id = repo.create(make_sub(start_date=date(2025, 6, 1), end_date=date(2025, 1, 1)))
        got = repo.get(new_id)
        assert got.end_date < got.start_date


class TestSubscriptionList:
    """List 过滤 / 排序 / 分页"""

    def test_empty_returns_empty_list(self, repo):
        res = repo.list()
        assert res == []
        assert isinstance(res, list)

    def test_no_match_returns_empty_list(self, repo):
        repo.create(make_sub())
        assert repo.list(user_id=uuid4()) == []
        assert repo.list(service_name="Nope") == []

    def test_ordered_by_id_desc(self, repo):
        ids = [repo.create(make_sub(price=p)) for p in (100, 200, 300)]
        assert [s.id for s in repo.list()] == sorted(ids, reverse=True)

    def test_filter_by_user(self, repo):
        a = repo.create(make_sub(user_id=USER_A))
        repo.create(make_sub(user_id=USER_B))
        assert [s.id for s in repo.list(user_id=USER_A)] == [a]
        # string form is accepted too
        assert [s.id for s in repo.list(user_id=str(USER_A).upper())] == [a]

    def test_filter_by_service_is_exact_and_case_sensitive(self, repo):
        n = repo.create(make_sub(service_name="Netflix"))
        repo.create(make_sub(service_name="Netflix Premium"))
        assert [s.id for s in repo.list(service_name="Netflix")] == [n]
        assert repo.list(service_name="netflix") == []
        assert repo.list(service_name="Net") == []

    def test_filters_combine_with_and(self, repo):
        hit = repo.create(make_sub(user_id=USER_A, service_name="Netflix"))
        repo.create(make_sub(user_id=USER_B, service_name="Netflix"))
        repo.create(make_sub(user_id=USER_A, service_name="Spotify"))
        assert [s.id for s in repo.list(user_id=USER_A, service_name="Netflix")] == [hit]

    def test_empty_filters_are_ignored(self, repo):
        repo.create(make_sub())
        repo.create(make_sub(user_id=USER_B))
        assert len(repo.list(user_id="", service_name="")) == 2
        assert len(repo.list(user_id=None, service_name=None)) == 2

    def test_malformed_user_id_filter(self, repo):
        with pytest.raises(InvalidFilter):
            repo.list(user_id="not-a-uuid")

    def test_limit_and_offset(self, repo):
        ids = [repo.create(make_sub(price=i + 1)) for i in range(5)]
        desc = sorted(ids, reverse=True)
        assert [s.id for s in repo.list(limit=2)] == desc[:2]
        assert [s.id for s in repo.list(limit=2, offset=2)] == desc[2:4]
        assert [s.id for s in repo.list(offset=3)] == desc[3:]
        assert repo.list(limit=2, offset=10) == []

    def test_non_positive_limit_and_offset_mean_unbounded(self, repo):
        for i in range(3):
            repo.create(make_sub(price=i + 1))
        assert len(repo.list(limit=0, offset=0)) == 3
        assert len(repo.list(limit=-5, offset=-5)) == 3

    def test_limit_is_clamped(self, repo):
        for i in range(MAX_LIST_LIMIT + 5):
            repo.create(make_sub(price=i + 1))
        assert len(repo.list(limit=MAX_LIST_LIMIT + 100)) == MAX_LIST_LIMIT


class TestListOverlapping:
    """费用计算用的粗筛查询"""

    def test_range_candidates(self, repo):
        before = repo.create(make_sub(start_date=date(2023, 1, 1), end_date=date(2023, 12, 1)))
        inside = repo.create(make_sub(start_date=date(2024, 1, 1), end_date=date(2024, 3, 1)))
        open_ended = repo.create(make_sub(start_date=date(2022, 1, 1)))
        after = repo.create(make_sub(start_date=date(2024, 3, 1)))
        got = [s.id for s in repo.list_overlapping(date(2024, 2, 1), date(2024, 2, 29))]
        assert got == [open_ended, inside]
        assert before not in got and after not in got

    def test_boundaries_are_inclusive(self, repo):
        ends_at_start = repo.create(make_sub(start_date=date(2023, 6, 1), end_date=date(2024, 2, 1)))
        starts_at_end = repo.create(make_sub(start_date=date(2024, 2, 1), end_date=date(2024, 9, 1)))
        got = {s.id for s in repo.list_overlapping(date(2024, 2, 1), date(2024, 2, 29))}
        assert got == {ends_at_start, starts_at_end}

    def test_filters_apply(self, repo):
        hit = repo.create(make_sub(user_id=USER_A, service_name="Netflix", start_date=date(2024, 1, 1)))
        repo.create(make_sub(user_id=USER_B, service_name="Netflix", start_date=date(2024, 1, 1)))
        got = repo.list_overlapping(date(2024, 1, 1), date(2024, 1, 31), USER_A, "Netflix")
        assert [s.id for s in got] == [hit]


def test_sqlite_stores_canonical_text(tmp_db_path):
    repo = SqliteSubscriptionRepository(tmp_db_path)
    new_id = repo.create(make_sub(start_date=date(2025, 7, 1), end_date=date(2025, 9, 1)))
    with get_conn() as conn:
        row = conn.execute("SELECT user_id, start_date, end_date FROM subscriptions WHERE id=?", (new_id,)).fetchone()
    assert row["user_id"] == str(USER_A)
    assert row["start_date"] == "2025-07-01"
    assert row["end_date"] == "2025-09-01"


def test_sqlite_failure_is_wrapped(tmp_path):
    # 目录当作数据库文件打开 -> sqlite3 报错
    repo = SqliteSubscriptionRepository(str(tmp_path))
    with pytest.raises(PersistenceError) as ei:
        repo.list()
    assert ei.value.__cause__ is not None
    assert str(tmp_path) not in str(ei.value)


def test_sqlite_missing_table_is_wrapped(tmp_path):
    repo = SqliteSubscriptionRepository(str(tmp_path / "empty.db"))
    with pytest.raises(PersistenceError):
        repo.create(make_sub())


@pytest.mark.parametrize("bad_row", [
    ("S", 100, "x", "2024-01-01", None),
    ("S", 0, str(USER_A), "2024-01-01", None),
    ("S", 100, str(USER_A), "2023-13-01", None),
])
def test_sqlite_undecodable_row_is_wrapped(tmp_db_path, bad_row):
    # 库中已有脏数据：读取时统一以 PersistenceError 抛出
    with get_conn() as conn:
        cur = conn.execute(
            "INSERT INTO subscriptions(service_name, price, user_id, start_date, end_date) VALUES(?,?,?,?,?)",
            bad_row,
        )
        bad_id = cur.lastrowid
    repo = SqliteSubscriptionRepository(tmp_db_path)
    with pytest.raises(PersistenceError) as ei:
        repo.list()
    assert ei.value.__cause__ is not None
    with pytest.raises(PersistenceError):
        repo.get(bad_id)
    with pytest.raises(PersistenceError):
        repo.list_overlapping(date(2024, 1, 1), date(2024, 1, 31))


def test_sqlite_statement_deadline_aborts_query(tmp_db_path):
    with get_conn() as conn:
        conn.execute("BEGIN")
        conn.executemany(
            "INSERT INTO subscriptions(service_name, price, user_id, start_date, end_date) VALUES(?,?,?,?,?)",
            [("S", i + 1, str(USER_A), "2024-01-01", None) for i in range(20000)],
        )
        conn.execute("COMMIT")
    unbounded = SqliteSubscriptionRepository(tmp_db_path, timeout=0)
    assert len(unbounded.list()) == 20000

    bounded = unbounded.with_timeout(0.000001)
    with pytest.raises(PersistenceError):
        bounded.list()


def test_with_timeout_returns_new_repo(tmp_db_path):
    base = SqliteSubscriptionRepository(tmp_db_path, timeout=5)
    bounded = base.with_timeout(1.5)
    assert bounded is not base
    assert bounded.timeout == 1.5
    assert base.timeout == 5
    assert base.with_timeout(0).timeout is None
