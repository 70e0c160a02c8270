"""Tests for grade history store (in-memory fallback)."""
from datetime import datetime, timedelta

from shopgrade.history import GradeHistoryStore


def _store(**kwargs):
    return GradeHistoryStore(redis_url="redis://invalid:9999/0", **kwargs)


class TestFallback:
    def test_invalid_redis_falls_back(self):
        store = _store()
        assert store.redis is None

    def test_no_url_is_memory_only(self):
        assert GradeHistoryStore(redis_url=None).redis is None

    def test_url_without_scheme_falls_back(self):
        store = GradeHistoryStore(redis_url="localhost:6379")
        assert store.redis is None
        store.add_grade(1, {"score": 70})
        assert store.get_grades(1) == [{"score": 70}]


class TestGrades:
    def test_most_recent_first(self):
        store = _store()
        store.add_grade(1, {"date": "2026-01-01T00:00:00", "score": 50})
        store.add_grade(1, {"date": "2026-01-02T00:00:00", "score": 60})
        grades = store.get_grades(1)
        assert [g["score"] for g in grades] == [60, 50]

    def test_trimmed_to_max_history(self):
        store = _store(max_history=3)
        for i in range(5):
            store.add_grade(7, {"score": i})
        assert [g["score"] for g in store.get_grades(7)] == [4, 3, 2]

    def test_limit(self):
        store = _store()
        for i in range(5):
            store.add_grade(7, {"score": i})
        assert len(store.get_grades(7, limit=2)) == 2

    def test_listings_are_separate(self):
        store = _store()
        store.add_grade(1, {"score": 1})
        assert store.get_grades(2) == []


class TestHealthTrends:
    def test_retention_window(self):
        store = _store(retention_days=30)
        now = datetime(2026, 6, 1, 12, 0)
        store.add_health_trend("shop", {"date": (now - timedelta(days=40)).isoformat(), "score": 10})
        store.add_health_trend("shop", {"date": (now - timedelta(days=5)).isoformat(), "score": 70})
        trends = store.get_health_trends("shop", now=now)
        assert [t["score"] for t in trends] == [70]
