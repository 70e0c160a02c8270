"""Redis-backed grade history and shop health trends."""
import json
import logging
from datetime import datetime, timedelta
from typing import Optional

import redis as redis_lib

logger = logging.getLogger(__name__)


class GradeHistoryStore:
    """Listing grade history and shop health trends with Redis (graceful fallback to in-memory).

    Entries are JSON-ready dicts carrying an ISO ``date`` field. Lists are
    kept most recent first and trimmed to ``max_history``.
    """

    def __init__(
        self,
        redis_url: Optional[str] = "redis://localhost:6379/0",
        max_history: int = 50,
        retention_days: int = 30,
    ):
        self.max_history = max_history
        self.retention_days = retention_days
        self.redis = None
        self._memory: dict[str, list[dict]] = {}
        if redis_url:
            try:
                self.redis = redis_lib.from_url(redis_url, decode_responses=True)
                self.redis.ping()
            except (redis_lib.RedisError, ValueError) as e:
                logger.warning("Redis unavailable (%s), using in-memory history", e)
                self.redis = None

    def _push(self, key: str, entry: dict) -> bool:
        if self.redis:
            try:
                pipe = self.redis.pipeline()
                pipe.lpush(key, json.dumps(entry, ensure_ascii=False))
                pipe.ltrim(key, 0, self.max_history - 1)
                pipe.execute()
                return True
            except redis_lib.RedisError:
                logger.exception("Failed to write %s", key)
                return False
        items = self._memory.setdefault(key, [])
        items.insert(0, entry)
        del items[self.max_history:]
        return True

    def _read(self, key: str, limit: Optional[int] = None) -> list[dict]:
        stop = (limit or self.max_history) - 1
        if self.redis:
            try:
                return [json.loads(i) for i in self.redis.lrange(key, 0, stop)]
            except redis_lib.RedisError:
                logger.exception("Failed to read %s", key)
                return []
        return list(self._memory.get(key, [])[:stop + 1])

    def add_grade(self, listing_id: int, entry: dict) -> bool:
        """Save a listing grade entry."""
        return self._push(f"grades:{listing_id}", entry)

    def get_grades(self, listing_id: int, limit: Optional[int] = None) -> list[dict]:
        """Recent grade entries for a listing, most recent first."""
        return self._read(f"grades:{listing_id}", limit)

    def add_health_trend(self, shop_id: str, entry: dict) -> bool:
        """Save a shop health trend point."""
        return self._push(f"health:{shop_id}", entry)

    def get_health_trends(self, shop_id: str, now: Optional[datetime] = None) -> list[dict]:
        """Trend points within the retention window, most recent first."""
        cutoff = (now or datetime.now()) - timedelta(days=self.retention_days)
        return [
            e for e in self._read(f"health:{shop_id}")
            if datetime.fromisoformat(e["date"]) >= cutoff
        ]
