"""
Persistent Rate Limiter
Sliding-window admission control stored in a SQL table so limits survive restarts.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    and_,
    create_engine,
    delete,
    event,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from config.settings import RateLimitSettings, get_rate_limit_settings
from core.contracts import RateLimitConfig, RateLimitResult
from utils.exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_LIMITS: Dict[str, RateLimitConfig] = {
    "default": RateLimitConfig(window_seconds=15 * 60, max_requests=100, block_seconds=15 * 60),
    "search": RateLimitConfig(window_seconds=60, max_requests=10, block_seconds=60),
    "ai-extract": RateLimitConfig(window_seconds=60, max_requests=20, block_seconds=60),
    "scrape": RateLimitConfig(window_seconds=60, max_requests=60, block_seconds=60),
}

metadata = MetaData()

rate_limits = Table(
    "rate_limits",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("identifier", String(255), nullable=False),
    Column("endpoint", String(128), nullable=False),
    Column("request_count", Integer, nullable=False, default=1),
    Column("window_start", DateTime, nullable=False),
    Column("blocked_until", DateTime, nullable=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint("identifier", "endpoint", name="uq_rate_limits_identifier_endpoint"),
    Index("idx_rate_limits_window", "window_start"),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _db_time(value: datetime) -> datetime:
    """Naive UTC for storage."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def create_rate_limit_engine(database_url: str) -> Engine:
    """Engine for the limiter; SQLite connections take the write lock at BEGIN."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, future=True, pool_pre_ping=True)

    if url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(database_url, future=True)

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


class PersistentRateLimiter:
    """
    Per (identifier, endpoint) sliding window with blocking.

    Each check runs in one transaction: an active block rejects; otherwise the
    window is reset or incremented; exceeding the maximum sets a block. Storage
    failures fail open.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        engine: Optional[Engine] = None,
        limits: Optional[Dict[str, RateLimitConfig]] = None,
        settings: Optional[RateLimitSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or get_rate_limit_settings()
        self.engine = engine or create_rate_limit_engine(database_url or self.settings.database_url)
        self.limits: Dict[str, RateLimitConfig] = {**DEFAULT_LIMITS, **(limits or {})}
        self.enabled = self.settings.enabled
        self._clock = clock
        self._lock = threading.Lock()
        self._table_ready = False
        self._next_cleanup: Optional[datetime] = None

    def config_for(self, endpoint: str) -> RateLimitConfig:
        return self.limits.get(endpoint) or self.limits["default"]

    def _now(self) -> datetime:
        return _aware(self._clock())

    def _ensure_table(self) -> None:
        if not self._table_ready:
            metadata.create_all(self.engine, tables=[rate_limits])
            self._table_ready = True

    def check_limit(self, identifier: str, endpoint: str = "default") -> RateLimitResult:
        config = self.config_for(endpoint)
        now = self._now()
        window = timedelta(seconds=config.window_seconds)
        if not self.enabled:
            return RateLimitResult(allowed=True, remaining=config.max_requests, reset_time=now + window)
        try:
            with self._lock:
                self._ensure_table()
                with self.engine.begin() as conn:
                    result = self._check(conn, identifier, endpoint, config, now)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("[rate-limit] storage error, allowing %s/%s: %s", endpoint, identifier[:10], exc)
            return RateLimitResult(allowed=True, remaining=config.max_requests, reset_time=now + window)
        self._maybe_cleanup(now)
        return result

    def _maybe_cleanup(self, now: datetime) -> None:
        """Run ``cleanup`` at most once per ``cleanup_interval_seconds``, driven by checks."""
        interval = self.settings.cleanup_interval_seconds
        if interval <= 0:
            return
        with self._lock:
            due = self._next_cleanup is not None and now >= self._next_cleanup
            if self._next_cleanup is None or due:
                self._next_cleanup = now + timedelta(seconds=interval)
        if due:
            self.cleanup()

    async def acheck_limit(self, identifier: str, endpoint: str = "default") -> RateLimitResult:
        return await asyncio.to_thread(self.check_limit, identifier, endpoint)

    def _row_filter(self, identifier: str, endpoint: str):
        return and_(rate_limits.c.identifier == identifier, rate_limits.c.endpoint == endpoint)

    def _check(
        self,
        conn: Connection,
        identifier: str,
        endpoint: str,
        config: RateLimitConfig,
        now: datetime,
    ) -> RateLimitResult:
        query = select(
            rate_limits.c.request_count,
            rate_limits.c.window_start,
            rate_limits.c.blocked_until,
        ).where(self._row_filter(identifier, endpoint))
        if conn.dialect.name != "sqlite":
            query = query.with_for_update()
        row = conn.execute(query).first()

        if row is not None and row.blocked_until is not None:
            blocked_until = _aware(row.blocked_until)
            if blocked_until > now:
                retry_after = max(1, math.ceil((blocked_until - now).total_seconds()))
                return RateLimitResult(allowed=False, remaining=0, reset_time=blocked_until, retry_after=retry_after)

        window = timedelta(seconds=config.window_seconds)
        if row is None:
            count, window_start = 1, now
            conn.execute(
                insert(rate_limits).values(
                    identifier=identifier,
                    endpoint=endpoint,
                    request_count=count,
                    window_start=_db_time(now),
                    created_at=_db_time(now),
                    updated_at=_db_time(now),
                )
            )
        else:
            stored_start = _aware(row.window_start)
            if stored_start < now - window:
                count, window_start = 1, now
            else:
                count, window_start = int(row.request_count) + 1, stored_start
            conn.execute(
                update(rate_limits)
                .where(self._row_filter(identifier, endpoint))
                .values(request_count=count, window_start=_db_time(window_start), updated_at=_db_time(now))
            )

        if count > config.max_requests:
            block_seconds = config.block_seconds or config.window_seconds
            blocked_until = now + timedelta(seconds=block_seconds)
            conn.execute(
                update(rate_limits)
                .where(self._row_filter(identifier, endpoint))
                .values(blocked_until=_db_time(blocked_until))
            )
            logger.warning(
                "[rate-limit] exceeded endpoint=%s identifier=%s... count=%d blocked_until=%s",
                endpoint,
                identifier[:10],
                count,
                blocked_until.isoformat(),
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=blocked_until,
                retry_after=math.ceil(block_seconds),
            )

        return RateLimitResult(
            allowed=True,
            remaining=max(0, config.max_requests - count),
            reset_time=window_start + window,
        )

    def reset_limit(self, identifier: str, endpoint: Optional[str] = None) -> int:
        condition = rate_limits.c.identifier == identifier
        if endpoint:
            condition = self._row_filter(identifier, endpoint)
        try:
            with self._lock:
                self._ensure_table()
                with self.engine.begin() as conn:
                    return conn.execute(delete(rate_limits).where(condition)).rowcount or 0
        except SQLAlchemyError as exc:
            raise StorageError("failed to reset rate limit", {"identifier": identifier, "error": str(exc)}) from exc

    def get_status(self, identifier: str, endpoint: str = "default") -> Dict[str, object]:
        config = self.config_for(endpoint)
        status: Dict[str, object] = {
            "request_count": 0,
            "max_requests": config.max_requests,
            "window_start": None,
            "blocked_until": None,
        }
        try:
            with self._lock:
                self._ensure_table()
                with self.engine.begin() as conn:
                    row = conn.execute(
                        select(
                            rate_limits.c.request_count,
                            rate_limits.c.window_start,
                            rate_limits.c.blocked_until,
                        ).where(self._row_filter(identifier, endpoint))
                    ).first()
        except SQLAlchemyError as exc:
            raise StorageError("failed to read rate limit", {"identifier": identifier, "error": str(exc)}) from exc
        if row is not None:
            status["request_count"] = int(row.request_count)
            status["window_start"] = _aware(row.window_start)
            status["blocked_until"] = _aware(row.blocked_until) if row.blocked_until is not None else None
        return status

    def cleanup(self, max_age: Optional[timedelta] = None) -> int:
        """Delete windows older than the retention horizon that are not actively blocked."""
        now = self._now()
        horizon = now - (max_age or timedelta(hours=self.settings.retention_hours))
        try:
            with self._lock:
                self._ensure_table()
                with self.engine.begin() as conn:
                    result = conn.execute(
                        delete(rate_limits).where(
                            and_(
                                rate_limits.c.window_start < _db_time(horizon),
                                or_(
                                    rate_limits.c.blocked_until.is_(None),
                                    rate_limits.c.blocked_until < _db_time(now),
                                ),
                            )
                        )
                    )
        except SQLAlchemyError as exc:
            logger.error("[rate-limit] cleanup failed: %s", exc)
            return 0
        removed = result.rowcount or 0
        if removed:
            logger.info("[rate-limit] cleaned up %d expired entries", removed)
        return removed

    def close(self) -> None:
        self.engine.dispose()
