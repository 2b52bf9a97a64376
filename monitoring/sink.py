"""
Monitoring sink
Fire-and-forget audit events for scraping, AI usage and skipped content.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class MonitoringSink(ABC):
    """Audit interface. Implementations must not affect pipeline results."""

    @abstractmethod
    def log_scraping_error(self, url: str, error: str, *, kind: str = "network", method: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def log_ai_api_call(
        self,
        *,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        cost_usd: float,
        duration_ms: int,
        success: bool = True,
        error: Optional[str] = None,
    ) -> None:
        pass

    @abstractmethod
    def log_content_skipped(self, url: str, reason: str, *, content_type: Optional[str] = None) -> None:
        pass


class LoggingMonitoringSink(MonitoringSink):
    """Writes audit events to the standard logger."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def log_scraping_error(self, url: str, error: str, *, kind: str = "network", method: Optional[str] = None) -> None:
        self._log.warning("[monitor] scraping error kind=%s method=%s url=%s: %s", kind, method or "-", url, error)

    def log_ai_api_call(
        self,
        *,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        cost_usd: float,
        duration_ms: int,
        success: bool = True,
        error: Optional[str] = None,
    ) -> None:
        if success:
            self._log.info(
                "[monitor] ai call model=%s tokens=%d+%d cost=$%.6f duration=%dms",
                model,
                prompt_tokens,
                completion_tokens,
                cost_usd,
                duration_ms,
            )
        else:
            self._log.warning("[monitor] ai call failed model=%s duration=%dms: %s", model, duration_ms, error)

    def log_content_skipped(self, url: str, reason: str, *, content_type: Optional[str] = None) -> None:
        self._log.info("[monitor] content skipped reason=%s type=%s url=%s", reason, content_type or "-", url)


class BestEffortMonitor(MonitoringSink):
    """Wraps a sink so that its failures are logged and ignored."""

    def __init__(self, sink: Optional[MonitoringSink] = None):
        self._sink = sink or LoggingMonitoringSink()

    @property
    def sink(self) -> MonitoringSink:
        return self._sink

    def log_scraping_error(self, url: str, error: str, *, kind: str = "network", method: Optional[str] = None) -> None:
        try:
            self._sink.log_scraping_error(url, error, kind=kind, method=method)
        except Exception as exc:
            logger.debug("[monitor] sink failed on scraping error: %s", exc)

    def log_ai_api_call(
        self,
        *,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        cost_usd: float,
        duration_ms: int,
        success: bool = True,
        error: Optional[str] = None,
    ) -> None:
        try:
            self._sink.log_ai_api_call(
                model=model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                cost_usd=cost_usd,
                duration_ms=duration_ms,
                success=success,
                error=error,
            )
        except Exception as exc:
            logger.debug("[monitor] sink failed on ai call: %s", exc)

    def log_content_skipped(self, url: str, reason: str, *, content_type: Optional[str] = None) -> None:
        try:
            self._sink.log_content_skipped(url, reason, content_type=content_type)
        except Exception as exc:
            logger.debug("[monitor] sink failed on skipped content: %s", exc)


def best_effort(sink: Optional[MonitoringSink]) -> BestEffortMonitor:
    if isinstance(sink, BestEffortMonitor):
        return sink
    return BestEffortMonitor(sink)
