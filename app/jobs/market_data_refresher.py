"""
Market Data Refresher - daily job refreshing skill market data.

Runs once a day at the configured local time (02:00 Asia/Kolkata by default)
on a background daemon thread. Only one refresh can run at a time; an
overlapping run (scheduled or manual) is skipped. No retries: a failed run
waits for the next tick or a manual trigger.
"""

import logging
import threading
from datetime import datetime, timedelta
from threading import Event, Lock
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from app.core.config import get_settings
from app.services.market_data_service import MarketDataAggregator
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

settings = get_settings()


def seconds_until_next_run(now: datetime, hour: int, minute: int) -> float:
    """Seconds from `now` (aware, in the schedule's timezone) to the next hour:minute."""
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class MarketDataRefresher:
    """
    Process-scoped refresher. `is_running` and `last_run_result` are shared
    between the scheduler thread and request handlers, guarded by a lock.
    """

    def __init__(self, aggregator_factory: Callable[[], MarketDataAggregator] = MarketDataAggregator):
        self.aggregator_factory = aggregator_factory
        self._lock = Lock()
        self._is_running = False
        self.last_run_result: Optional[dict] = None
        self._stop_event = Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._is_running

    def _acquire(self) -> bool:
        with self._lock:
            if self._is_running:
                return False
            self._is_running = True
            return True

    def _release(self):
        with self._lock:
            self._is_running = False

    def run_refresh_job(self) -> Optional[dict]:
        """
        Execute one refresh. Returns the stored last-run result, or None
        when another refresh is already in progress.
        """
        if not self._acquire():
            logger.info("Market refresh already in progress, skipping")
            return None

        start = utcnow()
        logger.info("Market data refresh job started")
        try:
            aggregator = self.aggregator_factory()

            stats_before = aggregator.get_aggregation_stats()
            if stats_before:
                logger.info(
                    f"Current state: {stats_before['total_skills']} skills tracked, "
                    f"last updated {stats_before['last_updated'] or 'never'}"
                    f"{' (stale)' if stats_before['is_stale'] else ''}"
                )

            result = aggregator.aggregate_market_data()
            stats_after = aggregator.get_aggregation_stats()
            end = utcnow()

            result_record = {
                "timestamp": end,
                "duration": int(round((end - start).total_seconds())),
                **result,
                "total_skills": stats_after["total_skills"] if stats_after else 0,
            }
            with self._lock:
                self.last_run_result = result_record

            logger.info(
                f"Market data refresh completed in {result_record['duration']}s: "
                f"{result['success']} success, {result['skipped']} skipped, {result['failed']} failed"
            )
            for error in result.get("errors", []):
                logger.warning(f"  {error['skill']}: {error['error']}")
        except Exception as e:
            end = utcnow()
            result_record = {
                "timestamp": end,
                "duration": int(round((end - start).total_seconds())),
                "error": str(e),
                "success": 0,
                "failed": 0,
                "skipped": 0,
            }
            with self._lock:
                self.last_run_result = result_record
            logger.exception(f"Market data refresh job failed: {e}")
        finally:
            self._release()

        return result_record

    def trigger_manual_refresh(self) -> Optional[dict]:
        logger.info("Manual market refresh triggered")
        return self.run_refresh_job()

    def get_last_run_status(self) -> dict:
        with self._lock:
            last = self.last_run_result

        if not last:
            return {
                "status": "never_run",
                "message": "Market refresh job has not run yet",
            }

        hours_since_run = int(round((utcnow() - last["timestamp"]).total_seconds() / 3600))
        return {
            "status": "failed" if last.get("error") else "success",
            "last_run": last["timestamp"],
            "hours_since_run": hours_since_run,
            "duration": last.get("duration"),
            "success": last.get("success"),
            "failed": last.get("failed"),
            "skipped": last.get("skipped"),
            "total_skills": last.get("total_skills"),
            "error": last.get("error"),
            "errors": last.get("errors"),
        }

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _schedule_loop(self, hour: int, minute: int, tz: ZoneInfo):
        while not self._stop_event.is_set():
            wait = seconds_until_next_run(datetime.now(tz), hour, minute)
            logger.info(f"Next market refresh in {wait / 3600:.1f} hours")
            if self._stop_event.wait(wait):
                break
            self.run_refresh_job()

    def start(self, hour: int = None, minute: int = None, timezone_name: str = None) -> bool:
        """Start the daily scheduler thread. Returns False if already started."""
        if self._thread is not None and self._thread.is_alive():
            return False

        hour = settings.market_refresh_hour if hour is None else hour
        minute = settings.market_refresh_minute if minute is None else minute
        tz = ZoneInfo(timezone_name or settings.market_refresh_timezone)

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._schedule_loop,
            args=(hour, minute, tz),
            name="market-data-refresher",
            daemon=True
        )
        self._thread.start()
        logger.info(f"Market data refresh scheduled daily at {hour:02d}:{minute:02d} {tz.key}")
        return True

    def stop(self):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None


_refresher: MarketDataRefresher = None


def get_market_refresher() -> MarketDataRefresher:
    """Get or create the process-wide refresher (singleton pattern)"""
    global _refresher
    if _refresher is None:
        _refresher = MarketDataRefresher()
    return _refresher
