"""Recipe usage history used for recency deduplication."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Protocol

from nutrition_planner.domain.errors import LedgerWriteFailure
from nutrition_planner.domain.targets import MealType
from nutrition_planner.domain.usage import UsageRecord

DEFAULT_DEDUP_WINDOW_DAYS = 30
DEFAULT_RETENTION_DAYS = 90

_logger = logging.getLogger(__name__)


class UsageHistoryStore(Protocol):
    """Persistence interface for usage records."""

    def find_usage(
        self,
        subject_key: str,
        start: date,
        end: date,
        recipe_identifier: str | None = None,
    ) -> list[UsageRecord]:
        """Return records with ``start <= used_date < end``."""

    def upsert_usage(self, record: UsageRecord) -> None:
        """Insert or replace the record for (subject_key, meal_type, used_date)."""

    def delete_usage_before(self, cutoff: date) -> int:
        """Delete records dated before the cutoff and return how many."""


def _utc_today() -> date:
    return datetime.now(tz=UTC).date()


@dataclass
class UsageHistoryLedger:
    """Answers recency questions and records recipe usage per subject.

    A window of N days covers the N days before ``as_of``; usage on ``as_of``
    itself never counts, so regenerating a day's plan is stable. Windows are
    capped at the retention period.
    """

    store: UsageHistoryStore
    retention_days: int = DEFAULT_RETENTION_DAYS
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.1
    clock: Callable[[], date] = field(default=_utc_today)

    def was_recently_used(
        self,
        subject_key: str,
        recipe_identifier: str,
        window_days: int = DEFAULT_DEDUP_WINDOW_DAYS,
        as_of: date | None = None,
    ) -> bool:
        """Return True if the subject used the recipe within the window."""
        bounds = self._window(window_days, as_of)
        if bounds is None:
            return False
        start, end = bounds
        return bool(
            self.store.find_usage(
                subject_key, start, end, recipe_identifier=recipe_identifier
            )
        )

    def recently_used(
        self,
        subject_key: str,
        window_days: int = DEFAULT_DEDUP_WINDOW_DAYS,
        as_of: date | None = None,
    ) -> frozenset[str]:
        """Return identifiers of every recipe used within the window."""
        bounds = self._window(window_days, as_of)
        if bounds is None:
            return frozenset()
        start, end = bounds
        records = self.store.find_usage(subject_key, start, end)
        return frozenset(record.recipe_identifier for record in records)

    def record(
        self,
        subject_key: str,
        recipe_identifier: str,
        meal_type: MealType,
        used_date: date,
    ) -> UsageRecord:
        """Record usage; repeated calls for the same day and slot overwrite."""
        record = UsageRecord(
            subject_key=subject_key,
            recipe_identifier=recipe_identifier,
            meal_type=meal_type,
            used_date=used_date,
        )
        attempt = 0
        while True:
            try:
                self.store.upsert_usage(record)
            except Exception as exc:
                attempt += 1
                _logger.warning(
                    "Usage write failed (attempt %s/%s) for %s %s: %s",
                    attempt,
                    self.retry_attempts + 1,
                    subject_key,
                    meal_type,
                    exc,
                )
                if attempt > self.retry_attempts:
                    raise LedgerWriteFailure(
                        f"Could not record {recipe_identifier} for {subject_key}"
                    ) from exc
                time.sleep(self.retry_delay_seconds)
            else:
                return record

    def purge_older_than(
        self, days: int | None = None, as_of: date | None = None
    ) -> int:
        """Delete records older than the retention period."""
        retention = self.retention_days if days is None else days
        cutoff = (as_of or self.clock()) - timedelta(days=retention)
        deleted = self.store.delete_usage_before(cutoff)
        _logger.info("Purged %s usage records before %s", deleted, cutoff)
        return deleted

    def _window(self, window_days: int, as_of: date | None) -> tuple[date, date] | None:
        days = min(window_days, self.retention_days)
        if days <= 0:
            return None
        end = as_of or self.clock()
        return end - timedelta(days=days), end
