"""Plan generation for one subject, a household, a week or a batch."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Protocol, TypeVar
from uuid import UUID

from nutrition_planner.domain.plans import (
    BatchResult,
    DailyPlan,
    PlannedMeal,
    WeeklyBatchResult,
    WeeklyPlan,
)
from nutrition_planner.domain.profiles import HealthProfile, SubjectKey
from nutrition_planner.domain.recipes import RecipeCandidate
from nutrition_planner.domain.targets import (
    MealSlotTarget,
    MealType,
    NutritionTargetProfile,
)
from nutrition_planner.services.aggregation import ConditionAggregator
from nutrition_planner.services.allocation import allocate_meals
from nutrition_planner.services.cache import Cache, pool_cache_key
from nutrition_planner.services.rationale import SelectionRationaleBuilder
from nutrition_planner.services.scoring import RecipeScorer
from nutrition_planner.services.selection import CandidatePoolProvider, RecipeSelector

_T = TypeVar("_T")

DAYS_PER_WEEK = 7

_logger = logging.getLogger(__name__)


class HealthProfileProvider(Protocol):
    """Source of health profiles."""

    def get_profile(self, subject: SubjectKey) -> HealthProfile:
        """Return the subject's profile; an empty profile when none is stored."""

    def list_subjects(self) -> list[SubjectKey]:
        """Return every subject with a stored profile."""


class PlanPersister(Protocol):
    """Storage for generated plans."""

    def save_plan(self, plan: DailyPlan) -> None:
        """Upsert the plan's meals keyed by subject, date and meal type."""


@dataclass
class PlanningService:
    """Runs the target, selection and rationale pipeline."""

    profiles: HealthProfileProvider
    pools: CandidatePoolProvider
    persister: PlanPersister
    aggregator: ConditionAggregator
    selector: RecipeSelector
    rationale_builder: SelectionRationaleBuilder
    cache: Cache
    pool_cache_ttl_seconds: int = 900
    fetch_timeout_seconds: float = 10.0
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3
    max_concurrent_subjects: int = 8

    async def compute_targets(
        self, subject: SubjectKey
    ) -> tuple[NutritionTargetProfile, list[MealSlotTarget]]:
        """Return the daily targets and slot targets for a subject."""
        profile = await self._call_with_retry(
            lambda: self.profiles.get_profile(subject),
            action=f"get_profile:{subject.storage_key}",
        )
        targets = self.aggregator.aggregate(profile)
        return targets, allocate_meals(targets)

    async def generate_plan(self, subject: SubjectKey, plan_date: date) -> DailyPlan:
        """Generate and persist the plan for one subject and day."""
        targets, slots = await self.compute_targets(subject)
        return await self._plan_for_targets(subject, targets, slots, plan_date)

    async def generate_week(self, subject: SubjectKey, week_start: date) -> WeeklyPlan:
        """Generate seven consecutive daily plans starting at week_start.

        Days run in order through the same usage ledger, so a recipe picked
        early in the week is avoided on the days after it.
        """
        days = []
        for offset in range(DAYS_PER_WEEK):
            plan_date = week_start + timedelta(days=offset)
            days.append(await self.generate_plan(subject, plan_date))
        week = WeeklyPlan(subject=subject, week_start=week_start, days=tuple(days))
        _logger.info(
            "Week %s-W%02d generated for %s: %s distinct recipes",
            week.week_year,
            week.week_number,
            subject.storage_key,
            week.recipe_count,
        )
        return week

    async def generate_household_plan(
        self, user_id: UUID, plan_date: date
    ) -> DailyPlan:
        """Generate one shared plan for a user and every family member."""
        members = await self.list_subjects({user_id})
        owner = SubjectKey(user_id=user_id)
        if owner not in members:
            members.insert(0, owner)
        profiles = []
        for member in members:
            profiles.append(
                await self._call_with_retry(
                    lambda member=member: self.profiles.get_profile(member),
                    action=f"get_profile:{member.storage_key}",
                )
            )
        targets = self.aggregator.aggregate_household(profiles)
        return await self._plan_for_targets(
            SubjectKey.for_household(user_id),
            targets,
            allocate_meals(targets),
            plan_date,
        )

    async def _plan_for_targets(
        self,
        subject: SubjectKey,
        targets: NutritionTargetProfile,
        slots: list[MealSlotTarget],
        plan_date: date,
    ) -> DailyPlan:
        scorer = RecipeScorer(targets)
        preferences = frozenset(targets.preferred_ingredients)
        meals = []
        for slot in slots:
            pool = await self._candidate_pool(slot.meal_type, preferences)
            selection = await asyncio.to_thread(
                self.selector.select,
                subject.storage_key,
                slot,
                scorer,
                pool,
                plan_date,
            )
            rationale = self.rationale_builder.build(slot, selection.recipe, targets)
            meals.append(
                PlannedMeal(
                    slot=slot,
                    recipe=selection.recipe,
                    score=selection.selected,
                    rationale=rationale,
                    dedup_window_days=selection.dedup_window_days,
                )
            )
        plan = DailyPlan(
            subject=subject,
            plan_date=plan_date,
            targets=targets,
            meals=tuple(meals),
        )
        await self._call_with_retry(
            lambda: self.persister.save_plan(plan),
            action=f"save_plan:{subject.storage_key}",
        )
        _logger.info(
            "Plan generated for %s on %s: %s kcal target, %s meals",
            subject.storage_key,
            plan_date,
            targets.total_calories,
            len(meals),
        )
        return plan

    async def list_subjects(
        self, allowed_user_ids: set[UUID] | None = None
    ) -> list[SubjectKey]:
        """Return stored subjects, limited to an allowlist of users if given."""
        subjects = await self._call_with_retry(
            self.profiles.list_subjects, action="list_subjects"
        )
        if allowed_user_ids is None:
            return subjects
        return [subject for subject in subjects if subject.user_id in allowed_user_ids]

    async def generate_batch(
        self, plan_date: date, subjects: Iterable[SubjectKey] | None = None
    ) -> BatchResult:
        """Generate plans for many subjects; one failure never stops the rest."""
        if subjects is None:
            subjects = await self.list_subjects()
        outcomes = await self._for_each_subject(
            list(subjects),
            lambda subject: self.generate_plan(subject, plan_date),
            action="Plan generation",
        )
        result = BatchResult()
        for subject, outcome in outcomes:
            if isinstance(outcome, Exception):
                result.failures[subject.storage_key] = _describe(outcome)
            else:
                result.plans.append(outcome)
        _logger.info(
            "Batch for %s finished: %s succeeded, %s failed",
            plan_date,
            len(result.plans),
            len(result.failures),
        )
        return result

    async def generate_week_batch(
        self, week_start: date, subjects: Iterable[SubjectKey] | None = None
    ) -> WeeklyBatchResult:
        """Generate a week for many subjects with per-subject failure isolation."""
        if subjects is None:
            subjects = await self.list_subjects()
        outcomes = await self._for_each_subject(
            list(subjects),
            lambda subject: self.generate_week(subject, week_start),
            action="Week generation",
        )
        result = WeeklyBatchResult()
        for subject, outcome in outcomes:
            if isinstance(outcome, Exception):
                result.failures[subject.storage_key] = _describe(outcome)
            else:
                result.weeks.append(outcome)
        _logger.info(
            "Week batch from %s finished: %s succeeded, %s failed",
            week_start,
            len(result.weeks),
            len(result.failures),
        )
        return result

    async def _for_each_subject(
        self,
        subjects: list[SubjectKey],
        func: Callable[[SubjectKey], Awaitable[_T]],
        *,
        action: str,
    ) -> list[tuple[SubjectKey, _T | Exception]]:
        semaphore = asyncio.Semaphore(max(self.max_concurrent_subjects, 1))

        async def run(subject: SubjectKey) -> _T | Exception:
            async with semaphore:
                try:
                    return await func(subject)
                except Exception as exc:
                    _logger.exception("%s failed for %s", action, subject.storage_key)
                    return exc

        outcomes = await asyncio.gather(*(run(subject) for subject in subjects))
        return list(zip(subjects, outcomes, strict=True))

    async def purge_usage_history(self, as_of: date | None = None) -> int:
        """Delete usage records older than the ledger's retention period."""
        return await self._call_with_retry(
            lambda: self.selector.ledger.purge_older_than(as_of=as_of),
            action="purge_usage",
        )

    async def _candidate_pool(
        self, meal_type: MealType, preferences: frozenset[str]
    ) -> tuple[RecipeCandidate, ...]:
        cache_key = pool_cache_key(meal_type, preferences)
        cached = self.cache.get(cache_key)
        if isinstance(cached, tuple):
            return cached
        fetched = await self._call_with_retry(
            lambda: self.pools.get_candidates(meal_type, preferences),
            action=f"get_candidates:{meal_type}",
        )
        pool = tuple(fetched)
        if pool:
            self.cache.set(cache_key, pool, ttl_seconds=self.pool_cache_ttl_seconds)
        return pool

    async def _call_with_retry(self, func: Callable[[], _T], *, action: str) -> _T:
        """Run a blocking call in a thread with a timeout and a short retry."""
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(func), timeout=self.fetch_timeout_seconds
                )
            except Exception as exc:
                attempt += 1
                _logger.warning(
                    "Planner %s failed (attempt %s/%s): %r",
                    action,
                    attempt,
                    self.retry_attempts + 1,
                    exc,
                )
                if attempt > self.retry_attempts:
                    raise
                await asyncio.sleep(self.retry_delay_seconds)


def next_monday(day: date) -> date:
    """Return the first Monday strictly after day."""
    return day + timedelta(days=DAYS_PER_WEEK - day.weekday())


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__
