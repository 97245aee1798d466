"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import date

import pytest

from nutrition_planner.config import Settings
from nutrition_planner.containers import AppContainer
from nutrition_planner.domain.plans import DailyPlan
from nutrition_planner.domain.profiles import HealthProfile, SubjectKey
from nutrition_planner.domain.recipes import NutritionFacts, RecipeCandidate
from nutrition_planner.domain.targets import MealType
from nutrition_planner.domain.usage import UsageRecord
from nutrition_planner.services.aggregation import ConditionAggregator
from nutrition_planner.services.cache import InMemoryCache
from nutrition_planner.services.catalog import ConditionRuleCatalog
from nutrition_planner.services.ledger import UsageHistoryLedger, UsageHistoryStore
from nutrition_planner.services.planning import (
    HealthProfileProvider,
    PlanningService,
    PlanPersister,
)
from nutrition_planner.services.rationale import SelectionRationaleBuilder
from nutrition_planner.services.selection import CandidatePoolProvider, RecipeSelector

PLAN_DATE = date(2026, 3, 10)


def make_recipe(  # noqa: PLR0913
    title: str,
    calories: float | None = None,
    protein_g: float | None = None,
    carbs_g: float | None = None,
    fat_g: float | None = None,
    tags: tuple[str, ...] = (),
    sodium_mg: float | None = None,
    fiber_g: float | None = None,
    recipe_id: str | None = None,
) -> RecipeCandidate:
    return RecipeCandidate(
        title=title,
        nutrition=NutritionFacts(
            calories=calories,
            protein_g=protein_g,
            carbs_g=carbs_g,
            fat_g=fat_g,
            sodium_mg=sodium_mg,
            fiber_g=fiber_g,
        ),
        ingredient_tags=frozenset(tags),
        id=recipe_id,
    )


def default_pools() -> dict[MealType, list[RecipeCandidate]]:
    return {
        MealType.BREAKFAST: [
            make_recipe("Oat Porridge", 540, 20, 80, 12, ("oat", "milk"), fiber_g=6),
            make_recipe("Veggie Omelette", 450, 28, 10, 30, ("egg", "spinach")),
        ],
        MealType.LUNCH: [
            make_recipe("Grilled Salmon Bowl", 690, 45, 70, 22, ("oily_fish", "rice")),
            make_recipe("Lentil Stew", 620, 30, 90, 10, ("legume", "carrot")),
        ],
        MealType.DINNER: [
            make_recipe("Chicken Stir Fry", 600, 40, 60, 18, ("chicken", "rice")),
            make_recipe("Tofu Curry", 580, 25, 65, 20, ("tofu", "coconut")),
        ],
        MealType.SNACK: [
            make_recipe("Apple Slices", 95, 0.5, 25, 0.3, ("apple",)),
            make_recipe("Greek Yogurt", 110, 10, 8, 3, ("low_fat_dairy",)),
        ],
    }


@dataclass
class InMemoryProfileRepository(HealthProfileProvider):
    """In-memory profile provider for tests."""

    profiles: dict[SubjectKey, HealthProfile] = field(default_factory=dict)
    failing: set[SubjectKey] = field(default_factory=set)
    failures_before_success: int = 0
    calls: int = 0

    def get_profile(self, subject: SubjectKey) -> HealthProfile:
        self.calls += 1
        if subject in self.failing:
            raise RuntimeError(f"profile store unavailable for {subject.storage_key}")
        if self.failures_before_success > 0:
            self.failures_before_success -= 1
            raise RuntimeError("temporary outage")
        return self.profiles.get(subject, HealthProfile())

    def list_subjects(self) -> list[SubjectKey]:
        return sorted(
            set(self.profiles) | self.failing,
            key=lambda subject: subject.storage_key,
        )


@dataclass
class InMemoryRecipeRepository(CandidatePoolProvider):
    """In-memory candidate pools keyed by meal type."""

    pools: dict[MealType, list[RecipeCandidate]] = field(default_factory=default_pools)
    calls: list[tuple[MealType, frozenset[str]]] = field(default_factory=list)

    def get_candidates(
        self, meal_type: MealType, preferences: frozenset[str]
    ) -> list[RecipeCandidate]:
        self.calls.append((meal_type, preferences))
        return list(self.pools.get(meal_type, []))


@dataclass
class InMemoryUsageStore(UsageHistoryStore):
    """In-memory usage history keyed like the database table."""

    records: dict[tuple[str, MealType, date], UsageRecord] = field(default_factory=dict)
    failing_writes: int = 0
    write_attempts: int = 0

    def find_usage(
        self,
        subject_key: str,
        start: date,
        end: date,
        recipe_identifier: str | None = None,
    ) -> list[UsageRecord]:
        return [
            record
            for record in self.records.values()
            if record.subject_key == subject_key
            and start <= record.used_date < end
            and (
                recipe_identifier is None
                or record.recipe_identifier == recipe_identifier
            )
        ]

    def upsert_usage(self, record: UsageRecord) -> None:
        self.write_attempts += 1
        if self.failing_writes > 0:
            self.failing_writes -= 1
            raise RuntimeError("usage table unavailable")
        self.records[(record.subject_key, record.meal_type, record.used_date)] = record

    def delete_usage_before(self, cutoff: date) -> int:
        stale = [key for key, record in self.records.items() if record.used_date < cutoff]
        for key in stale:
            del self.records[key]
        return len(stale)

    def add(
        self,
        subject_key: str,
        recipe_identifier: str,
        meal_type: MealType,
        used_date: date,
    ) -> None:
        self.records[(subject_key, meal_type, used_date)] = UsageRecord(
            subject_key=subject_key,
            recipe_identifier=recipe_identifier,
            meal_type=meal_type,
            used_date=used_date,
        )


@dataclass
class InMemoryPlanRepository(PlanPersister):
    """In-memory plan storage keyed by subject and date."""

    plans: dict[tuple[str, date], DailyPlan] = field(default_factory=dict)
    saves: int = 0

    def save_plan(self, plan: DailyPlan) -> None:
        self.saves += 1
        self.plans[(plan.subject.storage_key, plan.plan_date)] = plan


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="eyJhbGciOiJIUzI1NiJ9.eyJyb2xlIjoic2VydmljZSJ9.sig",
        cron_secret="cron-secret",
    )


@pytest.fixture
def catalog() -> ConditionRuleCatalog:
    return ConditionRuleCatalog.default()


@pytest.fixture
def aggregator(catalog: ConditionRuleCatalog) -> ConditionAggregator:
    return ConditionAggregator(catalog)


@pytest.fixture
def usage_store() -> InMemoryUsageStore:
    return InMemoryUsageStore()


@pytest.fixture
def ledger(usage_store: InMemoryUsageStore) -> UsageHistoryLedger:
    return UsageHistoryLedger(
        store=usage_store, retry_delay_seconds=0.0, clock=lambda: PLAN_DATE
    )


@pytest.fixture
def profile_repository() -> InMemoryProfileRepository:
    return InMemoryProfileRepository()


@pytest.fixture
def recipe_repository() -> InMemoryRecipeRepository:
    return InMemoryRecipeRepository()


@pytest.fixture
def plan_repository() -> InMemoryPlanRepository:
    return InMemoryPlanRepository()


@pytest.fixture
def planning_service(  # noqa: PLR0913
    profile_repository: InMemoryProfileRepository,
    recipe_repository: InMemoryRecipeRepository,
    plan_repository: InMemoryPlanRepository,
    aggregator: ConditionAggregator,
    ledger: UsageHistoryLedger,
    catalog: ConditionRuleCatalog,
) -> PlanningService:
    return PlanningService(
        profiles=profile_repository,
        pools=recipe_repository,
        persister=plan_repository,
        aggregator=aggregator,
        selector=RecipeSelector(ledger=ledger),
        rationale_builder=SelectionRationaleBuilder.from_catalog(catalog),
        cache=InMemoryCache(),
        fetch_timeout_seconds=5.0,
        retry_delay_seconds=0.0,
    )


@pytest.fixture
def container(
    settings: Settings,
    catalog: ConditionRuleCatalog,
    aggregator: ConditionAggregator,
    ledger: UsageHistoryLedger,
    planning_service: PlanningService,
) -> AppContainer:
    return AppContainer(
        settings=settings,
        catalog=catalog,
        aggregator=aggregator,
        ledger=ledger,
        planning_service=planning_service,
    )
