"""Dependency container wiring for the application."""

from dataclasses import dataclass

from supabase import create_client

from nutrition_planner.adapters.supabase_plan_repository import SupabasePlanRepository
from nutrition_planner.adapters.supabase_profile_repository import (
    SupabaseProfileRepository,
)
from nutrition_planner.adapters.supabase_recipe_repository import (
    SupabaseRecipeRepository,
)
from nutrition_planner.adapters.supabase_usage_repository import (
    SupabaseUsageRepository,
)
from nutrition_planner.config import Settings
from nutrition_planner.services.aggregation import ConditionAggregator
from nutrition_planner.services.cache import InMemoryCache
from nutrition_planner.services.catalog import ConditionRuleCatalog
from nutrition_planner.services.ledger import UsageHistoryLedger
from nutrition_planner.services.planning import PlanningService
from nutrition_planner.services.rationale import SelectionRationaleBuilder
from nutrition_planner.services.selection import RecipeSelector


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    catalog: ConditionRuleCatalog
    aggregator: ConditionAggregator
    ledger: UsageHistoryLedger
    planning_service: PlanningService


def build_catalog(settings: Settings) -> ConditionRuleCatalog:
    """Return the built-in catalog, extended by the configured JSON file."""
    if settings.condition_rules_path:
        return ConditionRuleCatalog.from_json(settings.condition_rules_path)
    return ConditionRuleCatalog.default()


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    catalog = build_catalog(resolved_settings)
    aggregator = ConditionAggregator(catalog)
    ledger = UsageHistoryLedger(
        store=SupabaseUsageRepository(supabase_client),
        retention_days=resolved_settings.usage_retention_days,
        retry_attempts=resolved_settings.retry_attempts,
        retry_delay_seconds=resolved_settings.retry_delay_seconds,
    )
    selector = RecipeSelector(
        ledger=ledger, dedup_window_days=resolved_settings.dedup_window_days
    )
    planning_service = PlanningService(
        profiles=SupabaseProfileRepository(supabase_client),
        pools=SupabaseRecipeRepository(
            supabase_client, pool_size=resolved_settings.candidate_pool_size
        ),
        persister=SupabasePlanRepository(supabase_client),
        aggregator=aggregator,
        selector=selector,
        rationale_builder=SelectionRationaleBuilder.from_catalog(catalog),
        cache=InMemoryCache(),
        pool_cache_ttl_seconds=resolved_settings.pool_cache_ttl_seconds,
        fetch_timeout_seconds=resolved_settings.fetch_timeout_seconds,
        retry_attempts=resolved_settings.retry_attempts,
        retry_delay_seconds=resolved_settings.retry_delay_seconds,
        max_concurrent_subjects=resolved_settings.max_concurrent_subjects,
    )
    return AppContainer(
        settings=resolved_settings,
        catalog=catalog,
        aggregator=aggregator,
        ledger=ledger,
        planning_service=planning_service,
    )
