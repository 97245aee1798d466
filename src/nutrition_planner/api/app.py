"""FastAPI application factory."""

import logging
from datetime import UTC, date, datetime
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request, status

from nutrition_planner.api.cron import router as cron_router
from nutrition_planner.api.models import (
    DailyPlanModel,
    TargetProfileModel,
    WeeklyPlanModel,
)
from nutrition_planner.app_logging import configure_logging
from nutrition_planner.containers import AppContainer
from nutrition_planner.domain.errors import NoEligibleRecipeError
from nutrition_planner.domain.profiles import SubjectKey
from nutrition_planner.services.planning import next_monday

_logger = logging.getLogger(__name__)


def _today() -> date:
    return datetime.now(tz=UTC).date()


def _unprocessable(subject_key: str, exc: NoEligibleRecipeError) -> HTTPException:
    _logger.warning("Plan for %s not generated: %s", subject_key, exc)
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "error": str(exc),
            "meal_type": exc.meal_type.value,
            "excluded_ingredients": sorted(exc.excluded_ingredients),
            "states": [state.value for state in exc.states],
        },
    )


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)

    app = FastAPI()
    app.state.container = container

    app.include_router(cron_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/targets/{user_id}")
    async def get_targets(
        user_id: UUID, request: Request, family_member_id: UUID | None = None
    ) -> TargetProfileModel:
        """Return aggregated daily targets and slot targets for a subject."""
        state_container: AppContainer = request.app.state.container
        subject = SubjectKey(user_id=user_id, family_member_id=family_member_id)
        targets, slots = await state_container.planning_service.compute_targets(
            subject
        )
        return TargetProfileModel.from_targets(targets, slots)

    @app.post("/plans/{user_id}")
    async def create_plan(
        user_id: UUID,
        request: Request,
        family_member_id: UUID | None = None,
        plan_date: date | None = None,
    ) -> DailyPlanModel:
        """Generate and store the plan for one subject and day."""
        state_container: AppContainer = request.app.state.container
        subject = SubjectKey(user_id=user_id, family_member_id=family_member_id)
        try:
            plan = await state_container.planning_service.generate_plan(
                subject, plan_date or _today()
            )
        except NoEligibleRecipeError as exc:
            raise _unprocessable(subject.storage_key, exc) from exc
        return DailyPlanModel.from_plan(plan)

    @app.post("/plans/{user_id}/week")
    async def create_week(
        user_id: UUID,
        request: Request,
        family_member_id: UUID | None = None,
        week_start: date | None = None,
    ) -> WeeklyPlanModel:
        """Generate seven days of plans, by default for the coming week."""
        state_container: AppContainer = request.app.state.container
        subject = SubjectKey(user_id=user_id, family_member_id=family_member_id)
        try:
            week = await state_container.planning_service.generate_week(
                subject, week_start or next_monday(_today())
            )
        except NoEligibleRecipeError as exc:
            raise _unprocessable(subject.storage_key, exc) from exc
        return WeeklyPlanModel.from_week(week)

    @app.post("/plans/{user_id}/household")
    async def create_household_plan(
        user_id: UUID, request: Request, plan_date: date | None = None
    ) -> DailyPlanModel:
        """Generate one plan shared by a user and their family members."""
        state_container: AppContainer = request.app.state.container
        subject = SubjectKey.for_household(user_id)
        try:
            plan = await state_container.planning_service.generate_household_plan(
                user_id, plan_date or _today()
            )
        except NoEligibleRecipeError as exc:
            raise _unprocessable(subject.storage_key, exc) from exc
        return DailyPlanModel.from_plan(plan)

    return app
