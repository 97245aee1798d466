"""Scheduled endpoints protected by the cron secret."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from nutrition_planner.api.models import BatchRunModel
from nutrition_planner.config import parse_user_ids
from nutrition_planner.services.planning import next_monday

if TYPE_CHECKING:
    from nutrition_planner.containers import AppContainer

router = APIRouter(prefix="/cron", tags=["cron"])

SUNDAY = 6


def _get_cron_secret(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.cron_secret


async def require_cron_secret(
    authorization: str | None = Header(default=None),
    cron_secret: str = Depends(_get_cron_secret),
) -> None:
    """Ensure requests carry ``Authorization: Bearer <cron_secret>``."""
    if not authorization or authorization != f"Bearer {cron_secret}":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/generate-daily-plans", dependencies=[Depends(require_cron_secret)])
async def generate_daily_plans(
    request: Request, plan_date: date | None = None
) -> BatchRunModel:
    """Generate today's plans for every allowed subject and purge old usage.

    On Sundays the run also generates next week's plans starting Monday.
    """
    container: AppContainer = request.app.state.container
    service = container.planning_service
    resolved_date = plan_date or datetime.now(tz=UTC).date()

    subjects = await service.list_subjects(
        parse_user_ids(container.settings.cron_user_ids)
    )

    result = await service.generate_batch(resolved_date, subjects)
    run = BatchRunModel(
        total=result.total,
        success=len(result.plans),
        failed=len(result.failures),
        errors=dict(result.failures),
        purged=0,
    )

    if resolved_date.weekday() == SUNDAY:
        week_start = next_monday(resolved_date)
        weekly = await service.generate_week_batch(week_start, subjects)
        run.next_week_start = week_start
        run.weekly_generated = len(weekly.weeks)
        run.weekly_failed = len(weekly.failures)
        run.errors.update(
            {f"week:{key}": message for key, message in weekly.failures.items()}
        )

    run.purged = await service.purge_usage_history(as_of=resolved_date)
    return run
