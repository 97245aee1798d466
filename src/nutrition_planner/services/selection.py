"""Recipe selection per meal slot with recency relaxation."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Protocol

from nutrition_planner.domain.errors import LedgerWriteFailure, NoEligibleRecipeError
from nutrition_planner.domain.plans import MealSelection, SelectionState
from nutrition_planner.domain.recipes import RecipeCandidate, ScoredCandidate
from nutrition_planner.domain.targets import MealSlotTarget, MealType
from nutrition_planner.services.ledger import DEFAULT_DEDUP_WINDOW_DAYS, UsageHistoryLedger
from nutrition_planner.services.scoring import RecipeScorer

MIN_RELAXED_WINDOW_DAYS = 7

_logger = logging.getLogger(__name__)


class CandidatePoolProvider(Protocol):
    """Source of candidate recipes for a meal type."""

    def get_candidates(
        self, meal_type: MealType, preferences: frozenset[str]
    ) -> list[RecipeCandidate]:
        """Return candidate recipes; may be empty."""


def relaxation_windows(start_days: int) -> tuple[int, ...]:
    """Return the dedup windows to try, halving down to zero.

    Windows shorter than a week are skipped: 30 -> 15 -> 7 -> 0.
    """
    windows = [max(start_days, 0)]
    while windows[-1] > 0:
        halved = windows[-1] // 2
        windows.append(halved if halved >= MIN_RELAXED_WINDOW_DAYS else 0)
    return tuple(windows)


@dataclass
class RecipeSelector:
    """Picks one recipe per slot: hard exclusion first, then soft recency."""

    ledger: UsageHistoryLedger
    dedup_window_days: int = DEFAULT_DEDUP_WINDOW_DAYS

    def select(
        self,
        subject_key: str,
        slot: MealSlotTarget,
        scorer: RecipeScorer,
        pool: Sequence[RecipeCandidate],
        plan_date: date,
    ) -> MealSelection:
        """Select the best fresh recipe for a slot and record its usage."""
        states = [SelectionState.PENDING, SelectionState.SCORING]
        ranking = scorer.rank(slot, pool)
        if len(ranking) < len(pool):
            _logger.debug(
                "%s: %s of %s candidates excluded",
                slot.meal_type,
                len(pool) - len(ranking),
                len(pool),
            )

        for index, window in enumerate(relaxation_windows(self.dedup_window_days)):
            if index > 0:
                states.extend((SelectionState.RELAXING, SelectionState.SCORING))
            fresh = self._fresh(subject_key, ranking, window, plan_date)
            if not fresh:
                _logger.info(
                    "%s: no fresh recipe within %s days for %s",
                    slot.meal_type,
                    window,
                    subject_key,
                )
                continue
            states.append(SelectionState.SELECTED)
            chosen = fresh[0]
            recorded = self._record(subject_key, slot.meal_type, chosen, plan_date)
            _logger.info(
                "%s: selected %s (score=%.2f, window=%s days) for %s",
                slot.meal_type,
                chosen.candidate.title,
                chosen.score,
                window,
                subject_key,
            )
            return MealSelection(
                slot=slot,
                selected=chosen,
                ranking=tuple(ranking),
                dedup_window_days=window,
                states=tuple(states),
                usage_recorded=recorded,
            )

        states.append(SelectionState.EXHAUSTED)
        _logger.warning(
            "%s: no eligible recipe for %s (pool=%s)",
            slot.meal_type,
            subject_key,
            len(pool),
        )
        raise NoEligibleRecipeError(
            slot.meal_type, scorer.targets.excluded_ingredients, tuple(states)
        )

    def _fresh(
        self,
        subject_key: str,
        ranking: list[ScoredCandidate],
        window: int,
        plan_date: date,
    ) -> list[ScoredCandidate]:
        if not ranking:
            return []
        used = self.ledger.recently_used(subject_key, window, as_of=plan_date)
        return [item for item in ranking if item.candidate.identifier not in used]

    def _record(
        self,
        subject_key: str,
        meal_type: MealType,
        chosen: ScoredCandidate,
        plan_date: date,
    ) -> bool:
        try:
            self.ledger.record(
                subject_key, chosen.candidate.identifier, meal_type, plan_date
            )
        except LedgerWriteFailure:
            _logger.exception(
                "Usage not recorded for %s %s; variety may degrade", subject_key, meal_type
            )
            return False
        return True
