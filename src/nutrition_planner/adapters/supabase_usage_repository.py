"""Supabase repository for recipe usage history."""

from dataclasses import dataclass
from datetime import date

from supabase import Client

from nutrition_planner.domain.targets import MealType
from nutrition_planner.domain.usage import UsageRecord
from nutrition_planner.services.ledger import UsageHistoryStore


@dataclass
class SupabaseUsageRepository(UsageHistoryStore):
    """Stores usage rows in ``recipe_usage_history``."""

    client: Client

    def find_usage(
        self,
        subject_key: str,
        start: date,
        end: date,
        recipe_identifier: str | None = None,
    ) -> list[UsageRecord]:
        """Return usage rows for the subject with start <= used_date < end."""
        query = (
            self.client.table("recipe_usage_history")
            .select("subject_key, recipe_identifier, meal_type, used_date")
            .eq("subject_key", subject_key)
            .gte("used_date", start.isoformat())
            .lt("used_date", end.isoformat())
        )
        if recipe_identifier is not None:
            query = query.eq("recipe_identifier", recipe_identifier)
        response = query.order("used_date", desc=False).execute()
        return [
            UsageRecord(
                subject_key=row["subject_key"],
                recipe_identifier=row["recipe_identifier"],
                meal_type=MealType(row["meal_type"]),
                used_date=date.fromisoformat(row["used_date"]),
            )
            for row in response.data or []
        ]

    def upsert_usage(self, record: UsageRecord) -> None:
        """Insert or overwrite the row for subject, meal type and day."""
        response = (
            self.client.table("recipe_usage_history")
            .upsert(
                {
                    "subject_key": record.subject_key,
                    "recipe_identifier": record.recipe_identifier,
                    "meal_type": record.meal_type.value,
                    "used_date": record.used_date.isoformat(),
                },
                on_conflict="subject_key,meal_type,used_date",
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to record recipe usage")

    def delete_usage_before(self, cutoff: date) -> int:
        """Delete rows older than the cutoff and return how many were removed."""
        response = (
            self.client.table("recipe_usage_history")
            .delete()
            .lt("used_date", cutoff.isoformat())
            .execute()
        )
        return len(response.data or [])
