"""Supabase repository for generated daily plans."""

from dataclasses import dataclass

from supabase import Client

from nutrition_planner.domain.plans import DailyPlan
from nutrition_planner.services.planning import PlanPersister


@dataclass
class SupabasePlanRepository(PlanPersister):
    """Upserts one ``diet_plans`` row per planned meal."""

    client: Client

    def save_plan(self, plan: DailyPlan) -> None:
        """Write the plan; regenerating a day overwrites its rows."""
        subject = plan.subject
        payload = []
        for meal in plan.meals:
            nutrition = meal.recipe.nutrition
            payload.append(
                {
                    "subject_key": subject.storage_key,
                    "user_id": str(subject.user_id),
                    "family_member_id": (
                        str(subject.family_member_id)
                        if subject.family_member_id
                        else None
                    ),
                    "is_household": subject.household,
                    "plan_date": plan.plan_date.isoformat(),
                    "meal_type": meal.slot.meal_type.value,
                    "recipe_id": meal.recipe.id,
                    "recipe_title": meal.recipe.title,
                    "calories": nutrition.calories,
                    "protein_g": nutrition.protein_g,
                    "carbs_g": nutrition.carbs_g,
                    "fat_g": nutrition.fat_g,
                    "sodium_mg": nutrition.sodium_mg,
                    "calorie_target": meal.slot.calorie_target,
                    "score": meal.score.score,
                    "rationale": meal.rationale.render(),
                }
            )
        if not payload:
            return
        response = (
            self.client.table("diet_plans")
            .upsert(payload, on_conflict="subject_key,plan_date,meal_type")
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to save diet plan")
