"""Bundled food table and lookup of classifier labels against it."""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from importlib import resources

from pydantic import BaseModel, Field, TypeAdapter

logger = logging.getLogger(__name__)

DEFAULT_SERVING_SIZE_G: float = 100.0


class Nutrients(BaseModel):
    """Macros for one typical serving."""

    calories: float
    protein_g: float
    fat_g: float
    carbs_g: float
    fiber_g: float
    sugar_g: float


class FoodItem(BaseModel):
    """One entry of the bundled food table."""

    name: str
    emoji: str | None = None
    serving: str = Field(description="Human-readable serving description, e.g. '1 medium apple (182g)'")
    nutrients: Nutrients


class NutritionItem(BaseModel):
    """A food as it is logged against a meal."""

    name: str
    calories: float
    serving_size_g: float
    fat_total_g: float
    protein_g: float
    carbohydrates_total_g: float
    fiber_g: float
    sugar_g: float

    @classmethod
    def from_food(cls, food: FoodItem) -> NutritionItem:
        n = food.nutrients
        return cls(
            name=food.name,
            calories=n.calories,
            serving_size_g=DEFAULT_SERVING_SIZE_G,
            fat_total_g=n.fat_g,
            protein_g=n.protein_g,
            carbohydrates_total_g=n.carbs_g,
            fiber_g=n.fiber_g,
            sugar_g=n.sugar_g,
        )


_FOOD_LIST = TypeAdapter(list[FoodItem])


def _base_name(name: str) -> str:
    return name.split(" (", 1)[0]


class FoodDatabase:
    """Case-insensitive lookup over a fixed list of foods."""

    def __init__(self, foods: list[FoodItem]) -> None:
        self._foods = tuple(foods)

    def __len__(self) -> int:
        return len(self._foods)

    def search(self, query: str) -> FoodItem | None:
        """Return the first food whose name or serving contains ``query``."""
        term = query.strip().lower()
        if not term:
            return None
        for food in self._foods:
            if term in food.name.lower() or term in food.serving.lower():
                return food
        return None

    def match_label(self, label: str) -> FoodItem | None:
        """Return the first food whose name contains ``label`` as whole words.

        Meant for classifier labels, which are not user queries: serving text
        and the parenthetical part of a name are ignored, and a plural "s" on
        the food name is accepted (``"mushroom"`` finds "Mushrooms (white)").
        """
        term = " ".join(label.lower().split())
        if not term:
            return None
        pattern = re.compile(rf"\b{re.escape(term)}s?\b")
        for food in self._foods:
            if pattern.search(_base_name(food.name).lower()):
                return food
        return None

    def suggestions(self, count: int = 5) -> list[str]:
        return [food.name for food in self._foods[:count]]


@lru_cache(maxsize=1)
def load_food_database() -> FoodDatabase:
    """Load the food table shipped with the package."""
    raw = resources.files("nutrilens").joinpath("data/foods.json").read_text(encoding="utf-8")
    foods = _FOOD_LIST.validate_json(raw)
    logger.info("Loaded %s foods", len(foods))
    return FoodDatabase(foods)
