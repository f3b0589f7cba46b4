"""
IBS trigger categories and the keyword classifier that assigns them.

Each category carries a fixed baseline prior used as the baseline component
of a food's trigger probability.
"""

from enum import Enum


class TriggerCategory(str, Enum):
    DAIRY = "dairy"
    GLUTEN = "gluten"
    FODMAP_HIGH = "fodmap_high"
    CAFFEINE = "caffeine"
    ALCOHOL = "alcohol"
    SPICY = "spicy"
    FATTY = "fatty"
    ARTIFICIAL_SWEETENERS = "artificial_sweeteners"
    CITRUS = "citrus"
    BEANS_LEGUMES = "beans_legumes"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return CATEGORY_DISPLAY_NAMES[self]

    @property
    def baseline_probability(self) -> float:
        return CATEGORY_BASELINES[self]


CATEGORY_DISPLAY_NAMES = {
    TriggerCategory.DAIRY: "Dairy",
    TriggerCategory.GLUTEN: "Gluten",
    TriggerCategory.FODMAP_HIGH: "High FODMAP",
    TriggerCategory.CAFFEINE: "Caffeine",
    TriggerCategory.ALCOHOL: "Alcohol",
    TriggerCategory.SPICY: "Spicy Foods",
    TriggerCategory.FATTY: "Fatty Foods",
    TriggerCategory.ARTIFICIAL_SWEETENERS: "Artificial Sweeteners",
    TriggerCategory.CITRUS: "Citrus",
    TriggerCategory.BEANS_LEGUMES: "Beans & Legumes",
    TriggerCategory.OTHER: "Other",
}

CATEGORY_BASELINES = {
    TriggerCategory.DAIRY: 0.65,
    TriggerCategory.GLUTEN: 0.45,
    TriggerCategory.FODMAP_HIGH: 0.75,
    TriggerCategory.CAFFEINE: 0.55,
    TriggerCategory.ALCOHOL: 0.60,
    TriggerCategory.SPICY: 0.50,
    TriggerCategory.FATTY: 0.58,
    TriggerCategory.ARTIFICIAL_SWEETENERS: 0.70,
    TriggerCategory.CITRUS: 0.40,
    TriggerCategory.BEANS_LEGUMES: 0.52,
    TriggerCategory.OTHER: 0.30,
}

# Checked in order, first match wins. Substring match, so "tea" also
# matches "steak" and "hot" matches "hot dog".
CATEGORY_KEYWORDS: tuple[tuple[TriggerCategory, tuple[str, ...]], ...] = (
    (TriggerCategory.DAIRY, ("milk", "cheese", "yogurt", "dairy")),
    (TriggerCategory.GLUTEN, ("wheat", "bread", "pasta", "gluten")),
    (TriggerCategory.CAFFEINE, ("coffee", "tea", "caffeine")),
    (TriggerCategory.ALCOHOL, ("beer", "wine", "alcohol")),
    (TriggerCategory.SPICY, ("spicy", "hot", "pepper")),
    (TriggerCategory.BEANS_LEGUMES, ("beans", "lentils", "chickpeas")),
    (TriggerCategory.CITRUS, ("orange", "lemon", "lime", "citrus")),
)


def classify_food(food_name: str) -> TriggerCategory:
    """Assign a trigger category to a food name by keyword lookup."""
    lowered = food_name.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return TriggerCategory.OTHER
