"""User filters applied before and after trigger analysis."""

import logging
from datetime import timedelta
from typing import Optional

from app.config import AnalysisConfig
from app.services.analysis_schemas import (
    AnalysisFilters,
    AnalysisTimeWindow,
    FilterStats,
    FoodOccurrence,
    SymptomAnalysis,
    SymptomOccurrence,
    TriggerProbability,
)
from app.services.trigger_categories import classify_food

logger = logging.getLogger(__name__)


class AnalysisFilterService:
    """
    Applies AnalysisFilters at both ends of the pipeline.

    Pre-filters narrow the raw occurrences; post-filters narrow the finished
    analyses. Every method returns new collections and leaves its input
    untouched, and applying the same filters twice gives the same result.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    @staticmethod
    def filter_symptom_occurrences(
        symptoms: list[SymptomOccurrence], filters: AnalysisFilters
    ) -> list[SymptomOccurrence]:
        return [
            symptom
            for symptom in symptoms
            if (filters.severity_threshold is None or symptom.intensity >= filters.severity_threshold)
            and (not filters.symptom_types or symptom.type in filters.symptom_types)
        ]

    @staticmethod
    def filter_food_occurrences(
        foods: list[FoodOccurrence], filters: AnalysisFilters
    ) -> list[FoodOccurrence]:
        return [
            food
            for food in foods
            if food.name not in filters.exclude_foods
            and (not filters.food_categories or classify_food(food.name) in filters.food_categories)
        ]

    def apply_filters(
        self, analyses: list[SymptomAnalysis], filters: AnalysisFilters
    ) -> list[SymptomAnalysis]:
        """
        Post-filter finished analyses.

        Drops analyses outside the allowed symptom types or below the severity
        threshold, strips triggers that fail the trigger filters, then drops
        analyses left without triggers unless low-occurrence correlations are
        requested.
        """
        filtered = []
        for analysis in analyses:
            if filters.symptom_types and analysis.symptom_type not in filters.symptom_types:
                continue
            if (
                filters.severity_threshold is not None
                and analysis.average_intensity < filters.severity_threshold
            ):
                continue

            triggers = tuple(
                t for t in analysis.trigger_probabilities if self._trigger_passes(t, filters)
            )
            if not triggers and not filters.show_low_occurrence_correlations:
                continue
            filtered.append(analysis.model_copy(update={"trigger_probabilities": triggers}))

        logger.debug("Post-filter kept %d of %d analyses", len(filtered), len(analyses))
        return filtered

    def _trigger_passes(self, trigger: TriggerProbability, filters: AnalysisFilters) -> bool:
        if trigger.confidence < filters.minimum_confidence:
            return False
        if filters.food_categories and trigger.category not in filters.food_categories:
            return False
        if trigger.food_name in filters.exclude_foods:
            return False
        if (
            not filters.show_low_occurrence_correlations
            and trigger.occurrence_count < self.config.low_occurrence_trigger_count
        ):
            return False
        return True

    @staticmethod
    def apply_time_window_filters(
        analyses: list[SymptomAnalysis], time_window: AnalysisTimeWindow
    ) -> list[SymptomAnalysis]:
        """Drop analyses below the window minimum and triggers lagging past the window."""
        filtered = []
        for analysis in analyses:
            if analysis.total_occurrences < time_window.minimum_occurrences:
                continue
            triggers = tuple(
                t
                for t in analysis.trigger_probabilities
                if t.average_time_lag // timedelta(hours=1) <= time_window.window_size_hours
            )
            filtered.append(analysis.model_copy(update={"trigger_probabilities": triggers}))
        return filtered


def compute_filter_stats(
    before: list[SymptomAnalysis],
    after: list[SymptomAnalysis],
    filters: AnalysisFilters,
) -> FilterStats:
    """Summarize how much a filtering pass removed."""
    return FilterStats(
        original_analysis_count=len(before),
        filtered_analysis_count=len(after),
        original_trigger_count=sum(len(a.trigger_probabilities) for a in before),
        filtered_trigger_count=sum(len(a.trigger_probabilities) for a in after),
        filtering_reduction=1.0 - len(after) / len(before) if before else 0.0,
        active_filter_count=filters.active_filter_count(),
    )
