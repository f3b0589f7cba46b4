"""Pairing of food occurrences with the symptoms that follow them."""

import bisect
import logging
from datetime import timedelta

from app.services.analysis_schemas import (
    CorrelationEvidence,
    FoodOccurrence,
    SymptomOccurrence,
)

logger = logging.getLogger(__name__)


class EvidenceService:
    """Finds (food, symptom) pairs that fall inside the lag window."""

    @staticmethod
    def calculate_temporal_weight(time_lag: timedelta, window_size_hours: int) -> float:
        """Linear decay over the lag window, using whole hours of lag."""
        lag_hours = time_lag // timedelta(hours=1)
        return min(1.0, max(0.0, 1.0 - lag_hours / window_size_hours))

    @staticmethod
    def find_correlation_evidence(
        symptoms: list[SymptomOccurrence],
        foods: list[FoodOccurrence],
        window_size_hours: int,
    ) -> dict[str, list[CorrelationEvidence]]:
        """
        Collect correlation evidence grouped by food name.

        A food qualifies for a symptom when it was eaten strictly before the
        symptom and no more than window_size_hours earlier.

        Args:
            symptoms: Symptom occurrences of a single type
            foods: Food occurrences to pair against
            window_size_hours: Maximum lag between eating and the symptom

        Returns:
            Evidence lists keyed by food name, in first-seen order
        """
        window = timedelta(hours=window_size_hours)
        ordered_foods = sorted(foods, key=lambda f: f.timestamp)
        food_times = [f.timestamp for f in ordered_foods]

        evidence: dict[str, list[CorrelationEvidence]] = {}
        for symptom in symptoms:
            lo = bisect.bisect_left(food_times, symptom.timestamp - window)
            hi = bisect.bisect_left(food_times, symptom.timestamp)
            for food in ordered_foods[lo:hi]:
                time_lag = symptom.timestamp - food.timestamp
                evidence.setdefault(food.name, []).append(
                    CorrelationEvidence(
                        food_timestamp=food.timestamp,
                        symptom_timestamp=symptom.timestamp,
                        time_lag=time_lag,
                        symptom_intensity=symptom.intensity,
                        food_quantity=food.quantity,
                        temporal_weight=EvidenceService.calculate_temporal_weight(
                            time_lag, window_size_hours
                        ),
                        contextual_notes=food.notes,
                    )
                )

        logger.debug(
            "Found evidence for %d foods across %d symptoms", len(evidence), len(symptoms)
        )
        return evidence
