"""
Trigger probability scoring.

Combines three signals per food into a probability:

- temporal: how soon after eating symptoms appeared (exponential decay)
- baseline: the category's prior as a known IBS trigger
- frequency: the share of symptom episodes preceded by the food
"""

import logging
import math
from collections import Counter
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError

from app.config import AnalysisConfig
from app.services.analysis_schemas import (
    CorrelationEvidence,
    FoodOccurrence,
    TriggerProbability,
)
from app.services.trigger_categories import TriggerCategory, classify_food

logger = logging.getLogger(__name__)


class CorrelationService:
    """Scores foods as potential triggers from their correlation evidence."""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def calculate_trigger_probability(
        self,
        food_name: str,
        category: TriggerCategory,
        evidence: list[CorrelationEvidence],
        total_food_occurrences: int,
        total_symptom_occurrences: int,
    ) -> Optional[TriggerProbability]:
        """
        Score a single food.

        Args:
            food_name: Food being scored
            category: Trigger category of the food
            evidence: Evidence pairs for this food and one symptom type
            total_food_occurrences: Times the food appears in the scored food set
            total_symptom_occurrences: Occurrences of the symptom type

        Returns:
            TriggerProbability, or None when there is nothing to score

        Raises:
            ValueError: If the average lag exceeds the configured maximum
        """
        if not evidence or total_food_occurrences == 0:
            return None

        cfg = self.config
        count = len(evidence)

        correlation_score = min(1.0, max(0.0, count / total_food_occurrences))
        temporal_score = self.calculate_temporal_score(evidence)
        baseline_score = category.baseline_probability
        frequency_score = self.calculate_frequency_score(count, total_symptom_occurrences)

        probability = min(
            1.0,
            max(
                0.0,
                temporal_score * cfg.temporal_weight
                + baseline_score * cfg.baseline_weight
                + frequency_score * cfg.frequency_weight,
            ),
        )

        average_time_lag = self.calculate_average_time_lag(evidence)
        if average_time_lag > timedelta(hours=cfg.max_time_lag_hours):
            raise ValueError(
                f"average lag {average_time_lag} exceeds {cfg.max_time_lag_hours}h"
            )

        return TriggerProbability(
            food_name=food_name,
            category=category,
            probability=probability,
            confidence=self.calculate_confidence(count, total_food_occurrences),
            occurrence_count=count,
            correlation_score=correlation_score,
            temporal_score=temporal_score,
            baseline_score=baseline_score,
            frequency_score=frequency_score,
            average_time_lag=average_time_lag,
            intensity_multiplier=self.calculate_intensity_multiplier(evidence),
            last_correlation_date=max(ev.symptom_timestamp for ev in evidence),
            supporting_evidence=tuple(evidence),
        )

    def calculate_temporal_score(self, evidence: list[CorrelationEvidence]) -> float:
        if not evidence:
            return 0.0
        decay = self.config.temporal_decay_hours
        weighted = sum(
            math.exp(-ev.lag_hours / decay) * ev.temporal_weight for ev in evidence
        ) / len(evidence)
        return min(1.0, max(0.0, weighted))

    @staticmethod
    def calculate_frequency_score(evidence_count: int, total_symptom_occurrences: int) -> float:
        if total_symptom_occurrences == 0:
            return 0.0
        return min(1.0, max(0.0, evidence_count / total_symptom_occurrences))

    def calculate_confidence(self, evidence_count: int, total_food_occurrences: int) -> float:
        sample_size_weight = min(1.0, evidence_count / self.config.confidence_sample_size)
        consistency_weight = min(1.0, evidence_count / total_food_occurrences)
        return min(1.0, max(0.0, (sample_size_weight + consistency_weight) / 2))

    @staticmethod
    def calculate_average_time_lag(evidence: list[CorrelationEvidence]) -> timedelta:
        """Mean lag in whole minutes, floor-divided."""
        if not evidence:
            return timedelta(0)
        total_minutes = sum(ev.time_lag // timedelta(minutes=1) for ev in evidence)
        return timedelta(minutes=total_minutes // len(evidence))

    def calculate_intensity_multiplier(self, evidence: list[CorrelationEvidence]) -> float:
        if not evidence:
            return 1.0
        cfg = self.config
        average_intensity = sum(ev.symptom_intensity for ev in evidence) / len(evidence)
        return min(
            cfg.intensity_multiplier_max,
            max(cfg.intensity_multiplier_min, average_intensity / cfg.intensity_midpoint),
        )

    def score_triggers(
        self,
        evidence_by_food: dict[str, list[CorrelationEvidence]],
        foods: list[FoodOccurrence],
        total_symptom_occurrences: int,
    ) -> list[TriggerProbability]:
        """
        Score every food that has evidence.

        A food whose scoring fails is logged and skipped so one bad food
        never aborts the whole run.
        """
        food_counts = Counter(food.name for food in foods)
        triggers = []
        for food_name, evidence in evidence_by_food.items():
            try:
                trigger = self.calculate_trigger_probability(
                    food_name,
                    classify_food(food_name),
                    evidence,
                    food_counts[food_name],
                    total_symptom_occurrences,
                )
            except (ValueError, ValidationError) as e:
                logger.warning("Skipping trigger scoring for %r: %s", food_name, e)
                continue
            if trigger is not None:
                triggers.append(trigger)
        return triggers
