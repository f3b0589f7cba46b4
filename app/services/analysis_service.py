"""
Trigger analysis orchestration.

Drives one analysis run end to end:

1. Fetch symptoms and foods for the time window
2. Pre-filter the raw occurrences
3. Build one SymptomAnalysis per qualifying symptom type
   (chunked scoring for large datasets)
4. Detect patterns and attach them to the analyses
5. Score overall reliability
6. Time-window filter, post-filter and rank
"""

import logging
from typing import Optional

from app.config import AnalysisConfig, get_analysis_config
from app.services.analysis_schemas import (
    GENERAL_SYMPTOM_TYPE,
    AnalysisFilters,
    AnalysisResult,
    AnalysisTimeWindow,
    FoodOccurrence,
    RecommendationLevel,
    SeverityLevel,
    SymptomAnalysis,
    SymptomOccurrence,
    SymptomPattern,
    TriggerProbability,
    group_by_symptom,
)
from app.services.correlation_service import CorrelationService
from app.services.evidence_service import EvidenceService
from app.services.filter_service import AnalysisFilterService, compute_filter_stats
from app.services.occurrence_service import OccurrenceSource
from app.services.pattern_service import PatternDetectionService

logger = logging.getLogger(__name__)


def rank_trigger_probabilities(
    triggers: list[TriggerProbability], config: Optional[AnalysisConfig] = None
) -> list[TriggerProbability]:
    """
    Order triggers by a composite of probability, confidence and evidence volume.

    Ties are broken by occurrence count, highest first.
    """
    cfg = config or AnalysisConfig()

    def strength(trigger: TriggerProbability) -> float:
        evidence_score = min(1.0, trigger.occurrence_count / cfg.trigger_rank_evidence_target)
        return (
            trigger.probability * cfg.trigger_rank_probability_weight
            + trigger.confidence * cfg.trigger_rank_confidence_weight
            + evidence_score * cfg.trigger_rank_evidence_weight
        )

    return sorted(triggers, key=lambda t: (strength(t), t.occurrence_count), reverse=True)


class TriggerAnalysisService:
    """Runs the full trigger analysis pipeline against an occurrence source."""

    def __init__(self, source: OccurrenceSource, config: Optional[AnalysisConfig] = None):
        self.source = source
        self.config = config or get_analysis_config()
        self.correlation_service = CorrelationService(self.config)
        self.pattern_service = PatternDetectionService(self.config)
        self.filter_service = AnalysisFilterService(self.config)

    def run_analysis(
        self, time_window: AnalysisTimeWindow, filters: AnalysisFilters
    ) -> AnalysisResult:
        """
        Produce a ranked, reliability-scored report for the time window.

        Args:
            time_window: Dates, lag window and minimum occurrences
            filters: User filters applied before and after analysis

        Returns:
            AnalysisResult with symptom analyses ranked by correlation strength

        Raises:
            OccurrenceSourceError: If the source cannot be read
        """
        start, end = time_window.instant_range(self.config.timezone)
        symptoms = sorted(
            self.source.get_symptoms_in_time_range(start, end),
            key=lambda s: (s.timestamp, s.type),
        )
        foods = sorted(
            self.source.get_foods_in_time_range(start, end),
            key=lambda f: (f.timestamp, f.name),
        )
        logger.debug(
            "Fetched %d symptoms and %d foods between %s and %s",
            len(symptoms),
            len(foods),
            start,
            end,
        )

        filtered_symptoms = self.filter_service.filter_symptom_occurrences(symptoms, filters)
        filtered_foods = self.filter_service.filter_food_occurrences(foods, filters)

        symptoms_by_type: dict[str, list[SymptomOccurrence]] = {}
        for symptom in filtered_symptoms:
            symptoms_by_type.setdefault(symptom.type, []).append(symptom)

        large_dataset = (
            len(filtered_symptoms) + len(filtered_foods) > self.config.large_dataset_threshold
        )
        if large_dataset:
            logger.info(
                "Large dataset (%d events), scoring foods in chunks of %d",
                len(filtered_symptoms) + len(filtered_foods),
                self.config.batch_size,
            )

        analyses = []
        for symptom_type, occurrences in symptoms_by_type.items():
            if len(occurrences) < time_window.minimum_occurrences:
                logger.debug(
                    "Skipping %s: %d occurrences, need %d",
                    symptom_type,
                    len(occurrences),
                    time_window.minimum_occurrences,
                )
                continue
            if large_dataset:
                analysis = self.generate_symptom_analysis_in_batches(
                    symptom_type, occurrences, filtered_foods, time_window, filters
                )
            else:
                analysis = self.generate_symptom_analysis(
                    symptom_type, occurrences, filtered_foods, time_window, filters
                )
            if analysis is not None:
                analyses.append(analysis)

        analyses, general_patterns = self._attach_patterns(
            analyses, filtered_symptoms, filtered_foods
        )

        reliability_score = self.calculate_reliability_score(
            analyses, len(filtered_symptoms), len(filtered_foods), time_window.total_days
        )

        time_filtered = self.filter_service.apply_time_window_filters(analyses, time_window)
        final_analyses = self.filter_service.apply_filters(time_filtered, filters)
        filter_stats = compute_filter_stats(analyses, final_analyses, filters)
        ranked = self.rank_symptom_analyses(final_analyses)

        logger.info(
            "Analysis complete: %d symptom analyses, reliability %.2f",
            len(ranked),
            reliability_score,
        )
        return AnalysisResult(
            time_window=time_window,
            filters=filters,
            symptom_analyses=tuple(ranked),
            general_patterns=tuple(general_patterns),
            total_symptom_occurrences=sum(a.total_occurrences for a in ranked),
            total_symptoms_observed=len(filtered_symptoms),
            total_food_entries=len(filtered_foods),
            observation_period_days=time_window.total_days,
            reliability_score=reliability_score,
            filter_stats=filter_stats,
        )

    # --- Per-symptom analysis ---

    def _score_triggers(
        self,
        symptoms: list[SymptomOccurrence],
        foods: list[FoodOccurrence],
        time_window: AnalysisTimeWindow,
        filters: AnalysisFilters,
    ) -> list[TriggerProbability]:
        evidence = EvidenceService.find_correlation_evidence(
            symptoms, foods, time_window.window_size_hours
        )
        triggers = self.correlation_service.score_triggers(evidence, foods, len(symptoms))
        accepted = [t for t in triggers if t.confidence >= filters.minimum_confidence]
        return sorted(accepted, key=lambda t: t.probability, reverse=True)

    def generate_symptom_analysis(
        self,
        symptom_type: str,
        symptom_occurrences: list[SymptomOccurrence],
        food_occurrences: list[FoodOccurrence],
        time_window: AnalysisTimeWindow,
        filters: AnalysisFilters,
    ) -> Optional[SymptomAnalysis]:
        """Analyze one symptom type. Returns None when nothing is worth showing."""
        symptoms = self._apply_severity_threshold(symptom_occurrences, filters)
        if not symptoms:
            return None
        triggers = self._score_triggers(symptoms, food_occurrences, time_window, filters)
        return self._build_analysis(symptom_type, symptoms, triggers)

    def generate_symptom_analysis_in_batches(
        self,
        symptom_type: str,
        symptom_occurrences: list[SymptomOccurrence],
        food_occurrences: list[FoodOccurrence],
        time_window: AnalysisTimeWindow,
        filters: AnalysisFilters,
    ) -> Optional[SymptomAnalysis]:
        """
        Analyze one symptom type, scoring foods chunk by chunk.

        Each chunk is scored on its own; when a food appears in several
        chunks the trigger with the highest probability is kept.
        """
        symptoms = self._apply_severity_threshold(symptom_occurrences, filters)
        if not symptoms:
            return None

        best: dict[str, TriggerProbability] = {}
        batch_size = self.config.batch_size
        for offset in range(0, len(food_occurrences), batch_size):
            chunk = food_occurrences[offset : offset + batch_size]
            for trigger in self._score_triggers(symptoms, chunk, time_window, filters):
                current = best.get(trigger.food_name)
                if current is None or trigger.probability > current.probability:
                    best[trigger.food_name] = trigger

        merged = sorted(best.values(), key=lambda t: t.probability, reverse=True)
        return self._build_analysis(symptom_type, symptoms, merged)

    @staticmethod
    def _apply_severity_threshold(
        symptoms: list[SymptomOccurrence], filters: AnalysisFilters
    ) -> list[SymptomOccurrence]:
        if filters.severity_threshold is None:
            return symptoms
        return [s for s in symptoms if s.intensity >= filters.severity_threshold]

    def _build_analysis(
        self,
        symptom_type: str,
        symptoms: list[SymptomOccurrence],
        triggers: list[TriggerProbability],
    ) -> Optional[SymptomAnalysis]:
        recommendation_level = self.determine_recommendation_level(triggers)
        if recommendation_level == RecommendationLevel.HIDE:
            logger.debug("Hiding %s: no trigger with enough confidence", symptom_type)
            return None

        average_intensity = sum(s.intensity for s in symptoms) / len(symptoms)
        confidence = sum(t.confidence for t in triggers) / len(triggers) if triggers else 0.0
        return SymptomAnalysis(
            symptom_type=symptom_type,
            total_occurrences=len(symptoms),
            average_intensity=average_intensity,
            severity_level=self.calculate_severity_level(average_intensity),
            trigger_probabilities=tuple(triggers),
            confidence=confidence,
            recommendation_level=recommendation_level,
            last_occurrence=max(s.timestamp for s in symptoms),
            insights=tuple(self.generate_insights(triggers, symptom_type)),
        )

    def determine_recommendation_level(
        self, triggers: list[TriggerProbability]
    ) -> RecommendationLevel:
        cfg = self.config
        if any(
            t.confidence >= cfg.high_confidence_threshold
            and t.occurrence_count >= cfg.min_occurrences_for_high_confidence
            for t in triggers
        ):
            return RecommendationLevel.HIGH
        if any(
            t.confidence >= cfg.medium_confidence_threshold
            and t.occurrence_count >= cfg.min_occurrences_for_medium_confidence
            for t in triggers
        ):
            return RecommendationLevel.MEDIUM
        if any(t.confidence >= cfg.min_confidence_threshold for t in triggers):
            return RecommendationLevel.LOW_CONFIDENCE
        return RecommendationLevel.HIDE

    def calculate_severity_level(self, average_intensity: float) -> SeverityLevel:
        if average_intensity >= self.config.high_severity_intensity:
            return SeverityLevel.HIGH
        if average_intensity >= self.config.medium_severity_intensity:
            return SeverityLevel.MEDIUM
        return SeverityLevel.LOW

    def generate_insights(
        self, triggers: list[TriggerProbability], symptom_type: str
    ) -> list[str]:
        insights = []
        if triggers:
            top = triggers[0]
            insights.append(
                f"{top.food_name} shows the highest correlation "
                f"({top.probability_percentage}%) with {symptom_type}"
            )
        high_probability = [
            t.food_name for t in triggers if t.probability >= self.config.high_probability_threshold
        ]
        if len(high_probability) > 1:
            insights.append(
                f"Multiple high-probability triggers identified: {', '.join(high_probability)}"
            )
        return insights

    # --- Patterns ---

    def _attach_patterns(
        self,
        analyses: list[SymptomAnalysis],
        symptoms: list[SymptomOccurrence],
        foods: list[FoodOccurrence],
    ) -> tuple[list[SymptomAnalysis], list[SymptomPattern]]:
        """
        Attach per-symptom patterns to their analyses.

        Returns the updated analyses and the cross-symptom "General" patterns.
        Patterns for symptom types without an analysis are dropped.
        """
        patterns = self.pattern_service.detect_all_patterns(symptoms, foods, analyses)
        by_symptom = group_by_symptom(patterns)
        attached = [
            analysis.model_copy(
                update={"patterns": tuple(by_symptom.get(analysis.symptom_type, []))}
            )
            for analysis in analyses
        ]
        return attached, by_symptom.get(GENERAL_SYMPTOM_TYPE, [])

    # --- Scoring and ranking ---

    def calculate_reliability_score(
        self,
        analyses: list[SymptomAnalysis],
        total_symptoms: int,
        total_foods: int,
        observation_days: int,
    ) -> float:
        """Overall 0-1 confidence in the report."""
        if not analyses or total_symptoms == 0 or total_foods == 0:
            return 0.0
        cfg = self.config
        data_volume = min(1.0, (total_symptoms + total_foods) / cfg.reliability_data_volume_target)
        time_range = min(1.0, observation_days / cfg.reliability_observation_days_target)
        analysis_quality = sum(a.confidence for a in analyses) / len(analyses)
        coverage = len(analyses) / max(1, total_symptoms // cfg.reliability_coverage_divisor)
        score = (data_volume + time_range + analysis_quality + coverage) / 4
        return min(1.0, max(0.0, score))

    def calculate_correlation_strength_score(self, analysis: SymptomAnalysis) -> float:
        cfg = self.config
        severity_score = {
            SeverityLevel.HIGH: cfg.severity_score_high,
            SeverityLevel.MEDIUM: cfg.severity_score_medium,
            SeverityLevel.LOW: cfg.severity_score_low,
        }[analysis.severity_level]

        if analysis.trigger_probabilities:
            top = analysis.trigger_probabilities[0]
            count_score = min(1.0, top.occurrence_count / cfg.trigger_quality_count_target)
            trigger_quality = (top.probability + count_score) / 2
        else:
            trigger_quality = 0.0

        occurrence_score = min(1.0, analysis.total_occurrences / cfg.occurrence_score_target)
        return (
            analysis.confidence * cfg.strength_confidence_weight
            + severity_score * cfg.strength_severity_weight
            + trigger_quality * cfg.strength_trigger_quality_weight
            + occurrence_score * cfg.strength_occurrence_weight
        )

    def rank_symptom_analyses(self, analyses: list[SymptomAnalysis]) -> list[SymptomAnalysis]:
        """Sort analyses by correlation strength, strongest first. The sort is stable."""
        return sorted(analyses, key=self.calculate_correlation_strength_score, reverse=True)

    def rank_trigger_probabilities(
        self, triggers: list[TriggerProbability]
    ) -> list[TriggerProbability]:
        return rank_trigger_probabilities(triggers, self.config)
