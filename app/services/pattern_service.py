"""
Pattern detection over symptom occurrences and accepted trigger analyses.

Detectors are pure functions of their inputs apart from the generated
pattern ids. Hour-of-day and weekday buckets use the configured analysis
timezone.
"""

import bisect
import calendar
import logging
import uuid
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from app.config import AnalysisConfig
from app.services.analysis_schemas import (
    FoodOccurrence,
    PatternType,
    SymptomAnalysis,
    SymptomOccurrence,
    SymptomPattern,
    filter_by_confidence,
    sort_by_confidence,
)

logger = logging.getLogger(__name__)


def _pattern_id(prefix: str, symptom_type: Optional[str] = None) -> str:
    if symptom_type:
        return f"{prefix}_{symptom_type}_{uuid.uuid4().hex}"
    return f"{prefix}_{uuid.uuid4().hex}"


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def _consistency(values: list[float]) -> Optional[float]:
    """1 - mean absolute deviation / mean, or None when the mean is zero."""
    mean = _mean(values)
    if mean == 0:
        return None
    deviation = _mean([abs(v - mean) for v in values])
    return 1.0 - deviation / mean


def _time_of_day(hour: int) -> str:
    if 6 <= hour <= 11:
        return "Morning"
    if 12 <= hour <= 17:
        return "Afternoon"
    if 18 <= hour <= 22:
        return "Evening"
    return "Night"


def _meal_relation(hour: int) -> str:
    if 7 <= hour <= 10:
        return "Post-Breakfast"
    if 12 <= hour <= 15:
        return "Post-Lunch"
    if 18 <= hour <= 21:
        return "Post-Dinner"
    return "Between-Meals"


def _group_by_type(symptoms: list[SymptomOccurrence]) -> dict[str, list[SymptomOccurrence]]:
    grouped: dict[str, list[SymptomOccurrence]] = {}
    for symptom in symptoms:
        grouped.setdefault(symptom.type, []).append(symptom)
    return grouped


class PatternDetectionService:
    """Detects recurring temporal, cyclical, combination and severity patterns."""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self.zone = ZoneInfo(self.config.timezone)

    def _local(self, timestamp: datetime) -> datetime:
        return timestamp.astimezone(self.zone)

    # --- Temporal patterns (per symptom type) ---

    def detect_temporal_patterns(
        self, symptoms: list[SymptomOccurrence], foods: list[FoodOccurrence]
    ) -> list[SymptomPattern]:
        """Frequency and trigger-consistency patterns for each symptom type."""
        patterns = []
        for symptom_type, occurrences in _group_by_type(symptoms).items():
            if len(occurrences) < self.config.pattern_min_symptom_occurrences:
                continue
            frequency = self.detect_frequency_pattern(symptom_type, occurrences)
            if frequency is not None:
                patterns.append(frequency)
            consistency = self.detect_trigger_consistency(symptom_type, occurrences, foods)
            if consistency is not None:
                patterns.append(consistency)
        return sort_by_confidence(patterns)

    def detect_frequency_pattern(
        self, symptom_type: str, occurrences: list[SymptomOccurrence]
    ) -> Optional[SymptomPattern]:
        if len(occurrences) < self.config.pattern_min_symptom_occurrences:
            return None

        ordered = sorted(occurrences, key=lambda s: s.timestamp)
        intervals = [
            (later.timestamp - earlier.timestamp) // timedelta(hours=1)
            for earlier, later in zip(ordered, ordered[1:])
        ]
        consistency = _consistency(intervals)
        if consistency is None:
            return None
        consistency = max(0.0, consistency)
        if consistency < self.config.frequency_consistency_threshold:
            return None

        avg_interval = _mean(intervals)
        if avg_interval <= 24:
            description = "Daily frequency pattern detected"
        elif avg_interval <= 168:
            description = "Weekly frequency pattern detected"
        else:
            description = "Regular occurrence pattern detected"

        return SymptomPattern(
            id=_pattern_id("freq", symptom_type),
            symptom_type=symptom_type,
            pattern_type=PatternType.FREQUENCY,
            description=description,
            confidence=consistency,
            occurrence_count=len(occurrences),
            metadata={"avg_interval_hours": avg_interval, "consistency": consistency},
        )

    def detect_trigger_consistency(
        self,
        symptom_type: str,
        symptoms: list[SymptomOccurrence],
        foods: list[FoodOccurrence],
    ) -> Optional[SymptomPattern]:
        cfg = self.config
        if len(symptoms) < cfg.pattern_min_symptom_occurrences:
            return None

        # Foods up to the symptom whose lag is at most the window in whole hours
        reach = timedelta(hours=cfg.trigger_consistency_window_hours + 1)
        ordered_foods = sorted(foods, key=lambda f: f.timestamp)
        food_times = [f.timestamp for f in ordered_foods]

        trigger_counts: Counter = Counter()
        for symptom in symptoms:
            lo = bisect.bisect_right(food_times, symptom.timestamp - reach)
            hi = bisect.bisect_right(food_times, symptom.timestamp)
            preceding = {food.name for food in ordered_foods[lo:hi]}
            # Sorted so ties resolve the same way on every run
            trigger_counts.update(sorted(preceding))

        if not trigger_counts:
            return None
        food_name, count = max(trigger_counts.items(), key=lambda item: item[1])
        if count < len(symptoms) * cfg.trigger_consistency_threshold:
            return None

        return SymptomPattern(
            id=_pattern_id("trigger", symptom_type),
            symptom_type=symptom_type,
            pattern_type=PatternType.TRIGGER_CONSISTENCY,
            description=f"{food_name} consistently triggers {symptom_type}",
            confidence=min(1.0, count / len(symptoms)),
            occurrence_count=count,
            metadata={
                "trigger_food": food_name,
                "trigger_count": count,
                "total_symptoms": len(symptoms),
            },
        )

    # --- Cyclical patterns (all symptoms) ---

    def detect_cyclical_patterns(self, symptoms: list[SymptomOccurrence]) -> list[SymptomPattern]:
        cfg = self.config
        if len(symptoms) < cfg.cyclical_min_occurrences:
            return []

        local_times = [self._local(s.timestamp) for s in sorted(symptoms, key=lambda s: s.timestamp)]
        patterns = []

        time_of_day, count = self._dominant(_time_of_day(t.hour) for t in local_times)
        if count >= len(local_times) * cfg.daily_dominance_threshold:
            confidence = count / len(local_times)
            patterns.append(
                SymptomPattern(
                    id=_pattern_id("daily_time"),
                    pattern_type=PatternType.TEMPORAL,
                    description=f"Symptoms frequently occur in the {time_of_day.lower()}",
                    confidence=confidence,
                    occurrence_count=count,
                    metadata={"time_of_day": time_of_day, "percentage": int(confidence * 100)},
                )
            )

        weekday, count = self._dominant(t.weekday() for t in local_times)
        if count >= len(local_times) * cfg.weekly_dominance_threshold:
            confidence = count / len(local_times)
            day_name = calendar.day_name[weekday]
            patterns.append(
                SymptomPattern(
                    id=_pattern_id("weekly"),
                    pattern_type=PatternType.TEMPORAL,
                    description=f"Symptoms commonly occur on {day_name}s",
                    confidence=confidence,
                    occurrence_count=count,
                    metadata={"day_of_week": day_name, "percentage": int(confidence * 100)},
                )
            )

        meal_relation, count = self._dominant(_meal_relation(t.hour) for t in local_times)
        if count >= len(local_times) * cfg.meal_dominance_threshold:
            confidence = count / len(local_times)
            patterns.append(
                SymptomPattern(
                    id=_pattern_id("meal_timing"),
                    pattern_type=PatternType.MEAL_RELATED,
                    description=f"Symptoms often occur {meal_relation.lower()}",
                    confidence=confidence,
                    occurrence_count=count,
                    metadata={"meal_relation": meal_relation, "percentage": int(confidence * 100)},
                )
            )

        return filter_by_confidence(patterns, cfg.cyclical_confidence_floor)

    @staticmethod
    def _dominant(keys) -> tuple:
        """Most common key and its count; the first-seen key wins ties."""
        counts = Counter(keys)
        return max(counts.items(), key=lambda item: item[1])

    # --- Trigger combinations (over accepted analyses) ---

    def detect_trigger_combinations(
        self, analyses: list[SymptomAnalysis], foods: list[FoodOccurrence]
    ) -> list[SymptomPattern]:
        patterns = self.detect_food_combination_patterns(analyses, foods)
        patterns.extend(self.detect_timing_patterns(analyses))
        return filter_by_confidence(patterns, self.config.combination_confidence_floor)

    def detect_food_combination_patterns(
        self, analyses: list[SymptomAnalysis], foods: list[FoodOccurrence]
    ) -> list[SymptomPattern]:
        """
        Food sets eaten together before symptom episodes.

        For every piece of trigger evidence, the foods eaten within the
        combination window of that meal, and before the symptom, form a set.
        A set is counted at most once per symptom episode.
        """
        cfg = self.config
        window = timedelta(hours=cfg.combination_window_hours)
        ordered_foods = sorted(foods, key=lambda f: (f.timestamp, f.name))
        food_times = [f.timestamp for f in ordered_foods]

        seen: set = set()
        combinations: Counter = Counter()
        for analysis in analyses:
            for trigger in analysis.trigger_probabilities:
                for ev in trigger.supporting_evidence:
                    lo = bisect.bisect_left(food_times, ev.food_timestamp - window)
                    if ev.food_timestamp + window < ev.symptom_timestamp:
                        hi = bisect.bisect_right(food_times, ev.food_timestamp + window)
                    else:
                        hi = bisect.bisect_left(food_times, ev.symptom_timestamp)
                    food_set = frozenset(f.name for f in ordered_foods[lo:hi])
                    if len(food_set) < 2:
                        continue
                    episode = (analysis.symptom_type, ev.symptom_timestamp, food_set)
                    if episode in seen:
                        continue
                    seen.add(episode)
                    combinations[food_set] += 1

        patterns = []
        for food_set, count in combinations.items():
            if count < cfg.combination_min_count:
                continue
            names = sorted(food_set)
            patterns.append(
                SymptomPattern(
                    id=_pattern_id("combo"),
                    pattern_type=PatternType.COMBINATION,
                    description=f"Food combination pattern: {', '.join(names[:3])}",
                    confidence=min(1.0, count / cfg.combination_count_target),
                    occurrence_count=count,
                    metadata={"foods": names, "combination_count": count},
                )
            )
        return patterns

    def detect_timing_patterns(self, analyses: list[SymptomAnalysis]) -> list[SymptomPattern]:
        """Symptoms appearing a consistent number of hours after eating."""
        cfg = self.config
        lags = [
            trigger.average_time_lag // timedelta(hours=1)
            for analysis in analyses
            for trigger in analysis.trigger_probabilities
        ]
        if len(lags) < cfg.timing_min_data_points:
            return []
        consistency = _consistency(lags)
        if consistency is None or consistency < cfg.timing_consistency_threshold:
            return []

        avg_lag = _mean(lags)
        return [
            SymptomPattern(
                id=_pattern_id("timing"),
                pattern_type=PatternType.TEMPORAL,
                description=f"Symptoms consistently appear {int(avg_lag)} hours after eating",
                confidence=min(1.0, consistency),
                occurrence_count=len(lags),
                metadata={"average_lag_hours": avg_lag, "consistency": consistency},
            )
        ]

    # --- Severity patterns (per symptom type) ---

    def detect_severity_patterns(self, symptoms: list[SymptomOccurrence]) -> list[SymptomPattern]:
        cfg = self.config
        patterns = []
        for symptom_type, occurrences in _group_by_type(symptoms).items():
            if len(occurrences) < cfg.escalation_min_occurrences:
                continue
            ordered = sorted(occurrences, key=lambda s: s.timestamp)
            escalation = self.detect_severity_escalation(symptom_type, ordered)
            if escalation is not None:
                patterns.append(escalation)
            cycle = self.detect_severity_cycles(symptom_type, ordered)
            if cycle is not None:
                patterns.append(cycle)
        return patterns

    def detect_severity_escalation(
        self, symptom_type: str, ordered: list[SymptomOccurrence]
    ) -> Optional[SymptomPattern]:
        if len(ordered) < self.config.escalation_min_occurrences:
            return None
        intensities = [s.intensity for s in ordered]
        increases = sum(1 for a, b in zip(intensities, intensities[1:]) if b > a)
        trend_strength = increases / (len(intensities) - 1)
        if trend_strength < self.config.escalation_trend_threshold:
            return None
        return SymptomPattern(
            id=_pattern_id("escalation", symptom_type),
            symptom_type=symptom_type,
            pattern_type=PatternType.SEVERITY_TREND,
            description=f"{symptom_type} severity shows escalating trend",
            confidence=trend_strength,
            occurrence_count=len(ordered),
            metadata={"trend_direction": "increasing", "trend_strength": trend_strength},
        )

    def detect_severity_cycles(
        self, symptom_type: str, ordered: list[SymptomOccurrence]
    ) -> Optional[SymptomPattern]:
        cfg = self.config
        if len(ordered) < cfg.cycle_min_occurrences:
            return None
        intensities = [s.intensity for s in ordered]
        peaks = [
            i
            for i in range(1, len(intensities) - 1)
            if intensities[i] > intensities[i - 1] and intensities[i] > intensities[i + 1]
        ]
        if len(peaks) < cfg.cycle_min_peaks:
            return None

        avg_cycle_length = _mean([b - a for a, b in zip(peaks, peaks[1:])])
        return SymptomPattern(
            id=_pattern_id("cycle", symptom_type),
            symptom_type=symptom_type,
            pattern_type=PatternType.SEVERITY_TREND,
            description=f"{symptom_type} shows cyclical severity pattern",
            confidence=min(1.0, len(peaks) / (len(intensities) / 4)),
            occurrence_count=len(peaks),
            metadata={"peak_count": len(peaks), "avg_cycle_length": avg_cycle_length},
        )

    def detect_all_patterns(
        self,
        symptoms: list[SymptomOccurrence],
        foods: list[FoodOccurrence],
        analyses: list[SymptomAnalysis],
    ) -> list[SymptomPattern]:
        """Run every detector and return the patterns sorted by confidence."""
        patterns = self.detect_temporal_patterns(symptoms, foods)
        patterns.extend(self.detect_cyclical_patterns(symptoms))
        patterns.extend(self.detect_trigger_combinations(analyses, foods))
        patterns.extend(self.detect_severity_patterns(symptoms))
        logger.debug("Detected %d patterns", len(patterns))
        return sort_by_confidence(patterns)

