"""
Pydantic value types for trigger correlation and pattern analysis.

All models are frozen: analysis results are built once per run and only
ever replaced by filtered copies, never mutated. Construction validates
every invariant, so an invalid time window or filter set fails with a
ValidationError before any computation starts.
"""

import math
import uuid
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from app.services.trigger_categories import TriggerCategory


GENERAL_SYMPTOM_TYPE = "General"


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _new_id() -> str:
    return str(uuid.uuid4())


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Raw occurrences (from the occurrence source) ---


class FoodOccurrence(FrozenModel):
    name: str
    quantity: Optional[str] = None
    timestamp: datetime
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Food name cannot be blank")
        return value

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class SymptomOccurrence(FrozenModel):
    type: str
    intensity: int = Field(ge=1, le=10)
    timestamp: datetime
    notes: Optional[str] = None

    @field_validator("type")
    @classmethod
    def type_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Symptom type cannot be blank")
        return value

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


# --- Evidence and trigger scoring ---


class CorrelationEvidence(FrozenModel):
    """One food occurrence followed by one symptom occurrence inside the lag window."""

    food_timestamp: datetime
    symptom_timestamp: datetime
    time_lag: timedelta
    symptom_intensity: int = Field(ge=1, le=10)
    food_quantity: Optional[str] = None
    temporal_weight: float = Field(ge=0, le=1)
    contextual_notes: Optional[str] = None

    @field_validator("food_timestamp", "symptom_timestamp")
    @classmethod
    def timestamps_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def check_lag(self) -> "CorrelationEvidence":
        if self.symptom_timestamp <= self.food_timestamp:
            raise ValueError("symptom_timestamp must be after food_timestamp")
        if self.time_lag != self.symptom_timestamp - self.food_timestamp:
            raise ValueError("time_lag must equal the difference between timestamps")
        return self

    @property
    def lag_hours(self) -> int:
        """Lag in whole hours, truncated."""
        return self.time_lag // timedelta(hours=1)


class TriggerProbability(FrozenModel):
    food_name: str
    category: TriggerCategory
    probability: float = Field(ge=0, le=1)
    confidence: float = Field(ge=0, le=1)
    occurrence_count: int = Field(gt=0)
    correlation_score: float = Field(ge=0, le=1)
    temporal_score: float = Field(ge=0, le=1)
    baseline_score: float = Field(ge=0, le=1)
    frequency_score: float = Field(ge=0, le=1)
    average_time_lag: timedelta
    intensity_multiplier: float = Field(ge=0.5, le=2.0)
    last_correlation_date: datetime
    supporting_evidence: tuple[CorrelationEvidence, ...] = ()

    @computed_field
    @property
    def probability_percentage(self) -> int:
        return math.floor(self.probability * 100)

    @field_validator("average_time_lag")
    @classmethod
    def lag_not_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("average_time_lag must not be negative")
        return value


# --- Patterns ---


class PatternType(str, Enum):
    FREQUENCY = "frequency"
    TEMPORAL = "temporal"
    TRIGGER_CONSISTENCY = "trigger_consistency"
    SEVERITY_TREND = "severity_trend"
    COMBINATION = "combination"
    MEAL_RELATED = "meal_related"
    CATEGORY_PREFERENCE = "category_preference"
    SEASONAL = "seasonal"

    @property
    def display_name(self) -> str:
        return PATTERN_TYPE_INFO[self][0]

    @property
    def description(self) -> str:
        return PATTERN_TYPE_INFO[self][1]


PATTERN_TYPE_INFO = {
    PatternType.FREQUENCY: (
        "Frequency Pattern",
        "Regular timing intervals between symptom occurrences",
    ),
    PatternType.TEMPORAL: (
        "Time-based Pattern",
        "Symptoms occurring at specific times of day or days of week",
    ),
    PatternType.TRIGGER_CONSISTENCY: (
        "Trigger Consistency",
        "Same foods consistently triggering symptoms",
    ),
    PatternType.SEVERITY_TREND: (
        "Severity Trend",
        "Escalating or cyclical severity patterns over time",
    ),
    PatternType.COMBINATION: (
        "Food Combination",
        "Multiple foods consumed together triggering symptoms",
    ),
    PatternType.MEAL_RELATED: (
        "Meal Timing",
        "Symptoms related to specific meal times",
    ),
    PatternType.CATEGORY_PREFERENCE: (
        "Category Pattern",
        "Specific food categories showing strong trigger correlations",
    ),
    PatternType.SEASONAL: (
        "Seasonal Pattern",
        "Symptoms varying by season or weather conditions",
    ),
}


class PatternConfidenceLevel(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"

    @classmethod
    def from_confidence(cls, confidence: float) -> "PatternConfidenceLevel":
        if confidence >= 0.7:
            return cls.HIGH
        if confidence >= 0.4:
            return cls.MODERATE
        return cls.LOW


class SymptomPattern(FrozenModel):
    id: str = Field(default_factory=_new_id)
    symptom_type: str = GENERAL_SYMPTOM_TYPE
    pattern_type: PatternType
    description: str
    confidence: float = Field(ge=0, le=1)
    occurrence_count: int = Field(ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def confidence_percentage(self) -> int:
        return math.floor(self.confidence * 100)

    @property
    def confidence_level(self) -> PatternConfidenceLevel:
        return PatternConfidenceLevel.from_confidence(self.confidence)


def filter_by_confidence(
    patterns: list[SymptomPattern], min_confidence: float
) -> list[SymptomPattern]:
    return [p for p in patterns if p.confidence >= min_confidence]


def group_by_type(patterns: list[SymptomPattern]) -> dict[PatternType, list[SymptomPattern]]:
    grouped: dict[PatternType, list[SymptomPattern]] = {}
    for pattern in patterns:
        grouped.setdefault(pattern.pattern_type, []).append(pattern)
    return grouped


def group_by_symptom(patterns: list[SymptomPattern]) -> dict[str, list[SymptomPattern]]:
    grouped: dict[str, list[SymptomPattern]] = {}
    for pattern in patterns:
        grouped.setdefault(pattern.symptom_type, []).append(pattern)
    return grouped


def sort_by_confidence(patterns: list[SymptomPattern]) -> list[SymptomPattern]:
    return sorted(patterns, key=lambda p: p.confidence, reverse=True)


def highest_confidence_pattern(patterns: list[SymptomPattern]) -> Optional[SymptomPattern]:
    if not patterns:
        return None
    return max(patterns, key=lambda p: p.confidence)


def most_frequent_pattern_type(patterns: list[SymptomPattern]) -> Optional[PatternType]:
    if not patterns:
        return None
    return Counter(p.pattern_type for p in patterns).most_common(1)[0][0]


# --- Per-symptom analysis ---


class SeverityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecommendationLevel(str, Enum):
    HIDE = "hide"  # Insufficient data, never shown
    LOW_CONFIDENCE = "low_confidence"  # Shown with warnings
    MEDIUM = "medium"  # Potential pattern
    HIGH = "high"  # Likely pattern


class SymptomAnalysis(FrozenModel):
    id: str = Field(default_factory=_new_id)
    symptom_type: str
    total_occurrences: int = Field(gt=0)
    average_intensity: float = Field(ge=1.0, le=10.0)
    severity_level: SeverityLevel
    trigger_probabilities: tuple[TriggerProbability, ...] = ()
    patterns: tuple[SymptomPattern, ...] = ()
    confidence: float = Field(ge=0, le=1)
    recommendation_level: RecommendationLevel
    last_occurrence: Optional[datetime] = None
    insights: tuple[str, ...] = ()

    @model_validator(mode="after")
    def check_triggers(self) -> "SymptomAnalysis":
        probabilities = [t.probability for t in self.trigger_probabilities]
        if probabilities != sorted(probabilities, reverse=True):
            raise ValueError("trigger_probabilities must be sorted by probability descending")
        if self.recommendation_level == RecommendationLevel.HIDE and self.trigger_probabilities:
            raise ValueError("a hidden analysis must not carry trigger probabilities")
        return self


# --- Run inputs ---


class AnalysisTimeWindow(FrozenModel):
    start_date: date
    end_date: date
    window_size_hours: int = Field(default=8, gt=0)
    minimum_occurrences: int = Field(default=3, gt=0)
    minimum_observation_days: int = Field(default=14, gt=0)

    @model_validator(mode="after")
    def check_dates(self) -> "AnalysisTimeWindow":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if self.total_days < self.minimum_observation_days:
            raise ValueError(
                f"time window spans {self.total_days} days, "
                f"minimum_observation_days is {self.minimum_observation_days}"
            )
        return self

    @property
    def total_days(self) -> int:
        return (self.end_date - self.start_date).days

    @property
    def window_size(self) -> timedelta:
        return timedelta(hours=self.window_size_hours)

    def instant_range(self, tz_name: str = "UTC") -> tuple[datetime, datetime]:
        """
        Instants bounding the fetch, both inclusive.

        The range runs from the start of start_date to the start of end_date,
        so it spans exactly total_days.
        """
        zone = ZoneInfo(tz_name)
        start = datetime.combine(self.start_date, time.min, tzinfo=zone)
        end = datetime.combine(self.end_date, time.min, tzinfo=zone)
        return start, end


class AnalysisFilters(FrozenModel):
    severity_threshold: Optional[int] = Field(default=None, ge=1, le=10)
    symptom_types: frozenset[str] = frozenset()
    food_categories: frozenset[TriggerCategory] = frozenset()
    exclude_foods: frozenset[str] = frozenset()
    minimum_confidence: float = Field(default=0.3, ge=0, le=1)
    show_low_occurrence_correlations: bool = False

    def is_empty(self) -> bool:
        return (
            self.severity_threshold is None
            and not self.symptom_types
            and not self.food_categories
            and not self.exclude_foods
            and self.minimum_confidence <= 0.3
            and not self.show_low_occurrence_correlations
        )

    def active_filter_count(self) -> int:
        """Number of filter dimensions currently narrowing the analysis."""
        return sum(
            [
                self.severity_threshold is not None,
                bool(self.symptom_types),
                bool(self.food_categories),
                bool(self.exclude_foods),
                self.minimum_confidence > 0.0,
                self.show_low_occurrence_correlations,
            ]
        )


# --- Run outputs ---


class FilterStats(FrozenModel):
    original_analysis_count: int
    filtered_analysis_count: int
    original_trigger_count: int
    filtered_trigger_count: int
    filtering_reduction: float  # Fraction of analyses removed, 0.0-1.0
    active_filter_count: int


class AnalysisResult(FrozenModel):
    id: str = Field(default_factory=_new_id)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    time_window: AnalysisTimeWindow
    filters: AnalysisFilters
    symptom_analyses: tuple[SymptomAnalysis, ...] = ()
    general_patterns: tuple[SymptomPattern, ...] = ()
    total_symptom_occurrences: int = Field(ge=0)  # Covered by symptom_analyses
    total_symptoms_observed: int = Field(ge=0)  # Fed into the run after pre-filtering
    total_food_entries: int = Field(ge=0)
    observation_period_days: int = Field(gt=0)
    reliability_score: float = Field(ge=0, le=1)
    filter_stats: Optional[FilterStats] = None

    @field_validator("generated_at")
    @classmethod
    def not_in_future(cls, value: datetime) -> datetime:
        value = _as_utc(value)
        if value > datetime.now(timezone.utc):
            raise ValueError("generated_at must not be in the future")
        return value

    @model_validator(mode="after")
    def check_totals(self) -> "AnalysisResult":
        if self.total_symptom_occurrences > 0 and not self.symptom_analyses:
            raise ValueError(
                "symptom_analyses must not be empty if total_symptom_occurrences > 0"
            )
        return self
