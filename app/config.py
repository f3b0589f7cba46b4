from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://postgres:postgres@db:5432/bloaty"

    # Analysis runtime settings
    analysis_timezone: str = "UTC"  # IANA zone used for time-of-day patterns and date windows
    analysis_large_dataset_threshold: int = 5000  # symptoms + foods before chunked scoring
    analysis_batch_size: int = 1000  # food occurrences per chunk
    analysis_default_lookback_days: int = 30

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()


class AnalysisConfig(BaseModel):
    """
    Weights and thresholds for trigger analysis.

    These are hand-tuned heuristics, kept as literal constants. One instance
    is shared read-only by the scorer, pattern detector and orchestrator.
    """

    model_config = ConfigDict(frozen=True)

    # Trigger probability weights
    temporal_weight: float = 0.40
    baseline_weight: float = 0.30
    frequency_weight: float = 0.30
    temporal_decay_hours: int = 8
    max_time_lag_hours: int = 8
    confidence_sample_size: int = 10
    intensity_midpoint: float = 5.5
    intensity_multiplier_min: float = 0.5
    intensity_multiplier_max: float = 2.0

    # Recommendation levels
    min_confidence_threshold: float = 0.2
    medium_confidence_threshold: float = 0.5
    high_confidence_threshold: float = 0.7
    min_occurrences_for_medium_confidence: int = 3
    min_occurrences_for_high_confidence: int = 5
    high_probability_threshold: float = 0.7

    # Severity levels (average intensity)
    medium_severity_intensity: float = 4.0
    high_severity_intensity: float = 7.0

    # Post-filtering
    low_occurrence_trigger_count: int = 3

    # Large datasets
    large_dataset_threshold: int = 5000
    batch_size: int = 1000

    # Reliability score
    reliability_data_volume_target: int = 50
    reliability_observation_days_target: int = 30
    reliability_coverage_divisor: int = 10

    # Analysis ranking
    strength_confidence_weight: float = 0.4
    strength_severity_weight: float = 0.2
    strength_trigger_quality_weight: float = 0.25
    strength_occurrence_weight: float = 0.15
    severity_score_high: float = 1.0
    severity_score_medium: float = 0.7
    severity_score_low: float = 0.4
    trigger_quality_count_target: int = 10
    occurrence_score_target: int = 20

    # Trigger ranking
    trigger_rank_probability_weight: float = 0.5
    trigger_rank_confidence_weight: float = 0.3
    trigger_rank_evidence_weight: float = 0.2
    trigger_rank_evidence_target: int = 15

    # Pattern detection
    pattern_min_symptom_occurrences: int = 3
    frequency_consistency_threshold: float = 0.4
    trigger_consistency_window_hours: int = 8
    trigger_consistency_threshold: float = 0.6
    cyclical_min_occurrences: int = 5
    cyclical_confidence_floor: float = 0.3
    daily_dominance_threshold: float = 0.6
    weekly_dominance_threshold: float = 0.4
    meal_dominance_threshold: float = 0.5
    combination_window_hours: int = 2
    combination_min_count: int = 3
    combination_count_target: int = 10
    combination_confidence_floor: float = 0.4
    timing_min_data_points: int = 5
    timing_consistency_threshold: float = 0.6
    escalation_min_occurrences: int = 4
    escalation_trend_threshold: float = 0.6
    cycle_min_occurrences: int = 6
    cycle_min_peaks: int = 2

    timezone: str = "UTC"


def get_analysis_config() -> AnalysisConfig:
    """Build the analysis config, applying runtime overrides from settings."""
    return AnalysisConfig(
        large_dataset_threshold=settings.analysis_large_dataset_threshold,
        batch_size=settings.analysis_batch_size,
        timezone=settings.analysis_timezone,
    )
