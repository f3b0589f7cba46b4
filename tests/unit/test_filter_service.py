"""Unit tests for AnalysisFilterService and compute_filter_stats."""
import pytest
from datetime import timedelta

from app.services.analysis_schemas import (
    AnalysisFilters,
    RecommendationLevel,
    SeverityLevel,
    SymptomAnalysis,
    TriggerProbability,
)
from app.services.filter_service import AnalysisFilterService, compute_filter_stats
from app.services.trigger_categories import TriggerCategory, classify_food
from tests.factories import BASE_TIME, make_food, make_symptom, make_time_window


@pytest.fixture
def filter_service() -> AnalysisFilterService:
    return AnalysisFilterService()


def make_trigger(
    food_name="Milk",
    probability=0.6,
    confidence=0.8,
    occurrence_count=5,
    lag=timedelta(hours=1),
) -> TriggerProbability:
    return TriggerProbability(
        food_name=food_name,
        category=classify_food(food_name),
        probability=probability,
        confidence=confidence,
        occurrence_count=occurrence_count,
        correlation_score=0.5,
        temporal_score=0.5,
        baseline_score=0.5,
        frequency_score=0.5,
        average_time_lag=lag,
        intensity_multiplier=1.0,
        last_correlation_date=BASE_TIME,
    )


def make_analysis(
    symptom_type="Bloating", triggers=(), average_intensity=6.0, total_occurrences=5
) -> SymptomAnalysis:
    return SymptomAnalysis(
        symptom_type=symptom_type,
        total_occurrences=total_occurrences,
        average_intensity=average_intensity,
        severity_level=SeverityLevel.MEDIUM,
        trigger_probabilities=tuple(sorted(triggers, key=lambda t: t.probability, reverse=True)),
        confidence=0.6,
        recommendation_level=RecommendationLevel.MEDIUM,
    )


class TestPreFilters:
    """Tests for filtering raw occurrences."""

    def test_severity_threshold(self, filter_service):
        """Test that mild symptoms are dropped."""
        symptoms = [make_symptom(intensity=i) for i in (2, 5, 8)]
        result = filter_service.filter_symptom_occurrences(
            symptoms, AnalysisFilters(severity_threshold=5)
        )
        assert [s.intensity for s in result] == [5, 8]

    def test_symptom_types(self, filter_service):
        """Test that only allowed types pass."""
        symptoms = [make_symptom("Bloating"), make_symptom("Nausea")]
        result = filter_service.filter_symptom_occurrences(
            symptoms, AnalysisFilters(symptom_types={"Nausea"})
        )
        assert [s.type for s in result] == ["Nausea"]

    def test_excluded_foods(self, filter_service):
        """Test that excluded foods are dropped by exact name."""
        foods = [make_food("Milk"), make_food("Toast"), make_food("milk")]
        result = filter_service.filter_food_occurrences(
            foods, AnalysisFilters(exclude_foods={"Milk"})
        )
        assert [f.name for f in result] == ["Toast", "milk"]

    def test_food_categories(self, filter_service):
        """Test that only foods in allowed categories pass."""
        foods = [make_food("Milk"), make_food("Coffee"), make_food("Rice")]
        result = filter_service.filter_food_occurrences(
            foods, AnalysisFilters(food_categories={TriggerCategory.CAFFEINE})
        )
        assert [f.name for f in result] == ["Coffee"]

    def test_no_filters(self, filter_service):
        """Test that default filters keep everything."""
        foods = [make_food("Milk"), make_food("Coffee")]
        symptoms = [make_symptom(intensity=1)]
        assert filter_service.filter_food_occurrences(foods, AnalysisFilters()) == foods
        assert filter_service.filter_symptom_occurrences(symptoms, AnalysisFilters()) == symptoms


class TestApplyFilters:
    """Tests for post-filtering finished analyses."""

    def test_drops_disallowed_symptom_type(self, filter_service):
        """Test analyses outside the allowed types are removed."""
        analyses = [
            make_analysis("Bloating", [make_trigger()]),
            make_analysis("Nausea", [make_trigger()]),
        ]
        result = filter_service.apply_filters(analyses, AnalysisFilters(symptom_types={"Nausea"}))
        assert [a.symptom_type for a in result] == ["Nausea"]

    def test_drops_mild_analyses(self, filter_service):
        """Test analyses with low average intensity are removed."""
        analyses = [make_analysis(triggers=[make_trigger()], average_intensity=3.5)]
        assert filter_service.apply_filters(analyses, AnalysisFilters(severity_threshold=4)) == []

    def test_trigger_filters(self, filter_service):
        """Test each trigger-level filter."""
        triggers = [
            make_trigger("Milk", probability=0.7),
            make_trigger("Coffee", probability=0.6, confidence=0.2),
            make_trigger("Toast", probability=0.5),
            make_trigger("Cheese", probability=0.4, occurrence_count=2),
        ]
        result = filter_service.apply_filters(
            [make_analysis(triggers=triggers)],
            AnalysisFilters(minimum_confidence=0.3, exclude_foods={"Toast"}),
        )
        assert [t.food_name for t in result[0].trigger_probabilities] == ["Milk"]

    def test_low_occurrence_flag_keeps_small_triggers(self, filter_service):
        """Test that the flag keeps triggers with fewer than three occurrences."""
        analyses = [make_analysis(triggers=[make_trigger(occurrence_count=1)])]
        result = filter_service.apply_filters(
            analyses, AnalysisFilters(show_low_occurrence_correlations=True)
        )
        assert len(result[0].trigger_probabilities) == 1

    def test_category_filter_on_triggers(self, filter_service):
        """Test triggers outside allowed categories are removed."""
        triggers = [make_trigger("Milk", 0.7), make_trigger("Coffee", 0.6)]
        result = filter_service.apply_filters(
            [make_analysis(triggers=triggers)],
            AnalysisFilters(food_categories={TriggerCategory.DAIRY}),
        )
        assert [t.food_name for t in result[0].trigger_probabilities] == ["Milk"]

    def test_empty_analysis_dropped_unless_flag(self, filter_service):
        """Test analyses left without triggers."""
        analyses = [make_analysis(triggers=[make_trigger(confidence=0.5)])]
        strict = AnalysisFilters(minimum_confidence=0.9)
        lenient = AnalysisFilters(minimum_confidence=0.9, show_low_occurrence_correlations=True)

        assert filter_service.apply_filters(analyses, strict) == []
        kept = filter_service.apply_filters(analyses, lenient)
        assert len(kept) == 1
        assert kept[0].trigger_probabilities == ()

    def test_idempotent(self, filter_service):
        """Test that filtering twice gives the same result as once."""
        triggers = [
            make_trigger("Milk", 0.7),
            make_trigger("Coffee", 0.6, confidence=0.25),
            make_trigger("Bread", 0.5, occurrence_count=2),
        ]
        analyses = [make_analysis(triggers=triggers), make_analysis("Nausea", [make_trigger()])]
        filters = AnalysisFilters(minimum_confidence=0.3, exclude_foods={"Bread"})

        once = filter_service.apply_filters(analyses, filters)
        twice = filter_service.apply_filters(once, filters)

        assert once == twice

    def test_input_not_mutated(self, filter_service):
        """Test that the original analyses are untouched."""
        analysis = make_analysis(triggers=[make_trigger("Milk", 0.7), make_trigger("Toast", 0.5)])
        filter_service.apply_filters([analysis], AnalysisFilters(exclude_foods={"Toast"}))
        assert len(analysis.trigger_probabilities) == 2


class TestTimeWindowFilters:
    """Tests for time-window filtering."""

    def test_drops_below_minimum(self, filter_service):
        """Test analyses with too few occurrences are removed."""
        window = make_time_window(minimum_occurrences=5)
        analyses = [make_analysis(total_occurrences=4, triggers=[make_trigger()])]
        assert filter_service.apply_time_window_filters(analyses, window) == []

    def test_drops_slow_triggers(self, filter_service):
        """Test triggers whose average lag exceeds the window are removed."""
        window = make_time_window(window_size_hours=4)
        triggers = [
            make_trigger("Milk", 0.7, lag=timedelta(hours=4, minutes=30)),
            make_trigger("Coffee", 0.6, lag=timedelta(hours=5)),
        ]
        result = filter_service.apply_time_window_filters([make_analysis(triggers=triggers)], window)
        assert [t.food_name for t in result[0].trigger_probabilities] == ["Milk"]


class TestFilterStats:
    """Tests for compute_filter_stats."""

    def test_stats(self):
        """Test counts and reduction."""
        before = [
            make_analysis(triggers=[make_trigger("Milk", 0.7), make_trigger("Toast", 0.5)]),
            make_analysis("Nausea", [make_trigger()]),
        ]
        after = [make_analysis(triggers=[make_trigger("Milk", 0.7)])]
        filters = AnalysisFilters(severity_threshold=3, exclude_foods={"Toast"})

        stats = compute_filter_stats(before, after, filters)

        assert stats.original_analysis_count == 2
        assert stats.filtered_analysis_count == 1
        assert stats.original_trigger_count == 3
        assert stats.filtered_trigger_count == 1
        assert stats.filtering_reduction == pytest.approx(0.5)
        assert stats.active_filter_count == 3

    def test_empty_before(self):
        """Test that reduction is zero with nothing to filter."""
        stats = compute_filter_stats([], [], AnalysisFilters())
        assert stats.filtering_reduction == 0.0
        assert stats.original_analysis_count == 0
