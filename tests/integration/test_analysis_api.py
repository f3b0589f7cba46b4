"""
Integration tests for the trigger analysis API.

Tests the full request flow including:
- Analysis over stored foods and symptoms
- Request validation
- Occurrence source failures
- Category listing
"""
import pytest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.services.occurrence_service import DatabaseOccurrenceSource, OccurrenceSourceError
from app.services.trigger_categories import TriggerCategory
from tests.factories import create_dairy_bloating_scenario, store_scenario

pytestmark = pytest.mark.integration

MARCH = {"start_date": "2024-03-01", "end_date": "2024-03-31"}


@pytest.fixture
def dairy_data(db: Session):
    symptoms, foods = create_dairy_bloating_scenario()
    store_scenario(db, symptoms, foods)


class TestRunAnalysis:
    """Tests for POST /analysis/run."""

    def test_run_with_stored_data(self, client: TestClient, dairy_data):
        """Test that milk is reported as the bloating trigger."""
        response = client.post("/analysis/run", json=MARCH)

        assert response.status_code == 200
        report = response.json()
        analysis = report["symptom_analyses"][0]
        trigger = analysis["trigger_probabilities"][0]
        assert analysis["symptom_type"] == "Bloating"
        assert analysis["recommendation_level"] == "high"
        assert trigger["food_name"] == "Milk"
        assert trigger["category"] == "dairy"
        assert trigger["probability_percentage"] == 74
        assert report["total_symptom_occurrences"] == 10
        assert report["reliability_score"] == pytest.approx(0.85)

    def test_general_patterns_reported(self, client: TestClient, dairy_data):
        """Test that cross-symptom patterns are included."""
        response = client.post("/analysis/run", json=MARCH)

        descriptions = [p["description"] for p in response.json()["general_patterns"]]
        assert "Symptoms frequently occur in the afternoon" in descriptions

    def test_run_with_filters(self, client: TestClient, dairy_data):
        """Test that request filters are applied and echoed."""
        response = client.post(
            "/analysis/run",
            json={**MARCH, "exclude_foods": ["Milk"], "minimum_confidence": 0.5},
        )

        assert response.status_code == 200
        report = response.json()
        assert report["symptom_analyses"] == []
        assert report["filters"]["exclude_foods"] == ["Milk"]
        assert report["filter_stats"]["active_filter_count"] == 2

    def test_run_without_data(self, client: TestClient):
        """Test that an empty log returns an empty report."""
        response = client.post("/analysis/run", json=MARCH)

        assert response.status_code == 200
        report = response.json()
        assert report["symptom_analyses"] == []
        assert report["reliability_score"] == 0.0

    def test_default_dates(self, client: TestClient):
        """Test that dates default to the lookback ending today."""
        response = client.post("/analysis/run", json={})

        assert response.status_code == 200
        assert response.json()["observation_period_days"] == 30

    def test_window_too_short(self, client: TestClient):
        """Test that a window below the observation minimum is rejected."""
        response = client.post(
            "/analysis/run", json={"start_date": "2024-03-01", "end_date": "2024-03-05"}
        )

        assert response.status_code == 422
        assert "minimum_observation_days" in response.json()["detail"][0]["msg"]

    def test_end_before_start(self, client: TestClient):
        """Test that reversed dates are rejected."""
        response = client.post(
            "/analysis/run", json={"start_date": "2024-03-31", "end_date": "2024-03-01"}
        )

        assert response.status_code == 422

    def test_severity_out_of_range(self, client: TestClient):
        """Test that a severity threshold above 10 is rejected."""
        response = client.post("/analysis/run", json={**MARCH, "severity_threshold": 11})

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["severity_threshold"]

    def test_unknown_category(self, client: TestClient):
        """Test that unknown food categories fail request validation."""
        response = client.post("/analysis/run", json={**MARCH, "food_categories": ["pizza"]})

        assert response.status_code == 422

    def test_source_failure_returns_503(self, client: TestClient):
        """Test that unreadable logs map to 503."""
        with patch.object(
            DatabaseOccurrenceSource,
            "get_symptoms_in_time_range",
            side_effect=OccurrenceSourceError("Failed to fetch symptoms"),
        ):
            response = client.post("/analysis/run", json=MARCH)

        assert response.status_code == 503
        assert response.json() == {"detail": "Occurrence data is temporarily unavailable"}


class TestCategories:
    """Tests for GET /analysis/categories."""

    def test_lists_every_category(self, client: TestClient):
        """Test that all categories are listed with their priors."""
        response = client.get("/analysis/categories")

        assert response.status_code == 200
        categories = response.json()
        assert [c["value"] for c in categories] == [c.value for c in TriggerCategory]

        dairy = next(c for c in categories if c["value"] == "dairy")
        assert dairy["display_name"] == "Dairy"
        assert dairy["baseline_probability"] == 0.65
