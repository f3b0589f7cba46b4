"""Trigger analysis API endpoints."""
import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.services.analysis_schemas import AnalysisFilters, AnalysisTimeWindow
from app.services.analysis_service import TriggerAnalysisService
from app.services.occurrence_service import DatabaseOccurrenceSource
from app.services.trigger_categories import TriggerCategory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


class AnalysisRequest(BaseModel):
    """Request body for an analysis run. Dates default to the configured lookback."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    window_size_hours: int = 8
    minimum_occurrences: int = 3
    minimum_observation_days: int = 14

    severity_threshold: Optional[int] = None
    symptom_types: list[str] = []
    food_categories: list[TriggerCategory] = []
    exclude_foods: list[str] = []
    minimum_confidence: float = 0.3
    show_low_occurrence_correlations: bool = False


def _validation_detail(error: ValidationError) -> list[dict]:
    # ctx can hold the raw exception, which is not JSON serializable
    return [{"loc": list(err["loc"]), "msg": err["msg"]} for err in error.errors()]


@router.post("/run")
def run_analysis(request: AnalysisRequest, db: Session = Depends(get_db)):
    """
    Run trigger analysis over the logged foods and symptoms.

    Declared sync so FastAPI runs it in the worker thread pool; the analysis
    is CPU-bound and must not block the event loop.
    """
    end_date = request.end_date or date.today()
    start_date = request.start_date or end_date - timedelta(
        days=settings.analysis_default_lookback_days
    )

    try:
        time_window = AnalysisTimeWindow(
            start_date=start_date,
            end_date=end_date,
            window_size_hours=request.window_size_hours,
            minimum_occurrences=request.minimum_occurrences,
            minimum_observation_days=request.minimum_observation_days,
        )
        filters = AnalysisFilters(
            severity_threshold=request.severity_threshold,
            symptom_types=frozenset(request.symptom_types),
            food_categories=frozenset(request.food_categories),
            exclude_foods=frozenset(request.exclude_foods),
            minimum_confidence=request.minimum_confidence,
            show_low_occurrence_correlations=request.show_low_occurrence_correlations,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=_validation_detail(e))

    service = TriggerAnalysisService(DatabaseOccurrenceSource(db))
    result = service.run_analysis(time_window, filters)
    return result.model_dump(mode="json")


@router.get("/categories")
def list_categories():
    """Trigger categories with their display names and baseline priors."""
    return [
        {
            "value": category.value,
            "display_name": category.display_name,
            "baseline_probability": category.baseline_probability,
        }
        for category in TriggerCategory
    ]
