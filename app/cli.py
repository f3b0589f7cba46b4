"""CLI commands for trigger analysis."""

import argparse
import json
import logging
import sys
from datetime import date

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import SessionLocal
from app.services.analysis_schemas import (
    AnalysisFilters,
    AnalysisTimeWindow,
    FoodOccurrence,
    SymptomOccurrence,
)
from app.services.analysis_service import TriggerAnalysisService
from app.services.occurrence_service import (
    DatabaseOccurrenceSource,
    InMemoryOccurrenceSource,
    OccurrenceService,
    OccurrenceSourceError,
)

logger = logging.getLogger(__name__)


def load_events(path: str) -> tuple[list[SymptomOccurrence], list[FoodOccurrence]]:
    """
    Read symptoms and foods from a JSON file.

    Expected shape:
        {"symptoms": [{"type": ..., "intensity": ..., "timestamp": ...}],
         "foods": [{"name": ..., "timestamp": ..., "quantity": ...}]}
    """
    with open(path) as f:
        data = json.load(f)
    symptoms = [SymptomOccurrence.model_validate(item) for item in data.get("symptoms", [])]
    foods = [FoodOccurrence.model_validate(item) for item in data.get("foods", [])]
    return symptoms, foods


def analyze(args: argparse.Namespace) -> None:
    """Run an analysis and print the JSON report."""
    try:
        time_window = AnalysisTimeWindow(
            start_date=args.start,
            end_date=args.end,
            window_size_hours=args.window_hours,
            minimum_occurrences=args.min_occurrences,
            minimum_observation_days=args.min_observation_days,
        )
        filters = AnalysisFilters(
            severity_threshold=args.severity_threshold,
            symptom_types=frozenset(args.symptom_type or []),
            food_categories=frozenset(args.category or []),
            exclude_foods=frozenset(args.exclude_food or []),
            minimum_confidence=args.min_confidence,
            show_low_occurrence_correlations=args.show_low_occurrence,
        )
    except ValidationError as e:
        print(f"Error: {e}")
        sys.exit(1)

    db: Session | None = None
    try:
        if args.input:
            try:
                symptoms, foods = load_events(args.input)
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                print(f"Error: could not load events from {args.input}: {e}")
                sys.exit(1)
            source = InMemoryOccurrenceSource(symptoms, foods)
        else:
            db = SessionLocal()
            source = DatabaseOccurrenceSource(db)

        try:
            result = TriggerAnalysisService(source).run_analysis(time_window, filters)
        except OccurrenceSourceError as e:
            print(f"Error: {e}")
            sys.exit(1)

        print(json.dumps(result.model_dump(mode="json"), indent=2))
    finally:
        if db is not None:
            db.close()


def import_events(path: str) -> None:
    """Load events from a JSON file into the database."""
    try:
        symptoms, foods = load_events(path)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"Error: could not load events from {path}: {e}")
        sys.exit(1)

    db: Session = SessionLocal()
    try:
        symptom_count, food_count = OccurrenceService.bulk_log(db, symptoms, foods)
        print(f"Imported {symptom_count} symptoms and {food_count} foods.")
    finally:
        db.close()


def main(argv: list[str] | None = None):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Food trigger analysis CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Run trigger analysis")
    analyze_parser.add_argument(
        "--start", required=True, type=date.fromisoformat, help="Start date (YYYY-MM-DD)"
    )
    analyze_parser.add_argument(
        "--end", required=True, type=date.fromisoformat, help="End date (YYYY-MM-DD)"
    )
    analyze_parser.add_argument(
        "--input", help="Read events from a JSON file instead of the database"
    )
    analyze_parser.add_argument("--window-hours", type=int, default=8)
    analyze_parser.add_argument("--min-occurrences", type=int, default=3)
    analyze_parser.add_argument("--min-observation-days", type=int, default=14)
    analyze_parser.add_argument("--severity-threshold", type=int)
    analyze_parser.add_argument(
        "--symptom-type", action="append", help="Only analyze this symptom type (repeatable)"
    )
    analyze_parser.add_argument(
        "--category", action="append", help="Only consider foods in this category (repeatable)"
    )
    analyze_parser.add_argument(
        "--exclude-food", action="append", help="Ignore this food (repeatable)"
    )
    analyze_parser.add_argument("--min-confidence", type=float, default=0.3)
    analyze_parser.add_argument("--show-low-occurrence", action="store_true")

    # import-events command
    import_parser = subparsers.add_parser(
        "import-events", help="Load foods and symptoms from a JSON file into the database"
    )
    import_parser.add_argument("--input", required=True, help="Path to the events JSON file")

    args = parser.parse_args(argv)

    if args.command == "analyze":
        analyze(args)
    elif args.command == "import-events":
        import_events(args.input)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
