"""
Occurrence sources feeding the trigger analysis, and write helpers for the
food and symptom log tables.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.food_entry import FoodEntry
from app.models.symptom_entry import SymptomEntry
from app.services.analysis_schemas import FoodOccurrence, SymptomOccurrence

logger = logging.getLogger(__name__)


class OccurrenceSourceError(Exception):
    """Raised when occurrences cannot be fetched from the underlying store."""


class OccurrenceSource(ABC):
    """
    Read access to logged symptoms and foods.

    Both methods take an inclusive [start, end] range of timezone-aware
    datetimes and return occurrences in no particular order.
    """

    @abstractmethod
    def get_symptoms_in_time_range(
        self, start: datetime, end: datetime
    ) -> list[SymptomOccurrence]:
        ...

    @abstractmethod
    def get_foods_in_time_range(self, start: datetime, end: datetime) -> list[FoodOccurrence]:
        ...


class InMemoryOccurrenceSource(OccurrenceSource):
    """Serves occurrences from in-memory sequences (tests and JSON input)."""

    def __init__(
        self,
        symptoms: Iterable[SymptomOccurrence] = (),
        foods: Iterable[FoodOccurrence] = (),
    ):
        self.symptoms = list(symptoms)
        self.foods = list(foods)

    def get_symptoms_in_time_range(
        self, start: datetime, end: datetime
    ) -> list[SymptomOccurrence]:
        return [s for s in self.symptoms if start <= s.timestamp <= end]

    def get_foods_in_time_range(self, start: datetime, end: datetime) -> list[FoodOccurrence]:
        return [f for f in self.foods if start <= f.timestamp <= end]


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DatabaseOccurrenceSource(OccurrenceSource):
    """Reads occurrences from the food_entries and symptom_entries tables."""

    def __init__(self, db: Session):
        self.db = db

    def get_symptoms_in_time_range(
        self, start: datetime, end: datetime
    ) -> list[SymptomOccurrence]:
        try:
            rows = (
                self.db.query(SymptomEntry)
                .filter(
                    SymptomEntry.timestamp >= _to_utc(start),
                    SymptomEntry.timestamp <= _to_utc(end),
                )
                .all()
            )
        except SQLAlchemyError as e:
            logger.warning("Failed to fetch symptoms: %s", e)
            raise OccurrenceSourceError(f"Failed to fetch symptoms: {e}") from e

        return [
            SymptomOccurrence(
                type=row.symptom_type,
                intensity=row.intensity,
                timestamp=row.timestamp,
                notes=row.notes,
            )
            for row in rows
        ]

    def get_foods_in_time_range(self, start: datetime, end: datetime) -> list[FoodOccurrence]:
        try:
            rows = (
                self.db.query(FoodEntry)
                .filter(
                    FoodEntry.timestamp >= _to_utc(start),
                    FoodEntry.timestamp <= _to_utc(end),
                )
                .all()
            )
        except SQLAlchemyError as e:
            logger.warning("Failed to fetch foods: %s", e)
            raise OccurrenceSourceError(f"Failed to fetch foods: {e}") from e

        return [
            FoodOccurrence(
                name=row.name,
                quantity=row.quantity,
                timestamp=row.timestamp,
                notes=row.notes,
            )
            for row in rows
        ]


class OccurrenceService:
    """Write helpers for the food and symptom logs."""

    @staticmethod
    def log_food(
        db: Session,
        name: str,
        timestamp: datetime,
        quantity: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> FoodEntry:
        """
        Record a food intake.

        Args:
            db: Database session
            name: Food name (must not be blank)
            timestamp: When the food was eaten; naive values are taken as UTC
            quantity: Free-text amount
            notes: Additional notes

        Returns:
            Created FoodEntry
        """
        occurrence = FoodOccurrence(name=name, timestamp=timestamp, quantity=quantity, notes=notes)
        entry = OccurrenceService._food_entry(occurrence)
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    @staticmethod
    def log_symptom(
        db: Session,
        symptom_type: str,
        intensity: int,
        timestamp: datetime,
        notes: Optional[str] = None,
    ) -> SymptomEntry:
        """Record a symptom episode. Intensity must be 1-10."""
        occurrence = SymptomOccurrence(
            type=symptom_type, intensity=intensity, timestamp=timestamp, notes=notes
        )
        entry = OccurrenceService._symptom_entry(occurrence)
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    @staticmethod
    def bulk_log(
        db: Session,
        symptoms: Iterable[SymptomOccurrence],
        foods: Iterable[FoodOccurrence],
    ) -> tuple[int, int]:
        """Insert validated occurrences in a single transaction."""
        symptom_entries = [OccurrenceService._symptom_entry(s) for s in symptoms]
        food_entries = [OccurrenceService._food_entry(f) for f in foods]
        try:
            db.add_all(symptom_entries)
            db.add_all(food_entries)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info(
            "Imported %d symptoms and %d foods", len(symptom_entries), len(food_entries)
        )
        return len(symptom_entries), len(food_entries)

    @staticmethod
    def _food_entry(occurrence: FoodOccurrence) -> FoodEntry:
        return FoodEntry(
            name=occurrence.name,
            quantity=occurrence.quantity,
            notes=occurrence.notes,
            timestamp=_to_utc(occurrence.timestamp),
        )

    @staticmethod
    def _symptom_entry(occurrence: SymptomOccurrence) -> SymptomEntry:
        return SymptomEntry(
            symptom_type=occurrence.type,
            intensity=occurrence.intensity,
            notes=occurrence.notes,
            timestamp=_to_utc(occurrence.timestamp),
        )
