"""
Unit tests for occurrence sources and OccurrenceService.

Tests database reads over the inclusive time range, error wrapping,
and the food/symptom write helpers.
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.models import FoodEntry, SymptomEntry
from app.services.occurrence_service import (
    DatabaseOccurrenceSource,
    InMemoryOccurrenceSource,
    OccurrenceService,
    OccurrenceSourceError,
)
from tests.factories import (
    BASE_TIME,
    create_food_entry,
    create_symptom_entry,
    make_food,
    make_symptom,
)

START = BASE_TIME
END = BASE_TIME + timedelta(days=1)


class TestDatabaseOccurrenceSource:
    """Tests for reading occurrences from the database."""

    def test_inclusive_range(self, db):
        """Test that both boundary instants are included."""
        create_symptom_entry(db, "Bloating", 6, START)
        create_symptom_entry(db, "Bloating", 7, END)
        create_symptom_entry(db, "Bloating", 8, END + timedelta(seconds=1))
        create_symptom_entry(db, "Bloating", 9, START - timedelta(seconds=1))

        symptoms = DatabaseOccurrenceSource(db).get_symptoms_in_time_range(START, END)

        assert sorted(s.intensity for s in symptoms) == [6, 7]

    def test_symptom_fields(self, db):
        """Test that rows map onto symptom occurrences."""
        create_symptom_entry(db, "Nausea", 4, START + timedelta(hours=2), notes="after lunch")

        (symptom,) = DatabaseOccurrenceSource(db).get_symptoms_in_time_range(START, END)

        assert symptom.type == "Nausea"
        assert symptom.intensity == 4
        assert symptom.notes == "after lunch"
        assert symptom.timestamp == START + timedelta(hours=2)
        assert symptom.timestamp.tzinfo is not None

    def test_food_fields(self, db):
        """Test that rows map onto food occurrences."""
        create_food_entry(db, "Milk", START + timedelta(hours=1), quantity="1 glass", notes="cold")

        (food,) = DatabaseOccurrenceSource(db).get_foods_in_time_range(START, END)

        assert food.name == "Milk"
        assert food.quantity == "1 glass"
        assert food.notes == "cold"
        assert food.timestamp == START + timedelta(hours=1)

    def test_range_in_other_timezone(self, db):
        """Test that range bounds in another zone are compared as instants."""
        create_food_entry(db, "Milk", datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc))
        plus_five = timezone(timedelta(hours=5))
        start = datetime(2024, 3, 4, 16, 0, tzinfo=plus_five)  # 11:00 UTC
        end = datetime(2024, 3, 4, 18, 0, tzinfo=plus_five)  # 13:00 UTC

        foods = DatabaseOccurrenceSource(db).get_foods_in_time_range(start, end)

        assert [f.name for f in foods] == ["Milk"]

    def test_empty_range(self, db):
        """Test that an empty table returns no occurrences."""
        source = DatabaseOccurrenceSource(db)
        assert source.get_symptoms_in_time_range(START, END) == []
        assert source.get_foods_in_time_range(START, END) == []

    def test_query_failure_wrapped(self):
        """Test that database errors surface as OccurrenceSourceError."""
        session = MagicMock()
        session.query.side_effect = SQLAlchemyError("connection lost")
        source = DatabaseOccurrenceSource(session)

        with pytest.raises(OccurrenceSourceError, match="symptoms"):
            source.get_symptoms_in_time_range(START, END)
        with pytest.raises(OccurrenceSourceError, match="foods"):
            source.get_foods_in_time_range(START, END)


class TestInMemoryOccurrenceSource:
    """Tests for the in-memory source."""

    def test_inclusive_range(self):
        """Test boundary handling matches the database source."""
        source = InMemoryOccurrenceSource(
            symptoms=[make_symptom(timestamp=START), make_symptom(timestamp=END + timedelta(1))],
            foods=[make_food(timestamp=END), make_food(timestamp=START - timedelta(seconds=1))],
        )
        assert len(source.get_symptoms_in_time_range(START, END)) == 1
        assert len(source.get_foods_in_time_range(START, END)) == 1


class TestLogFood:
    """Tests for OccurrenceService.log_food."""

    def test_creates_entry(self, db):
        """Test that a food entry is persisted."""
        entry = OccurrenceService.log_food(db, "Cheese", START, quantity="2 slices")

        assert entry.id is not None
        stored = db.query(FoodEntry).filter(FoodEntry.id == entry.id).one()
        assert stored.name == "Cheese"
        assert stored.quantity == "2 slices"

    def test_naive_timestamp_is_utc(self, db):
        """Test that a naive timestamp is read back as the same UTC instant."""
        OccurrenceService.log_food(db, "Cheese", datetime(2024, 3, 4, 9, 30))

        (food,) = DatabaseOccurrenceSource(db).get_foods_in_time_range(START, END)

        assert food.timestamp == datetime(2024, 3, 4, 9, 30, tzinfo=timezone.utc)

    def test_blank_name_rejected(self, db):
        """Test that blank food names are rejected before touching the database."""
        with pytest.raises(ValidationError, match="Food name cannot be blank"):
            OccurrenceService.log_food(db, "   ", START)
        assert db.query(FoodEntry).count() == 0


class TestLogSymptom:
    """Tests for OccurrenceService.log_symptom."""

    def test_creates_entry(self, db):
        """Test that a symptom entry is persisted."""
        entry = OccurrenceService.log_symptom(db, "Bloating", 7, START, notes="after dinner")

        stored = db.query(SymptomEntry).filter(SymptomEntry.id == entry.id).one()
        assert stored.symptom_type == "Bloating"
        assert stored.intensity == 7
        assert stored.notes == "after dinner"

    @pytest.mark.parametrize("intensity", [0, 11])
    def test_intensity_out_of_range(self, db, intensity):
        """Test that intensities outside 1-10 are rejected."""
        with pytest.raises(ValidationError):
            OccurrenceService.log_symptom(db, "Bloating", intensity, START)
        assert db.query(SymptomEntry).count() == 0

    def test_blank_type_rejected(self, db):
        """Test that a blank symptom type is rejected."""
        with pytest.raises(ValidationError, match="Symptom type cannot be blank"):
            OccurrenceService.log_symptom(db, "", 5, START)


class TestBulkLog:
    """Tests for OccurrenceService.bulk_log."""

    def test_inserts_everything(self, db):
        """Test that all occurrences are stored and counted."""
        symptoms = [make_symptom(timestamp=START + timedelta(hours=h)) for h in (13, 14)]
        foods = [make_food("Milk", START + timedelta(hours=12))]

        counts = OccurrenceService.bulk_log(db, symptoms, foods)

        assert counts == (2, 1)
        assert db.query(SymptomEntry).count() == 2
        assert db.query(FoodEntry).count() == 1

    def test_rollback_on_failure(self):
        """Test that a failed commit is rolled back and re-raised."""
        session = MagicMock()
        session.commit.side_effect = SQLAlchemyError("disk full")

        with pytest.raises(SQLAlchemyError):
            OccurrenceService.bulk_log(session, [make_symptom()], [])

        session.rollback.assert_called_once()
