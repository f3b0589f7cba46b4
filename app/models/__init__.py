"""
Database models for the trigger analysis service.

Import all models here so Base.metadata knows every table.
"""

from app.database import Base
from app.models.food_entry import FoodEntry
from app.models.symptom_entry import SymptomEntry

__all__ = [
    "Base",
    "FoodEntry",
    "SymptomEntry",
]
