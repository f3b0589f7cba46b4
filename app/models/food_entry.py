from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from sqlalchemy.sql import func

from app.database import Base


class FoodEntry(Base):
    """A single logged food intake."""

    __tablename__ = "food_entries"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    quantity = Column(String(100))  # Free text, e.g. "1 cup", "2 slices"
    notes = Column(Text)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_food_entries_timestamp", "timestamp"),
        Index("idx_food_entries_name", "name"),
    )

    def __repr__(self):
        return f"<FoodEntry(id={self.id}, name={self.name!r}, timestamp={self.timestamp})>"
