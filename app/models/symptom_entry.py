from sqlalchemy import Column, Integer, String, Text, DateTime, Index, CheckConstraint
from sqlalchemy.sql import func

from app.database import Base


class SymptomEntry(Base):
    """A single logged symptom episode."""

    __tablename__ = "symptom_entries"

    id = Column(Integer, primary_key=True)
    symptom_type = Column(String(255), nullable=False)  # e.g. "Bloating", "Nausea"
    intensity = Column(Integer, nullable=False)  # 1-10 scale
    notes = Column(Text)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("intensity BETWEEN 1 AND 10", name="ck_symptom_entries_intensity"),
        Index("idx_symptom_entries_timestamp", "timestamp"),
        Index("idx_symptom_entries_type", "symptom_type"),
    )

    def __repr__(self):
        return (
            f"<SymptomEntry(id={self.id}, type={self.symptom_type!r}, "
            f"intensity={self.intensity}, timestamp={self.timestamp})>"
        )
