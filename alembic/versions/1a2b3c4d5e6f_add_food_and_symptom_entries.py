"""add_food_and_symptom_entries

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-17

Adds:
- food_entries table: one row per logged food intake
- symptom_entries table: one row per symptom episode (intensity 1-10)
"""

from alembic import op
import sqlalchemy as sa

revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "food_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
    )
    op.create_index("idx_food_entries_timestamp", "food_entries", ["timestamp"])
    op.create_index("idx_food_entries_name", "food_entries", ["name"])

    op.create_table(
        "symptom_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("symptom_type", sa.String(255), nullable=False),
        sa.Column("intensity", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.CheckConstraint("intensity BETWEEN 1 AND 10", name="ck_symptom_entries_intensity"),
    )
    op.create_index("idx_symptom_entries_timestamp", "symptom_entries", ["timestamp"])
    op.create_index("idx_symptom_entries_type", "symptom_entries", ["symptom_type"])


def downgrade() -> None:
    op.drop_index("idx_symptom_entries_type", table_name="symptom_entries")
    op.drop_index("idx_symptom_entries_timestamp", table_name="symptom_entries")
    op.drop_table("symptom_entries")
    op.drop_index("idx_food_entries_name", table_name="food_entries")
    op.drop_index("idx_food_entries_timestamp", table_name="food_entries")
    op.drop_table("food_entries")
