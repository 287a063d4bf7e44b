"""initial_tour_schema

Touring events, leads with tourists, contacts, participant deals,
explicit groups and per-city itinerary records.

Revision ID: a1c4e7b20001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1c4e7b20001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _leg_columns(prefix):
    return [
        sa.Column(f"{prefix}_date", sa.String(length=10), nullable=True),
        sa.Column(f"{prefix}_time", sa.String(length=5), nullable=True),
        sa.Column(f"{prefix}_transport_type", sa.String(length=10), nullable=True),
        sa.Column(f"{prefix}_flight_number", sa.String(length=30), nullable=True),
        sa.Column(f"{prefix}_terminal", sa.String(length=100), nullable=True),
        sa.Column(f"{prefix}_transfer", sa.String(length=300), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "tour_events" not in existing_tables:
        op.create_table(
            "tour_events",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("country", sa.String(length=100), nullable=False),
            sa.Column("cities", sa.JSON(), nullable=False),
            sa.Column("tour_type", sa.String(length=30), nullable=False, server_default="group"),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=False),
            sa.Column("participant_limit", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("price", sa.Numeric(12, 2), nullable=True),
            sa.Column("is_full", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )

    if "leads" not in existing_tables:
        op.create_table(
            "leads",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="new"),
            sa.Column("source", sa.String(length=20), nullable=False, server_default="manual"),
            sa.Column("event_id", sa.Integer(), nullable=True),
            sa.Column("tour_cost", sa.Numeric(12, 2), nullable=True),
            sa.Column("tour_cost_currency", sa.String(length=3), nullable=True),
            sa.Column("advance_payment", sa.Numeric(12, 2), nullable=True),
            sa.Column("advance_payment_currency", sa.String(length=3), nullable=True),
            sa.Column("remaining_payment", sa.Numeric(12, 2), nullable=True),
            sa.Column("remaining_payment_currency", sa.String(length=3), nullable=True),
            sa.Column("selected_cities", sa.JSON(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["event_id"], ["tour_events.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_leads_status", "leads", ["status"])
        op.create_index("ix_leads_event_id", "leads", ["event_id"])

    if "lead_tourists" not in existing_tables:
        op.create_table(
            "lead_tourists",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("lead_id", sa.Integer(), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("middle_name", sa.String(length=100), nullable=True),
            sa.Column("tourist_type", sa.String(length=10), nullable=False, server_default="adult"),
            sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("date_of_birth", sa.Date(), nullable=True),
            sa.ForeignKeyConstraint(["lead_id"], ["leads.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_lead_tourists_lead_id", "lead_tourists", ["lead_id"])

    if "contacts" not in existing_tables:
        op.create_table(
            "contacts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("lead_id", sa.Integer(), nullable=True),
            sa.Column("lead_tourist_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["lead_id"], ["leads.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["lead_tourist_id"], ["lead_tourists.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_contacts_lead_id", "contacts", ["lead_id"])
        op.create_index("ix_contacts_lead_tourist_id", "contacts", ["lead_tourist_id"])

    if "tour_groups" not in existing_tables:
        op.create_table(
            "tour_groups",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("event_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="mini_group"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["event_id"], ["tour_events.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tour_groups_event_id", "tour_groups", ["event_id"])

    if "deals" not in existing_tables:
        op.create_table(
            "deals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("contact_id", sa.Integer(), nullable=False),
            sa.Column("event_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("group_id", sa.Integer(), nullable=True),
            sa.Column("is_primary_in_group", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["event_id"], ["tour_events.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["group_id"], ["tour_groups.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_deals_contact_id", "deals", ["contact_id"])
        op.create_index("ix_deals_event_id", "deals", ["event_id"])
        op.create_index("ix_deals_group_id", "deals", ["group_id"])

    if "city_visits" not in existing_tables:
        op.create_table(
            "city_visits",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("deal_id", sa.Integer(), nullable=False),
            sa.Column("city", sa.String(length=100), nullable=False),
            *_leg_columns("arrival"),
            sa.Column("hotel_name", sa.String(length=200), nullable=True),
            sa.Column("room_type", sa.String(length=10), nullable=True),
            *_leg_columns("departure"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("deal_id", "city", name="uq_city_visit_deal_city"),
        )
        op.create_index("ix_city_visits_deal_id", "city_visits", ["deal_id"])


def downgrade():
    for table in ("city_visits", "deals", "tour_groups", "contacts", "lead_tourists", "leads", "tour_events"):
        op.drop_table(table)
