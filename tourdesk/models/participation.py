"""
Tourdesk
Participation domain models.

Models:
    - Deal: one contact registered on one touring event (the participant)
    - CityVisit: one participant's stay in one city of the event route
"""

from datetime import datetime, timezone

from tourdesk.models import db


# ── Constants ────────────────────────────────────────────────────────────────

DEAL_STATUSES = {"pending", "confirmed", "cancelled", "completed"}

# Itinerary columns on CityVisit, in display order. All nullable: an absent
# value is a valid state and is never replaced by an invented default.
CITY_VISIT_FIELDS = (
    "arrival_date",
    "arrival_time",
    "arrival_transport_type",
    "arrival_flight_number",
    "arrival_terminal",
    "arrival_transfer",
    "hotel_name",
    "room_type",
    "departure_date",
    "departure_time",
    "departure_transport_type",
    "departure_flight_number",
    "departure_terminal",
    "departure_transfer",
    "notes",
)


class Deal(db.Model):
    """
    A contact's participation in a touring event.

    The deal id is the participant identity used by the roster engine.
    """

    __tablename__ = "deals"

    id = db.Column(db.Integer, primary_key=True)
    contact_id = db.Column(
        db.Integer, db.ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    event_id = db.Column(
        db.Integer, db.ForeignKey("tour_events.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    status = db.Column(db.String(20), nullable=False, default="pending")
    amount = db.Column(db.Numeric(12, 2), nullable=True)
    group_id = db.Column(
        db.Integer, db.ForeignKey("tour_groups.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    is_primary_in_group = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    event = db.relationship("TourEvent", back_populates="deals")
    group = db.relationship("Group", back_populates="members")
    contact = db.relationship("Contact")
    visits = db.relationship(
        "CityVisit", back_populates="deal", cascade="all, delete-orphan", order_by="CityVisit.id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "contact_id": self.contact_id,
            "event_id": self.event_id,
            "status": self.status,
            "amount": float(self.amount) if self.amount is not None else None,
            "group_id": self.group_id,
            "is_primary_in_group": bool(self.is_primary_in_group),
        }

    def __repr__(self):
        return f"<Deal {self.id}: contact={self.contact_id} event={self.event_id}>"


class CityVisit(db.Model):
    """
    Itinerary record for one (deal, city) pair.

    Created lazily on the first field write for a city.
    """

    __tablename__ = "city_visits"
    __table_args__ = (
        db.UniqueConstraint("deal_id", "city", name="uq_city_visit_deal_city"),
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_id = db.Column(
        db.Integer, db.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    city = db.Column(db.String(100), nullable=False)

    arrival_date = db.Column(db.String(10), nullable=True, comment="ISO date")
    arrival_time = db.Column(db.String(5), nullable=True, comment="HH:MM")
    arrival_transport_type = db.Column(db.String(10), nullable=True, comment="plane | train | bus")
    arrival_flight_number = db.Column(db.String(30), nullable=True)
    arrival_terminal = db.Column(db.String(100), nullable=True)
    arrival_transfer = db.Column(db.String(300), nullable=True)

    hotel_name = db.Column(db.String(200), nullable=True)
    room_type = db.Column(db.String(10), nullable=True)

    departure_date = db.Column(db.String(10), nullable=True, comment="ISO date")
    departure_time = db.Column(db.String(5), nullable=True, comment="HH:MM")
    departure_transport_type = db.Column(db.String(10), nullable=True, comment="plane | train | bus")
    departure_flight_number = db.Column(db.String(30), nullable=True)
    departure_terminal = db.Column(db.String(100), nullable=True)
    departure_transfer = db.Column(db.String(300), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    deal = db.relationship("Deal", back_populates="visits")

    def field_values(self):
        return {f: getattr(self, f) for f in CITY_VISIT_FIELDS}

    def to_dict(self):
        return {"id": self.id, "deal_id": self.deal_id, "city": self.city, **self.field_values()}

    def __repr__(self):
        return f"<CityVisit {self.id}: deal={self.deal_id} {self.city}>"
