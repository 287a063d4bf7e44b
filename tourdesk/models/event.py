"""
Tourdesk
Touring event domain models.

Models:
    - TourEvent: a tour with its ordered city route and capacity
    - Group: explicit association of participants (family or mini_group)
"""

from datetime import datetime, timezone

from tourdesk.models import db


# ── Constants ────────────────────────────────────────────────────────────────

TOUR_TYPES = {"group", "individual", "excursion", "adventure", "cultural", "other"}
GROUP_TYPES = {"family", "mini_group"}


class TourEvent(db.Model):
    """
    A touring event.

    ``cities`` is the declared route, in travel order. Every CityVisit of a
    participant of this event must name one of these cities.
    """

    __tablename__ = "tour_events"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    country = db.Column(db.String(100), nullable=False)
    cities = db.Column(db.JSON, nullable=False, default=list, comment="Ordered route of city names")
    tour_type = db.Column(db.String(30), nullable=False, default="group")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    participant_limit = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Numeric(12, 2), nullable=True)
    is_full = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    deals = db.relationship("Deal", back_populates="event", cascade="all, delete-orphan", lazy="dynamic")
    groups = db.relationship("Group", back_populates="event", cascade="all, delete-orphan", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "country": self.country,
            "cities": list(self.cities or []),
            "tour_type": self.tour_type,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "participant_limit": self.participant_limit,
            "price": float(self.price) if self.price is not None else None,
            "is_full": self.is_full,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<TourEvent {self.id}: {self.name[:40]}>"


class Group(db.Model):
    """
    User-created participant group.

    Members are Deals pointing at this row through ``deals.group_id``.
    Only ``mini_group`` rows act as sharing units; ``family`` rows are the
    legacy explicit form (families are derived from shared leads instead).
    """

    __tablename__ = "tour_groups"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer, db.ForeignKey("tour_events.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False, default="mini_group", comment="family | mini_group")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    event = db.relationship("TourEvent", back_populates="groups")
    members = db.relationship("Deal", back_populates="group", lazy="select", order_by="Deal.id")

    def to_dict(self, include_members=False):
        d = {
            "id": self.id,
            "event_id": self.event_id,
            "name": self.name,
            "type": self.type,
            "member_count": len(self.members),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_members:
            d["members"] = [
                {"deal_id": m.id, "is_primary": bool(m.is_primary_in_group)}
                for m in self.members
            ]
        return d

    def __repr__(self):
        return f"<Group {self.id}: {self.type} {self.name[:40]}>"
