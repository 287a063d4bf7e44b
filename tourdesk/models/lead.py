"""
Tourdesk
Lead domain models — sales inquiries and the tourists they bring.

Models:
    - Lead: sales inquiry with lifecycle status and tour finances
    - LeadTourist: one traveller listed on a lead (at most one primary per lead)
    - Contact: a converted tourist; the person behind one or more Deals
"""

from datetime import datetime, timezone

from tourdesk.models import db


# ── Constants ────────────────────────────────────────────────────────────────

LEAD_STATUSES = {"new", "contacted", "qualified", "converted", "lost"}
LEAD_SOURCES = {"manual", "form", "import", "booking", "referral", "website", "other"}
TOURIST_TYPES = {"adult", "child", "infant"}


def _money(value):
    return float(value) if value is not None else None


class Lead(db.Model):
    """
    Sales inquiry.

    Participants converted from the same lead form a family; the grouping
    is derived from ``contacts.lead_id`` at read time and never stored.
    """

    __tablename__ = "leads"

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="new", index=True)
    source = db.Column(db.String(20), nullable=False, default="manual")
    event_id = db.Column(
        db.Integer, db.ForeignKey("tour_events.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    # Finances (read-only for the consolidation engine)
    tour_cost = db.Column(db.Numeric(12, 2), nullable=True)
    tour_cost_currency = db.Column(db.String(3), nullable=True)
    advance_payment = db.Column(db.Numeric(12, 2), nullable=True)
    advance_payment_currency = db.Column(db.String(3), nullable=True)
    remaining_payment = db.Column(db.Numeric(12, 2), nullable=True)
    remaining_payment_currency = db.Column(db.String(3), nullable=True)

    selected_cities = db.Column(db.JSON, nullable=True, comment="Subset of the event route; NULL = whole route")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    tourists = db.relationship(
        "LeadTourist", back_populates="lead", cascade="all, delete-orphan", order_by="LeadTourist.id",
    )

    @property
    def display_name(self):
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def to_dict(self, include_tourists=False):
        d = {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "status": self.status,
            "source": self.source,
            "event_id": self.event_id,
            "tour_cost": _money(self.tour_cost),
            "tour_cost_currency": self.tour_cost_currency,
            "advance_payment": _money(self.advance_payment),
            "advance_payment_currency": self.advance_payment_currency,
            "remaining_payment": _money(self.remaining_payment),
            "remaining_payment_currency": self.remaining_payment_currency,
            "selected_cities": list(self.selected_cities) if self.selected_cities is not None else None,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_tourists:
            d["tourists"] = [t.to_dict() for t in self.tourists]
        return d

    def __repr__(self):
        return f"<Lead {self.id}: {self.display_name[:40]} [{self.status}]>"


class LeadTourist(db.Model):
    """Traveller listed on a lead."""

    __tablename__ = "lead_tourists"

    id = db.Column(db.Integer, primary_key=True)
    lead_id = db.Column(
        db.Integer, db.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=True)
    middle_name = db.Column(db.String(100), nullable=True)
    tourist_type = db.Column(db.String(10), nullable=False, default="adult", comment="adult | child | infant")
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    date_of_birth = db.Column(db.Date, nullable=True)

    lead = db.relationship("Lead", back_populates="tourists")

    @property
    def full_name(self):
        return " ".join(p for p in (self.last_name, self.first_name, self.middle_name) if p)

    def to_dict(self):
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "middle_name": self.middle_name,
            "tourist_type": self.tourist_type,
            "is_primary": self.is_primary,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
        }

    def __repr__(self):
        return f"<LeadTourist {self.id}: {self.full_name[:40]}>"


class Contact(db.Model):
    """Person registered on one or more tours."""

    __tablename__ = "contacts"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(300), nullable=False)
    email = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    lead_id = db.Column(
        db.Integer, db.ForeignKey("leads.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    lead_tourist_id = db.Column(
        db.Integer, db.ForeignKey("lead_tourists.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "lead_id": self.lead_id,
            "lead_tourist_id": self.lead_tourist_id,
        }

    def __repr__(self):
        return f"<Contact {self.id}: {self.name[:40]}>"
