"""
Shared pytest fixtures for the Tourdesk test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - tour_event: Beijing → Shanghai → Xi'an event
    - make_participant: factory creating Contact + Deal rows
"""

from datetime import date

import pytest

from tourdesk import create_app
from tourdesk.models import db as _db


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def tour_event():
    """A three-city touring event with no participant limit."""
    from tourdesk.models.event import TourEvent

    event = TourEvent(
        name="Golden Triangle",
        country="China",
        cities=["Beijing", "Shanghai", "Xi'an"],
        start_date=date(2025, 7, 1),
        end_date=date(2025, 7, 12),
        participant_limit=0,
    )
    _db.session.add(event)
    _db.session.commit()
    return event


@pytest.fixture()
def make_participant(tour_event):
    """Factory: create a participant (Contact + Deal) on ``tour_event``.

    Usage:
        deal = make_participant("Ivan", lead=lead, tourist=tourist)
    """
    from tourdesk.models.lead import Contact
    from tourdesk.models.participation import Deal

    def _make(name, lead=None, tourist=None, group=None, is_primary_in_group=False, status="pending",
              event=None):
        contact = Contact(
            name=name,
            lead_id=lead.id if lead is not None else None,
            lead_tourist_id=tourist.id if tourist is not None else None,
        )
        _db.session.add(contact)
        _db.session.flush()
        deal = Deal(
            contact_id=contact.id,
            event_id=(event or tour_event).id,
            status=status,
            group_id=group.id if group is not None else None,
            is_primary_in_group=is_primary_in_group,
        )
        _db.session.add(deal)
        _db.session.commit()
        return deal

    return _make


@pytest.fixture()
def make_family(make_participant):
    """Factory: a lead with tourists, each registered as a participant.

    Returns (lead, [deal, ...]) with the first tourist primary.
    """
    from tourdesk.models.lead import Lead, LeadTourist

    def _make(*names, status="converted"):
        lead = Lead(first_name=names[0], last_name="Family", status=status)
        _db.session.add(lead)
        _db.session.flush()
        deals = []
        for idx, name in enumerate(names):
            tourist = LeadTourist(lead_id=lead.id, first_name=name, is_primary=idx == 0)
            _db.session.add(tourist)
            _db.session.flush()
            deals.append(make_participant(name, lead=lead, tourist=tourist))
        return lead, deals

    return _make
