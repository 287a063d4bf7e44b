"""
API tests for leads, tourists and lead conversion.

Covers:
  - lead CRUD, status / currency validation, city subset validation
  - first tourist becomes primary, a new primary clears the old one
  - deleting the primary promotes the next tourist
  - conversion creates one participant per tourist and is repeatable
"""

from tourdesk.models import db
from tourdesk.models.lead import Contact
from tourdesk.models.participation import Deal


def _event(client, cities=("Beijing", "Shanghai")):
    res = client.post("/api/v1/events", json={
        "name": "Tour", "country": "China", "cities": list(cities),
        "start_date": "2025-07-01", "end_date": "2025-07-10",
    })
    return res.get_json()


def _lead(client, **body):
    res = client.post("/api/v1/leads", json={"first_name": "Ivan", **body})
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def test_create_lead_with_finances(client):
    lead = _lead(client, last_name="Petrov", tour_cost=1500, tour_cost_currency="usd")

    assert lead["status"] == "new"
    assert lead["tour_cost"] == 1500.0
    assert lead["tour_cost_currency"] == "USD"


def test_create_lead_requires_first_name(client):
    res = client.post("/api/v1/leads", json={"last_name": "Petrov"})

    assert res.status_code == 400


def test_unsupported_currency_is_422(client):
    res = client.post("/api/v1/leads", json={"first_name": "Ivan", "tour_cost_currency": "XYZ"})

    assert res.status_code == 422
    assert "tour_cost_currency" in res.get_json()["details"]


def test_invalid_status_is_422(client):
    lead = _lead(client)

    res = client.put(f"/api/v1/leads/{lead['id']}", json={"status": "archived"})

    assert res.status_code == 422


def test_selected_cities_must_be_on_event_route(client):
    event = _event(client)

    ok = client.post("/api/v1/leads", json={
        "first_name": "Ivan", "event_id": event["id"], "selected_cities": ["Shanghai"],
    })
    bad = client.post("/api/v1/leads", json={
        "first_name": "Ivan", "event_id": event["id"], "selected_cities": ["Harbin"],
    })

    assert ok.status_code == 201
    assert ok.get_json()["selected_cities"] == ["Shanghai"]
    assert bad.status_code == 422


def test_list_leads_filters_by_status(client):
    _lead(client)
    other = _lead(client, first_name="Olga")
    client.put(f"/api/v1/leads/{other['id']}", json={"status": "contacted"})

    data = client.get("/api/v1/leads?status=contacted").get_json()

    assert [item["id"] for item in data["items"]] == [other["id"]]


def test_first_tourist_becomes_primary(client):
    lead = _lead(client)

    first = client.post(f"/api/v1/leads/{lead['id']}/tourists", json={"first_name": "Ivan"}).get_json()
    second = client.post(f"/api/v1/leads/{lead['id']}/tourists", json={"first_name": "Maria"}).get_json()

    assert first["is_primary"] is True
    assert second["is_primary"] is False


def test_new_primary_clears_previous_primary(client):
    lead = _lead(client, tourists=[{"first_name": "Ivan"}, {"first_name": "Maria"}])
    maria = lead["tourists"][1]

    client.put(f"/api/v1/tourists/{maria['id']}", json={"is_primary": True})
    tourists = client.get(f"/api/v1/leads/{lead['id']}/tourists").get_json()

    assert [t["is_primary"] for t in tourists] == [False, True]


def test_deleting_primary_promotes_next_tourist(client):
    lead = _lead(client, tourists=[{"first_name": "Ivan"}, {"first_name": "Maria"}])

    client.delete(f"/api/v1/tourists/{lead['tourists'][0]['id']}")
    tourists = client.get(f"/api/v1/leads/{lead['id']}/tourists").get_json()

    assert len(tourists) == 1
    assert tourists[0]["first_name"] == "Maria"
    assert tourists[0]["is_primary"] is True


def test_invalid_tourist_type_is_422(client):
    lead = _lead(client)

    res = client.post(f"/api/v1/leads/{lead['id']}/tourists", json={"first_name": "Kid", "tourist_type": "teen"})

    assert res.status_code == 422


def test_convert_creates_participant_per_tourist(client):
    event = _event(client)
    lead = _lead(client, email="ivan@example.com", tourists=[
        {"first_name": "Ivan", "last_name": "Petrov"},
        {"first_name": "Maria", "last_name": "Petrova", "tourist_type": "child"},
    ])

    res = client.post(f"/api/v1/leads/{lead['id']}/convert", json={"event_id": event["id"]})

    assert res.status_code == 201
    body = res.get_json()
    assert len(body["created"]) == 2
    assert body["skipped"] == 0
    contacts = db.session.query(Contact).order_by(Contact.id).all()
    assert [c.name for c in contacts] == ["Petrov Ivan", "Petrova Maria"]
    assert contacts[0].email == "ivan@example.com"
    assert contacts[1].email is None
    assert client.get(f"/api/v1/leads/{lead['id']}").get_json()["status"] == "converted"


def test_convert_twice_skips_existing_participants(client):
    event = _event(client)
    lead = _lead(client, tourists=[{"first_name": "Ivan"}, {"first_name": "Maria"}])

    client.post(f"/api/v1/leads/{lead['id']}/convert", json={"event_id": event["id"]})
    again = client.post(f"/api/v1/leads/{lead['id']}/convert", json={"event_id": event["id"]}).get_json()

    assert again["created"] == []
    assert again["skipped"] == 2
    assert db.session.query(Deal).count() == 2


def test_convert_lead_without_tourists_registers_the_lead(client):
    event = _event(client)
    lead = _lead(client, last_name="Solo")

    body = client.post(f"/api/v1/leads/{lead['id']}/convert", json={"event_id": event["id"]}).get_json()

    assert len(body["created"]) == 1
    assert db.session.query(Contact).one().name == "Ivan Solo"


def test_convert_requires_event_id(client):
    lead = _lead(client)

    assert client.post(f"/api/v1/leads/{lead['id']}/convert", json={}).status_code == 400
    assert client.post(f"/api/v1/leads/{lead['id']}/convert", json={"event_id": 404}).status_code == 404


def test_delete_lead(client):
    lead = _lead(client)

    assert client.delete(f"/api/v1/leads/{lead['id']}").status_code == 200
    assert client.get(f"/api/v1/leads/{lead['id']}").status_code == 404


def test_list_leads_is_paginated(client):
    for name in ("Anna", "Boris", "Clara"):
        _lead(client, first_name=name)

    data = client.get("/api/v1/leads?limit=2&offset=0").get_json()

    assert data["total"] == 3
    assert len(data["items"]) == 2
