"""
Itinerary field catalogue.

Classifies CityVisit fields into the three shareable field groups
(arrival, hotel, departure), maps departure fields to their arrival
counterparts for the auto-fill chain, and normalises incoming values.

Usage:
    from tourdesk.services.itinerary_fields import classify_field, normalise_value

    classify_field("hotel_name")        # "hotel"
    classify_field("notes")             # None  (unclassified)
    normalise_value("arrival_date", "03.07.2025")   # "2025-07-03"
"""

import re

from tourdesk.core.exceptions import ValidationError
from tourdesk.models.participation import CITY_VISIT_FIELDS
from tourdesk.utils.helpers import parse_date

FIELD_GROUPS = ("arrival", "hotel", "departure")

ARRIVAL_FIELDS = (
    "arrival_date",
    "arrival_time",
    "arrival_transport_type",
    "arrival_flight_number",
    "arrival_terminal",
    "arrival_transfer",
)
HOTEL_FIELDS = ("hotel_name", "room_type")
DEPARTURE_FIELDS = (
    "departure_date",
    "departure_time",
    "departure_transport_type",
    "departure_flight_number",
    "departure_terminal",
    "departure_transfer",
)

FIELDS_BY_GROUP = {
    "arrival": ARRIVAL_FIELDS,
    "hotel": HOTEL_FIELDS,
    "departure": DEPARTURE_FIELDS,
}

_GROUP_OF_FIELD = {f: group for group, fields in FIELDS_BY_GROUP.items() for f in fields}

# Departure leg out of city A is the arrival leg into city B.
DEPARTURE_TO_ARRIVAL = dict(zip(DEPARTURE_FIELDS, ARRIVAL_FIELDS))

TRANSPORT_TYPES = frozenset({"plane", "train", "bus"})
ROOM_TYPES = frozenset({"single", "twin", "double", "triple"})

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def classify_field(field_name: str) -> str | None:
    """Return the field group of a CityVisit field, or None if unclassified.

    Raises:
        ValidationError: the name is not a CityVisit itinerary field.
    """
    if field_name not in CITY_VISIT_FIELDS:
        raise ValidationError(
            f"Unknown itinerary field '{field_name}'",
            details={"field": f"Must be one of: {', '.join(CITY_VISIT_FIELDS)}."},
        )
    return _GROUP_OF_FIELD.get(field_name)


def normalise_value(field_name: str, value):
    """Validate and normalise a value for a CityVisit field.

    Empty strings become None (clearing the field). Dates are stored ISO,
    times as HH:MM, transport and room types lower-case.

    Raises:
        ValidationError: the value is not acceptable for the field.
    """
    classify_field(field_name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string or null", details={field_name: "Expected string."})
    value = value.strip()
    if not value:
        return None

    if field_name.endswith("_date"):
        parsed = parse_date(value)
        if parsed is None:
            raise ValidationError(f"Invalid date for {field_name}", details={field_name: "Use YYYY-MM-DD."})
        return parsed.isoformat()
    if field_name.endswith("_time"):
        if not _TIME_RE.match(value):
            raise ValidationError(f"Invalid time for {field_name}", details={field_name: "Use HH:MM."})
        return value
    if field_name.endswith("_transport_type"):
        value = value.lower()
        if value not in TRANSPORT_TYPES:
            raise ValidationError(
                f"Invalid transport type '{value}'",
                details={field_name: f"Must be one of: {', '.join(sorted(TRANSPORT_TYPES))}."},
            )
        return value
    if field_name == "room_type":
        value = value.lower()
        if value not in ROOM_TYPES:
            raise ValidationError(
                f"Invalid room type '{value}'",
                details={field_name: f"Must be one of: {', '.join(sorted(ROOM_TYPES))}."},
            )
        return value
    return value
