"""
fleet/models.py -- Domain dataclasses for buses, routes and trips.

These are pure data containers with zero logic. Uniqueness checks, seat
initialisation and cancellation live in fleet/store.py and the admin routes.

Separation of concerns: these dataclasses are the fleet's domain truth, just
as auth/models.py is the identity domain's truth. Neither layer imports the
other.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Route:
    """A numbered bus route between two termini.

    number is the public route number (e.g. "138") and is unique.
    id is None before the record is written to the database.
    """

    number: str
    start: str
    end: str
    total_distance: Optional[float] = None
    id: Optional[int] = None


@dataclass
class Bus:
    """A registered bus, identified publicly by its NTC registration number.

    route_id is optional: a bus may be registered before it is assigned.
    """

    ntc_no: str
    bus_no: str
    bus_name: str = ""
    bus_type: str = ""
    driver_id: Optional[str] = None
    conductor_id: Optional[str] = None
    route_id: Optional[int] = None
    id: Optional[int] = None


@dataclass
class Trip:
    """A scheduled run of one bus on one route.

    trip_id is the business identifier used in URLs; id is the row key.
    available_seats starts equal to total_seats. booked_seats and
    not_provided_seats hold seat numbers and are only ever edited through a
    trip update -- there is no booking workflow.
    """

    trip_id: str
    route_id: int
    bus_id: int
    start_time: str
    end_time: str
    date: str  # YYYY-MM-DD
    total_seats: int
    available_seats: int = 0
    booked_seats: list[int] = field(default_factory=list)
    not_provided_seats: list[int] = field(default_factory=list)
    status: str = "scheduled"  # "scheduled" | "cancelled"
    id: Optional[int] = None
