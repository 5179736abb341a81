"""
fleet/store.py -- SQLAlchemy-backed persistence layer for buses, routes and trips.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in fleet/models.py
remain the authoritative domain representation.

Pattern: Repository + Data Mapper. FleetStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Route
handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = FleetStore("sqlite:///ntc_bus.db")
    store = FleetStore("postgresql://user:pw@host/db")
    route_id = store.create_route(Route(number="138", start="Pettah", end="Homagama"))
    store.create_bus(Bus(ntc_no="NB-1234", bus_no="1234", route_id=route_id))
    buses = store.list_buses()
    store.close()
"""

import json
import logging
from typing import Optional

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from core.database import make_engine
from fleet.models import Bus, Route, Trip

logger = logging.getLogger("ntcbus.fleet")

# Columns the update_* methods accept. Anything else raises ValueError.
_BUS_FIELDS = {"ntc_no", "bus_no", "bus_name", "bus_type", "driver_id", "conductor_id", "route_id"}
_ROUTE_FIELDS = {"number", "start", "end", "total_distance"}
_TRIP_FIELDS = {
    "route_id",
    "bus_id",
    "start_time",
    "end_time",
    "date",
    "total_seats",
    "available_seats",
    "booked_seats",
    "not_provided_seats",
    "status",
}
_JSON_FIELDS = ("booked_seats", "not_provided_seats")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_routes = Table(
    "routes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("number", String(30), nullable=False, unique=True),
    Column("start", String(255), nullable=False),
    Column("end", String(255), nullable=False),
    Column("total_distance", Float),
)

_buses = Table(
    "buses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("ntc_no", String(50), nullable=False, unique=True),
    Column("bus_no", String(50), nullable=False),
    Column("bus_name", String(255), nullable=False, server_default=""),
    Column("bus_type", String(50), nullable=False, server_default=""),
    Column("driver_id", String(100)),
    Column("conductor_id", String(100)),
    Column("route_id", Integer),
)

_trips = Table(
    "trips",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("trip_id", String(50), nullable=False, unique=True),
    Column("route_id", Integer, nullable=False),
    Column("bus_id", Integer, nullable=False),
    Column("start_time", String(10), nullable=False),
    Column("end_time", String(10), nullable=False),
    Column("date", String(10), nullable=False),
    Column("total_seats", Integer, nullable=False),
    Column("available_seats", Integer, nullable=False),
    Column("booked_seats", Text),  # JSON array serialized as text
    Column("not_provided_seats", Text),  # JSON array serialized as text
    Column("status", String(20), nullable=False, server_default="scheduled"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _check_fields(fields: dict, allowed: set) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {unknown!r}")


def route_summary(route: Optional[Route]) -> Optional[dict]:
    """The route fields embedded in bus and trip listings."""
    if route is None:
        return None
    return {"id": route.id, "number": route.number, "start": route.start, "end": route.end}


def bus_summary(bus: Optional[Bus]) -> Optional[dict]:
    """The bus fields embedded in trip listings."""
    if bus is None:
        return None
    return {"id": bus.id, "ntc_no": bus.ntc_no, "bus_no": bus.bus_no, "bus_name": bus.bus_name}


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class FleetStore:
    def __init__(self, db_url: str, timeout: Optional[float] = None) -> None:
        self.engine: Engine = make_engine(db_url, timeout)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def create_route(self, route: Route) -> int:
        """Insert a route and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the route number already exists.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _routes.insert().values(
                    number=route.number,
                    start=route.start,
                    end=route.end,
                    total_distance=route.total_distance,
                )
            )
            return result.inserted_primary_key[0]

    def get_route(self, route_id: int) -> Optional[Route]:
        with self.engine.connect() as conn:
            row = conn.execute(_routes.select().where(_routes.c.id == route_id)).fetchone()
        return _row_to_route(row) if row is not None else None

    def get_route_by_number(self, number: str) -> Optional[Route]:
        with self.engine.connect() as conn:
            row = conn.execute(_routes.select().where(_routes.c.number == number)).fetchone()
        return _row_to_route(row) if row is not None else None

    def search_routes(
        self,
        route_id: Optional[int] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> list[Route]:
        """Return routes matching every filter given (exact match), ordered by number."""
        query = _routes.select().order_by(_routes.c.number)
        if route_id is not None:
            query = query.where(_routes.c.id == route_id)
        if start:
            query = query.where(_routes.c.start == start)
        if end:
            query = query.where(_routes.c.end == end)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_route(r) for r in rows]

    def get_routes_by_ids(self, route_ids: set) -> dict[int, Route]:
        """Fetch many routes in one query, keyed by ID."""
        if not route_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_routes.select().where(_routes.c.id.in_(list(route_ids)))).fetchall()
        return {r.id: _row_to_route(r) for r in rows}

    def update_route(self, route_id: int, **fields) -> bool:
        """Update fields on a route. Returns False if route_id was not found.

        Raises sqlalchemy.exc.IntegrityError if a new number is already taken.
        """
        _check_fields(fields, _ROUTE_FIELDS)
        if not fields:
            return self.get_route(route_id) is not None
        with self.engine.begin() as conn:
            result = conn.execute(_routes.update().where(_routes.c.id == route_id).values(**fields))
        return result.rowcount > 0

    def delete_route(self, route_id: int) -> bool:
        """Delete a route. Buses and trips that reference it are left as-is."""
        with self.engine.begin() as conn:
            result = conn.execute(_routes.delete().where(_routes.c.id == route_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Buses
    # ------------------------------------------------------------------

    def create_bus(self, bus: Bus) -> int:
        """Insert a bus and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the NTC number already exists.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _buses.insert().values(
                    ntc_no=bus.ntc_no,
                    bus_no=bus.bus_no,
                    bus_name=bus.bus_name,
                    bus_type=bus.bus_type,
                    driver_id=bus.driver_id,
                    conductor_id=bus.conductor_id,
                    route_id=bus.route_id,
                )
            )
            return result.inserted_primary_key[0]

    def get_bus(self, bus_id: int) -> Optional[Bus]:
        with self.engine.connect() as conn:
            row = conn.execute(_buses.select().where(_buses.c.id == bus_id)).fetchone()
        return _row_to_bus(row) if row is not None else None

    def get_bus_by_ntc(self, ntc_no: str) -> Optional[Bus]:
        with self.engine.connect() as conn:
            row = conn.execute(_buses.select().where(_buses.c.ntc_no == ntc_no)).fetchone()
        return _row_to_bus(row) if row is not None else None

    def get_buses_by_ids(self, bus_ids: set) -> dict[int, Bus]:
        """Fetch many buses in one query, keyed by ID."""
        if not bus_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_buses.select().where(_buses.c.id.in_(list(bus_ids)))).fetchall()
        return {r.id: _row_to_bus(r) for r in rows}

    def list_buses(self) -> list[Bus]:
        """Return all buses ordered by NTC number."""
        with self.engine.connect() as conn:
            rows = conn.execute(_buses.select().order_by(_buses.c.ntc_no)).fetchall()
        return [_row_to_bus(r) for r in rows]

    def update_bus_by_ntc(self, current_ntc_no: str, **fields) -> Optional[Bus]:
        """Update a bus located by NTC number and return the new state.

        Returns None if no bus has current_ntc_no. Raises IntegrityError if
        fields renames it to an NTC number that is already registered.
        """
        _check_fields(fields, _BUS_FIELDS)
        bus = self.get_bus_by_ntc(current_ntc_no)
        if bus is None:
            return None
        if fields:
            with self.engine.begin() as conn:
                conn.execute(_buses.update().where(_buses.c.id == bus.id).values(**fields))
        return self.get_bus(bus.id)

    def delete_bus_by_ntc(self, ntc_no: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_buses.delete().where(_buses.c.ntc_no == ntc_no))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Trips
    # ------------------------------------------------------------------

    def create_trip(self, trip: Trip) -> int:
        """Insert a trip and return its ID.

        available_seats is initialised to total_seats and the seat lists
        start empty, whatever the dataclass carries.
        Raises sqlalchemy.exc.IntegrityError if trip_id already exists.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _trips.insert().values(
                    trip_id=trip.trip_id,
                    route_id=trip.route_id,
                    bus_id=trip.bus_id,
                    start_time=trip.start_time,
                    end_time=trip.end_time,
                    date=trip.date,
                    total_seats=trip.total_seats,
                    available_seats=trip.total_seats,
                    booked_seats=json.dumps([]),
                    not_provided_seats=json.dumps([]),
                    status="scheduled",
                )
            )
            return result.inserted_primary_key[0]

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        """Look up a trip by its business trip_id."""
        with self.engine.connect() as conn:
            row = conn.execute(_trips.select().where(_trips.c.trip_id == trip_id)).fetchone()
        return _row_to_trip(row) if row is not None else None

    def list_trips(self) -> list[Trip]:
        """Return all trips ordered by date and start time."""
        with self.engine.connect() as conn:
            rows = conn.execute(_trips.select().order_by(_trips.c.date, _trips.c.start_time)).fetchall()
        return [_row_to_trip(r) for r in rows]

    def update_trip(self, trip_id: str, **fields) -> Optional[Trip]:
        """Update a trip located by trip_id and return the new state, or None.

        Seat lists must be passed as list[int]; they are serialized to JSON
        before writing.
        """
        _check_fields(fields, _TRIP_FIELDS)
        if not fields:
            return self.get_trip(trip_id)
        for key in _JSON_FIELDS:
            if key in fields:
                fields[key] = json.dumps(fields[key])
        with self.engine.begin() as conn:
            result = conn.execute(_trips.update().where(_trips.c.trip_id == trip_id).values(**fields))
            if result.rowcount == 0:
                return None
        return self.get_trip(trip_id)

    def cancel_trip(self, trip_id: str) -> Optional[Trip]:
        """Mark a trip cancelled. Returns the updated trip, or None if unknown."""
        trip = self.update_trip(trip_id, status="cancelled")
        if trip is not None:
            logger.info("Trip %s cancelled", trip_id)
        return trip

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_route(row) -> Route:
    return Route(
        id=row.id,
        number=row.number,
        start=row.start,
        end=row.end,
        total_distance=row.total_distance,
    )


def _row_to_bus(row) -> Bus:
    return Bus(
        id=row.id,
        ntc_no=row.ntc_no,
        bus_no=row.bus_no,
        bus_name=row.bus_name or "",
        bus_type=row.bus_type or "",
        driver_id=row.driver_id,
        conductor_id=row.conductor_id,
        route_id=row.route_id,
    )


def _row_to_trip(row) -> Trip:
    return Trip(
        id=row.id,
        trip_id=row.trip_id,
        route_id=row.route_id,
        bus_id=row.bus_id,
        start_time=row.start_time,
        end_time=row.end_time,
        date=row.date,
        total_seats=row.total_seats,
        available_seats=row.available_seats,
        booked_seats=json.loads(row.booked_seats) if row.booked_seats else [],
        not_provided_seats=json.loads(row.not_provided_seats) if row.not_provided_seats else [],
        status=row.status,
    )
