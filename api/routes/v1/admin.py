"""
api/routes/v1/admin.py -- Admin-only fleet and operator management.

Routes (prefix /api/v1/admin):
  POST   /buses                     -- add bus (400 duplicate NTC number)
  GET    /buses                     -- list buses with route summary
  GET    /buses/{ntc_no}            -- bus detail
  PATCH  /buses/{ntc_no}            -- update bus
  DELETE /buses/{ntc_no}            -- delete bus
  GET    /routes                    -- search routes (route_id, start, end)
  POST   /routes                    -- create route (400 duplicate number)
  PATCH  /routes/{route_id}         -- update route
  DELETE /routes/{route_id}         -- delete route
  POST   /trips                     -- add trip (404 unknown route/bus, 400 duplicate trip_id)
  GET    /trips                     -- list trips with route and bus summaries
  PATCH  /trips/{trip_id}           -- update trip
  POST   /trips/{trip_id}/cancel    -- mark trip cancelled
  POST   /operators                 -- add operator (role forced to operator)
  GET    /operators                 -- list operators
  PATCH  /operators/{user_id}       -- update operator email/password
  DELETE /operators/{user_id}       -- delete operator and its sessions

Every route requires the admin role via the router-level dependency.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError

from api.models import (
    BusCreate,
    BusOut,
    BusPatch,
    BusResponse,
    MessageResponse,
    OperatorCreate,
    OperatorPatch,
    OperatorResponse,
    PublicUser,
    RouteCreate,
    RouteOut,
    RoutePatch,
    RouteResponse,
    TripCreate,
    TripOut,
    TripPatch,
    TripResponse,
)
from auth.dependencies import get_gateway, require_admin
from fleet.models import Bus, Route, Trip
from fleet.store import FleetStore, bus_summary, route_summary

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def _fleet(request: Request) -> FleetStore:
    return request.app.state.fleet


def _not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail=message)


def _conflict(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail=message)


# ---------------------------------------------------------------------------
# Buses
# ---------------------------------------------------------------------------


@router.post("/buses", response_model=BusResponse, status_code=201)
def add_bus(request: Request, body: BusCreate) -> BusResponse:
    fleet = _fleet(request)
    if fleet.get_bus_by_ntc(body.ntc_no) is not None:
        raise _conflict("Bus with this NTC number already exists.")
    if body.route_id is not None and fleet.get_route(body.route_id) is None:
        raise _not_found("Route not found")
    try:
        bus_id = fleet.create_bus(Bus(**body.model_dump()))
    except IntegrityError as exc:
        raise _conflict("Bus with this NTC number already exists.") from exc
    bus = fleet.get_bus(bus_id)
    return BusResponse(message="Bus added successfully", bus=_bus_out(fleet, bus))


@router.get("/buses", response_model=list[BusOut])
def list_buses(request: Request) -> list[BusOut]:
    fleet = _fleet(request)
    buses = fleet.list_buses()
    routes = fleet.get_routes_by_ids({b.route_id for b in buses if b.route_id is not None})
    return [BusOut.from_bus(b, route_summary(routes.get(b.route_id))) for b in buses]


@router.get("/buses/{ntc_no}", response_model=BusOut)
def get_bus(request: Request, ntc_no: str) -> BusOut:
    fleet = _fleet(request)
    bus = fleet.get_bus_by_ntc(ntc_no)
    if bus is None:
        raise _not_found("Bus not found")
    return _bus_out(fleet, bus)


@router.patch("/buses/{ntc_no}", response_model=BusResponse)
def update_bus(request: Request, ntc_no: str, body: BusPatch) -> BusResponse:
    """Update a bus. A new ntc_no must be unused and a new route_id must exist."""
    fleet = _fleet(request)
    if fleet.get_bus_by_ntc(ntc_no) is None:
        raise _not_found("Bus not found")
    updates = body.model_dump(exclude_unset=True)
    new_ntc_no = updates.get("ntc_no")
    if new_ntc_no is not None and new_ntc_no != ntc_no and fleet.get_bus_by_ntc(new_ntc_no) is not None:
        raise _conflict("Bus with this NTC number already exists.")
    if updates.get("route_id") is not None and fleet.get_route(updates["route_id"]) is None:
        raise _not_found("Route not found")
    try:
        bus = fleet.update_bus_by_ntc(ntc_no, **updates)
    except IntegrityError as exc:
        raise _conflict("Bus with this NTC number already exists.") from exc
    if bus is None:
        raise _not_found("Bus not found")
    return BusResponse(message="Bus updated successfully", bus=_bus_out(fleet, bus))


@router.delete("/buses/{ntc_no}", response_model=MessageResponse)
def delete_bus(request: Request, ntc_no: str) -> MessageResponse:
    if not _fleet(request).delete_bus_by_ntc(ntc_no):
        raise _not_found("Bus not found")
    return MessageResponse(message="Bus deleted successfully")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/routes", response_model=list[RouteOut])
def search_routes(
    request: Request,
    route_id: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> list[RouteOut]:
    """Filter routes by any combination of route_id, start and end (exact match)."""
    routes = _fleet(request).search_routes(route_id=route_id, start=start, end=end)
    return [RouteOut.from_route(r) for r in routes]


@router.post("/routes", response_model=RouteResponse, status_code=201)
def create_route(request: Request, body: RouteCreate) -> RouteResponse:
    fleet = _fleet(request)
    if fleet.get_route_by_number(body.number) is not None:
        raise _conflict("Route number already exists")
    try:
        route_id = fleet.create_route(Route(**body.model_dump()))
    except IntegrityError as exc:
        raise _conflict("Route number already exists") from exc
    return RouteResponse(message="Route created successfully", route=RouteOut.from_route(fleet.get_route(route_id)))


@router.patch("/routes/{route_id}", response_model=RouteResponse)
def update_route(request: Request, route_id: int, body: RoutePatch) -> RouteResponse:
    fleet = _fleet(request)
    try:
        updated = fleet.update_route(route_id, **body.model_dump(exclude_unset=True))
    except IntegrityError as exc:
        raise _conflict("Route number already exists") from exc
    if not updated:
        raise _not_found("Route not found")
    return RouteResponse(message="Route updated successfully", route=RouteOut.from_route(fleet.get_route(route_id)))


@router.delete("/routes/{route_id}", response_model=MessageResponse)
def delete_route(request: Request, route_id: int) -> MessageResponse:
    if not _fleet(request).delete_route(route_id):
        raise _not_found("Route not found")
    return MessageResponse(message="Route deleted successfully")


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


@router.post("/trips", response_model=TripResponse, status_code=201)
def add_trip(request: Request, body: TripCreate) -> TripResponse:
    """Schedule a trip. Route and bus must exist; trip_id must be unused.

    available_seats starts at total_seats with no booked seats.
    """
    fleet = _fleet(request)
    if fleet.get_route(body.route_id) is None:
        raise _not_found("Route not found")
    if fleet.get_bus(body.bus_id) is None:
        raise _not_found("Bus not found")
    if fleet.get_trip(body.trip_id) is not None:
        raise _conflict("Trip with this ID already exists")
    try:
        fleet.create_trip(Trip(**body.model_dump()))
    except IntegrityError as exc:
        raise _conflict("Trip with this ID already exists") from exc
    return TripResponse(message="Trip added successfully", trip=trip_out(fleet, fleet.get_trip(body.trip_id)))


@router.get("/trips", response_model=list[TripOut])
def list_trips(request: Request) -> list[TripOut]:
    return list_trip_rows(_fleet(request))


@router.patch("/trips/{trip_id}", response_model=TripResponse)
def update_trip(request: Request, trip_id: str, body: TripPatch) -> TripResponse:
    fleet = _fleet(request)
    if fleet.get_trip(trip_id) is None:
        raise _not_found("Trip not found")
    updates = body.model_dump(exclude_unset=True, mode="json")
    if "route_id" in updates and fleet.get_route(updates["route_id"]) is None:
        raise _not_found("Route not found")
    if "bus_id" in updates and fleet.get_bus(updates["bus_id"]) is None:
        raise _not_found("Bus not found")
    trip = fleet.update_trip(trip_id, **updates)
    if trip is None:
        raise _not_found("Trip not found")
    return TripResponse(message="Trip updated successfully", trip=trip_out(fleet, trip))


@router.post("/trips/{trip_id}/cancel", response_model=TripResponse)
def cancel_trip(request: Request, trip_id: str) -> TripResponse:
    fleet = _fleet(request)
    trip = fleet.cancel_trip(trip_id)
    if trip is None:
        raise _not_found("Trip not found")
    return TripResponse(message="Trip canceled successfully", trip=trip_out(fleet, trip))


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


@router.post("/operators", response_model=OperatorResponse, status_code=201)
def add_operator(request: Request, body: OperatorCreate) -> OperatorResponse:
    operator = get_gateway(request).add_operator(body.email, body.password)
    return OperatorResponse(message="Operator added successfully", operator=PublicUser.from_user(operator))


@router.get("/operators", response_model=list[PublicUser])
def list_operators(request: Request) -> list[PublicUser]:
    return [PublicUser.from_user(u) for u in get_gateway(request).list_operators()]


@router.patch("/operators/{user_id}", response_model=OperatorResponse)
def update_operator(request: Request, user_id: int, body: OperatorPatch) -> OperatorResponse:
    """Change an operator's email or password. The role cannot be changed here."""
    operator = get_gateway(request).update_operator(user_id, email=body.email, password=body.password)
    return OperatorResponse(message="Operator updated successfully", operator=PublicUser.from_user(operator))


@router.delete("/operators/{user_id}", response_model=MessageResponse)
def delete_operator(request: Request, user_id: int) -> MessageResponse:
    get_gateway(request).delete_operator(user_id)
    return MessageResponse(message="Operator deleted successfully")


# ---------------------------------------------------------------------------
# Helpers (shared with the role-scoped read routes)
# ---------------------------------------------------------------------------


def _bus_out(fleet: FleetStore, bus: Bus) -> BusOut:
    route = fleet.get_route(bus.route_id) if bus.route_id is not None else None
    return BusOut.from_bus(bus, route_summary(route))


def trip_out(fleet: FleetStore, trip: Trip) -> TripOut:
    return TripOut.from_trip(trip, route_summary(fleet.get_route(trip.route_id)), bus_summary(fleet.get_bus(trip.bus_id)))


def list_trip_rows(fleet: FleetStore) -> list[TripOut]:
    """All trips with route and bus summaries, fetched without N+1 lookups."""
    trips = fleet.list_trips()
    routes = fleet.get_routes_by_ids({t.route_id for t in trips})
    buses = fleet.get_buses_by_ids({t.bus_id for t in trips})
    return [
        TripOut.from_trip(t, route_summary(routes.get(t.route_id)), bus_summary(buses.get(t.bus_id)))
        for t in trips
    ]
