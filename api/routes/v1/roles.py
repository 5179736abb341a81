"""
api/routes/v1/roles.py -- Read-only views scoped to the operator and commuter roles.

Routes:
  GET /api/v1/operator/trips     -- operator only: every trip with route/bus summaries
  GET /api/v1/commuter/routes    -- commuter only: route search (route_id, start, end)

Admins use the /admin equivalents; these guards admit exactly one role each.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import RouteOut, TripOut
from api.routes.v1.admin import list_trip_rows
from auth.dependencies import require_commuter, require_operator

operator_router = APIRouter(prefix="/operator", dependencies=[Depends(require_operator)])
commuter_router = APIRouter(prefix="/commuter", dependencies=[Depends(require_commuter)])


@operator_router.get("/trips", response_model=list[TripOut])
def operator_trips(request: Request) -> list[TripOut]:
    return list_trip_rows(request.app.state.fleet)


@commuter_router.get("/routes", response_model=list[RouteOut])
def commuter_routes(
    request: Request,
    route_id: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> list[RouteOut]:
    routes = request.app.state.fleet.search_routes(route_id=route_id, start=start, end=end)
    return [RouteOut.from_route(r) for r in routes]
