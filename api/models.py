"""
API request and response models for the NTC bus REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
fleet/models.py, which own the internal domain representation. Route handlers
map between the two.
"""

from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from auth.models import Role, User
from fleet.models import Bus, Route, Trip

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# bcrypt only looks at the first 72 bytes; longer ASCII passwords would be
# silently truncated.
PASSWORD_MAX_LEN = 72
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"

# Emails are stripped of surrounding whitespace; passwords are taken verbatim.
Email = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=255, pattern=EMAIL_PATTERN)]
Password = Annotated[str, Field(min_length=1, max_length=PASSWORD_MAX_LEN)]


def _reject_null(value):
    """Patch fields backed by NOT NULL columns may be omitted but not nulled."""
    if value is None:
        raise ValueError("may not be null")
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TripStatusEnum(str, Enum):
    scheduled = "scheduled"
    cancelled = "cancelled"


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: str
    detail: Optional[list] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Email is stored exactly as sent (no case folding); only surrounding
    whitespace is stripped.
    """

    email: Email
    password: Password
    role: Role


class LoginRequest(BaseModel):
    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    password: Password


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class PublicUser(BaseModel):
    """Non-secret user fields. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(**user.public_view())


class AuthResponse(BaseModel):
    """Response for register and login: token in the body for API clients."""

    model_config = ConfigDict(frozen=True)

    message: str
    token: str
    user: PublicUser


class SessionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    issued_at: str
    expires_at: str
    current: bool


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


class OperatorCreate(BaseModel):
    """Request body for POST /api/v1/admin/operators. Role is always operator."""

    email: Email
    password: Password


class OperatorPatch(BaseModel):
    email: Optional[Email] = None
    password: Optional[Password] = None


class OperatorResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    operator: PublicUser


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


class RouteCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    number: str = Field(min_length=1, max_length=30)
    start: str = Field(min_length=1, max_length=255)
    end: str = Field(min_length=1, max_length=255)
    total_distance: Optional[float] = Field(default=None, ge=0)


class RoutePatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    number: Optional[str] = Field(default=None, min_length=1, max_length=30)
    start: Optional[str] = Field(default=None, min_length=1, max_length=255)
    end: Optional[str] = Field(default=None, min_length=1, max_length=255)
    total_distance: Optional[float] = Field(default=None, ge=0)

    @field_validator("number", "start", "end")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class RouteOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    number: str
    start: str
    end: str
    total_distance: Optional[float]

    @classmethod
    def from_route(cls, route: Route) -> "RouteOut":
        return cls(
            id=route.id,
            number=route.number,
            start=route.start,
            end=route.end,
            total_distance=route.total_distance,
        )


class RouteResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    route: RouteOut


# ---------------------------------------------------------------------------
# Buses
# ---------------------------------------------------------------------------


class BusCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    ntc_no: str = Field(min_length=1, max_length=50)
    bus_no: str = Field(min_length=1, max_length=50)
    bus_name: str = Field(default="", max_length=255)
    bus_type: str = Field(default="", max_length=50)
    driver_id: Optional[str] = Field(default=None, max_length=100)
    conductor_id: Optional[str] = Field(default=None, max_length=100)
    route_id: Optional[int] = None


class BusPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    ntc_no: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bus_no: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bus_name: Optional[str] = Field(default=None, max_length=255)
    bus_type: Optional[str] = Field(default=None, max_length=50)
    driver_id: Optional[str] = Field(default=None, max_length=100)
    conductor_id: Optional[str] = Field(default=None, max_length=100)
    route_id: Optional[int] = None

    @field_validator("ntc_no", "bus_no", "bus_name", "bus_type")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class BusOut(BaseModel):
    """A bus with its route summary (number/start/end) embedded when assigned."""

    model_config = ConfigDict(frozen=True)

    id: int
    ntc_no: str
    bus_no: str
    bus_name: str
    bus_type: str
    driver_id: Optional[str]
    conductor_id: Optional[str]
    route_id: Optional[int]
    route: Optional[dict] = None

    @classmethod
    def from_bus(cls, bus: Bus, route: Optional[dict] = None) -> "BusOut":
        return cls(
            id=bus.id,
            ntc_no=bus.ntc_no,
            bus_no=bus.bus_no,
            bus_name=bus.bus_name,
            bus_type=bus.bus_type,
            driver_id=bus.driver_id,
            conductor_id=bus.conductor_id,
            route_id=bus.route_id,
            route=route,
        )


class BusResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    bus: BusOut


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


class TripCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    trip_id: str = Field(min_length=1, max_length=50)
    route_id: int
    bus_id: int
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    date: str = Field(pattern=DATE_PATTERN)
    total_seats: int = Field(ge=1, le=200)


class TripPatch(BaseModel):
    """Partial trip update. trip_id itself is immutable and no field may be null."""

    model_config = ConfigDict(str_strip_whitespace=True)

    route_id: Optional[int] = None
    bus_id: Optional[int] = None
    start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    date: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    total_seats: Optional[int] = Field(default=None, ge=1, le=200)
    available_seats: Optional[int] = Field(default=None, ge=0, le=200)
    booked_seats: Optional[list[int]] = None
    not_provided_seats: Optional[list[int]] = None
    status: Optional[TripStatusEnum] = None

    @field_validator("*")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class TripOut(BaseModel):
    """A trip with route and bus summaries embedded."""

    model_config = ConfigDict(frozen=True)

    id: int
    trip_id: str
    route_id: int
    bus_id: int
    start_time: str
    end_time: str
    date: str
    total_seats: int
    available_seats: int
    booked_seats: list[int]
    not_provided_seats: list[int]
    status: str
    route: Optional[dict] = None
    bus: Optional[dict] = None

    @classmethod
    def from_trip(cls, trip: Trip, route: Optional[dict] = None, bus: Optional[dict] = None) -> "TripOut":
        return cls(
            id=trip.id,
            trip_id=trip.trip_id,
            route_id=trip.route_id,
            bus_id=trip.bus_id,
            start_time=trip.start_time,
            end_time=trip.end_time,
            date=trip.date,
            total_seats=trip.total_seats,
            available_seats=trip.available_seats,
            booked_seats=trip.booked_seats,
            not_provided_seats=trip.not_provided_seats,
            status=trip.status,
            route=route,
            bus=bus,
        )


class TripResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    trip: TripOut
