from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import ValidationError
from typing import Any, Dict, List, Optional
import random
from models import (
    Location, Taxi, Booking, BookingRequest, AddressSearch, TickRequest, FareQuote,
    RegisterRequest, CreateDriverRequest, LoginRequest, AuthResponse,
    CreateDriverResponse, ErrorResponse, TokenClaims, UserType,
)
from auth import (
    ApiError, BadRequest, Forbidden, Conflict, Unauthorized, ServerError,
    authenticate_token, get_settings, hash_password, verify_password, create_token,
)
from config import Settings
from database import UserStore, DuplicateEmail
from helpers import VEHICLE_TYPES, demo_location, estimate_fare, nearest_available_by_type, available_taxis
from simulator import RideSimulation, SimulationError, describe_status

auth_router = APIRouter(prefix="/api/auth", responses={
    code: {"model": ErrorResponse} for code in (400, 401, 403, 409, 500)
})
simulation_router = APIRouter(prefix="/api", responses={400: {"model": ErrorResponse}})

# One tick may cover at most an hour of simulated time
MAX_TICK_MS = 60 * 60 * 1000


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store

def get_simulation(request: Request) -> RideSimulation:
    return request.app.state.simulation

def _missing(*values) -> bool:
    return any(value is None or value == "" for value in values)


# ---------------------------------------------------------------- auth

@auth_router.post("/register", response_model=AuthResponse)
def register(body: RegisterRequest,
             store: UserStore = Depends(get_user_store),
             settings: Settings = Depends(get_settings)):
    """Register an admin account (the only self-service registration)"""
    try:
        print(f"[REGISTER] Registration attempt for {body.email} as {body.user_type}")

        if _missing(body.email, body.password, body.user_type, body.first_name, body.last_name):
            print(f"[REGISTER] ERROR: Missing required fields")
            raise BadRequest("Missing required fields")

        if body.user_type != UserType.ADMIN.value:
            print(f"[REGISTER] ERROR: Rejected user_type {body.user_type}")
            raise Forbidden("Only admin registration is allowed here.")

        if store.email_exists(body.email):
            print(f"[REGISTER] ERROR: Email already registered: {body.email}")
            raise Conflict("Email already registered")

        password_hash = hash_password(body.password, settings.bcrypt_rounds)
        record = store.insert_user(
            body.email, password_hash, UserType.ADMIN.value,
            body.first_name, body.last_name, body.phone,
        )
        token = create_token(record.id, record.user_type.value, settings.jwt_secret, settings.token_ttl_days)

        print(f"[REGISTER] SUCCESS: Admin {record.id} registered")
        return AuthResponse(user=record.public(), token=token)

    except DuplicateEmail:
        print(f"[REGISTER] ERROR: Email already registered: {body.email}")
        raise Conflict("Email already registered")
    except ApiError:
        raise
    except Exception as e:
        print(f"[REGISTER] CRITICAL ERROR: {e}")
        raise ServerError()

@auth_router.post("/create-driver", response_model=CreateDriverResponse)
def create_driver(payload: Optional[Dict[str, Any]] = Body(None),
                  claims: TokenClaims = Depends(authenticate_token),
                  store: UserStore = Depends(get_user_store),
                  settings: Settings = Depends(get_settings)):
    """Create a driver account; admins only"""
    try:
        print(f"[CREATE_DRIVER] User {claims.id} ({claims.user_type.value}) creating a driver")

        if claims.user_type != UserType.ADMIN:
            print(f"[CREATE_DRIVER] ERROR: User {claims.id} is not an admin")
            raise Forbidden("Only admins can create drivers.")

        # Body is only validated once the caller is known to be an admin
        try:
            body = CreateDriverRequest.model_validate(payload or {})
        except ValidationError as e:
            print(f"[CREATE_DRIVER] ERROR: Invalid body: {e.errors()}")
            raise BadRequest("Invalid request body")

        if _missing(body.email, body.password, body.first_name, body.last_name):
            print(f"[CREATE_DRIVER] ERROR: Missing required fields")
            raise BadRequest("Missing required fields")

        if store.email_exists(body.email):
            print(f"[CREATE_DRIVER] ERROR: Email already registered: {body.email}")
            raise Conflict("Email already registered")

        password_hash = hash_password(body.password, settings.bcrypt_rounds)
        record = store.insert_user(
            body.email, password_hash, UserType.DRIVER.value,
            body.first_name, body.last_name, body.phone,
        )

        print(f"[CREATE_DRIVER] SUCCESS: Driver {record.id} created")
        return CreateDriverResponse(user=record.public())

    except DuplicateEmail:
        print(f"[CREATE_DRIVER] ERROR: Email already registered: {body.email}")
        raise Conflict("Email already registered")
    except ApiError:
        raise
    except Exception as e:
        print(f"[CREATE_DRIVER] CRITICAL ERROR: {e}")
        raise ServerError()

@auth_router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest,
          store: UserStore = Depends(get_user_store),
          settings: Settings = Depends(get_settings)):
    try:
        print(f"[LOGIN] Login attempt for {body.email}")

        record = store.find_by_email(body.email) if body.email else None
        if record is None or not body.password or not verify_password(body.password, record.password_hash):
            print(f"[LOGIN] ERROR: Invalid credentials for {body.email}")
            raise Unauthorized("Invalid credentials")

        token = create_token(record.id, record.user_type.value, settings.jwt_secret, settings.token_ttl_days)
        print(f"[LOGIN] SUCCESS: User {record.id} logged in as {record.user_type.value}")
        return AuthResponse(user=record.public(), token=token)

    except ApiError:
        raise
    except Exception as e:
        print(f"[LOGIN] CRITICAL ERROR: {e}")
        raise ServerError()

@auth_router.get("/me", response_model=TokenClaims)
def me(claims: TokenClaims = Depends(authenticate_token)):
    """Claims carried by the caller's token"""
    return claims


# ---------------------------------------------------------- simulation

@simulation_router.post("/taxis/location", response_model=List[Taxi])
async def set_location(location: Location, sim: RideSimulation = Depends(get_simulation)):
    """Set the pickup location and generate the fleet around it"""
    print(f"[FLEET] Location set to ({location.lat:.4f}, {location.lng:.4f}) {location.address or ''}")
    return sim.set_location(location)

@simulation_router.post("/taxis/location/search")
async def search_location(search: AddressSearch, sim: RideSimulation = Depends(get_simulation)):
    """Resolve an address to a demo location and generate the fleet there"""
    if not search.address.strip():
        raise BadRequest("Address is required")
    location = demo_location(search.address, sim.rng)
    taxis = sim.set_location(location)
    return {"location": location, "taxis": taxis}

@simulation_router.get("/taxis", response_model=List[Taxi])
async def get_taxis(include_unavailable: bool = Query(False, alias="all"), sim: RideSimulation = Depends(get_simulation)):
    """Available taxis nearest first; all=true includes unavailable ones"""
    return sim.taxis if include_unavailable else sim.available_taxis()

@simulation_router.get("/taxis/fares", response_model=List[FareQuote])
async def get_fares(sim: RideSimulation = Depends(get_simulation)):
    """Quick-book quote per vehicle type"""
    quotes = []
    for vehicle_type in VEHICLE_TYPES:
        nearest = nearest_available_by_type(sim.taxis, vehicle_type)
        quotes.append(FareQuote(
            vehicle_type=vehicle_type,
            available=len([t for t in available_taxis(sim.taxis) if t.vehicle_type == vehicle_type]),
            estimated_arrival=nearest.estimated_arrival if nearest else None,
            estimated_fare=estimate_fare(vehicle_type, sim.taxis),
        ))
    return quotes

@simulation_router.post("/bookings", response_model=Booking)
async def create_booking(body: BookingRequest, sim: RideSimulation = Depends(get_simulation)):
    """Book a specific taxi, or the nearest one of a vehicle type"""
    try:
        if body.taxi_id:
            return sim.book(body.taxi_id)
        if body.vehicle_type:
            return sim.book_by_type(body.vehicle_type)
        raise BadRequest("taxiId or vehicleType is required")
    except SimulationError as e:
        print(f"[BOOKING] ERROR: {e}")
        raise BadRequest(str(e))

@simulation_router.get("/bookings/current")
async def get_current_booking(sim: RideSimulation = Depends(get_simulation)):
    if sim.booking is None:
        return {"booking": None, "status": None}
    return {"booking": sim.booking, "status": describe_status(sim.booking)}

@simulation_router.delete("/bookings/current")
async def cancel_booking(sim: RideSimulation = Depends(get_simulation)):
    return {"cancelled": sim.cancel()}

@simulation_router.post("/simulation/tick")
async def tick(body: TickRequest, sim: RideSimulation = Depends(get_simulation)):
    """Advance simulated time by the given number of milliseconds"""
    if body.ms < 0:
        raise BadRequest("ms must not be negative")
    if body.ms > MAX_TICK_MS:
        raise BadRequest(f"ms must not exceed {MAX_TICK_MS}")
    print(f"[TICK] Advancing clock {body.ms}ms from {sim.clock.now_ms}")
    fired = sim.clock.advance(body.ms)
    print(f"[TICK] Clock at {sim.clock.now_ms}ms, {fired} timers fired")
    return {"now": sim.clock.now_ms, "fired": fired}

@simulation_router.get("/simulation/state")
async def get_state(sim: RideSimulation = Depends(get_simulation)):
    return sim.snapshot()

@simulation_router.post("/simulation/reset")
async def reset(request: Request, settings: Settings = Depends(get_settings)):
    """Throw away the fleet and booking and start a fresh simulation"""
    sim: RideSimulation = request.app.state.simulation
    sim.close()
    request.app.state.simulation = RideSimulation(sim.clock, random.Random(settings.simulation_seed))
    print(f"[CLEAR_STATE] Simulation reset at {sim.clock.now_ms}ms")
    return {"message": "Simulation reset", "now": sim.clock.now_ms}
