from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
from enum import Enum

# Enums
class VehicleType(str, Enum):
    ECONOMY = "Economy"
    PREMIUM = "Premium"
    SUV = "SUV"

class BookingStatus(str, Enum):
    SEARCHING = "searching"
    CONFIRMED = "confirmed"
    ARRIVING = "arriving"
    ARRIVED = "arrived"
    # Display-only terminal states, never entered by the status timer
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class UserType(str, Enum):
    ADMIN = "admin"
    DRIVER = "driver"

# Simulator models (camelCase on the wire)
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class Location(CamelModel):
    lat: float
    lng: float
    address: Optional[str] = None

class Taxi(CamelModel):
    id: str
    driver_name: str
    vehicle_type: VehicleType
    plate_number: str
    rating: float
    location: Location
    distance: float  # km
    estimated_arrival: int  # minutes
    is_available: bool

class DriverSnapshot(CamelModel):
    name: str
    phone: str
    vehicle: str
    plate_number: str
    rating: float

class Booking(CamelModel):
    id: str
    taxi_id: str
    status: BookingStatus
    estimated_arrival: int = 0
    driver: Optional[DriverSnapshot] = None

class StatusInfo(CamelModel):
    title: str
    description: str
    progress: int  # percent
    cancellable: bool

class BookingRequest(CamelModel):
    taxi_id: Optional[str] = None
    vehicle_type: Optional[VehicleType] = None

class AddressSearch(CamelModel):
    address: str

class TickRequest(CamelModel):
    ms: int

class FareQuote(CamelModel):
    vehicle_type: VehicleType
    available: int
    estimated_arrival: Optional[int] = None
    estimated_fare: float

# Auth models (snake_case, matching the users table)
class AuthRequest(BaseModel):
    # numeric phone numbers and the like are taken as text
    model_config = ConfigDict(coerce_numbers_to_str=True)

class RegisterRequest(AuthRequest):
    email: Optional[str] = None
    password: Optional[str] = None
    user_type: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

class CreateDriverRequest(AuthRequest):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

class LoginRequest(AuthRequest):
    email: Optional[str] = None
    password: Optional[str] = None

class User(BaseModel):
    id: int
    email: str
    user_type: UserType
    first_name: str
    last_name: str
    phone: Optional[str] = None

class UserRecord(User):
    password_hash: str

    def public(self) -> User:
        """Strip the password hash before the user leaves the service"""
        return User(**self.model_dump(exclude={"password_hash"}))

class TokenClaims(BaseModel):
    id: int
    user_type: UserType

class AuthResponse(BaseModel):
    user: User
    token: str

class CreateDriverResponse(BaseModel):
    user: User

class ErrorResponse(BaseModel):
    error: str
