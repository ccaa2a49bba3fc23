"""
Ride simulation: a fleet of taxis around the user and a single booking that
walks through searching -> confirmed -> arriving -> arrived on timers.

Every booking gets a new generation number. Transition callbacks remember the
generation they were scheduled for and do nothing once it is stale, so a
timer left over from a cancelled or replaced booking can't touch the current
one.
"""

import random
from typing import Dict, List, Optional

from helpers import (
    generate_fleet, jitter_fleet, available_taxis, find_taxi,
    nearest_available_by_type, driver_snapshot,
)
from models import Booking, BookingStatus, Location, StatusInfo, Taxi, VehicleType
from scheduler import TimerHandle, VirtualClock

FLEET_UPDATE_INTERVAL_MS = 30000
DEFAULT_ARRIVAL_MINUTES = 5

STATUS_FLOW = [
    BookingStatus.SEARCHING,
    BookingStatus.CONFIRMED,
    BookingStatus.ARRIVING,
    BookingStatus.ARRIVED,
]

# Delay before entering each status
TRANSITION_DELAYS_MS: Dict[BookingStatus, int] = {
    BookingStatus.CONFIRMED: 3000,
    BookingStatus.ARRIVING: 2000,
    BookingStatus.ARRIVED: 5000,
}


class SimulationError(Exception):
    """Raised when an operation doesn't make sense in the current state"""


def next_status(status: BookingStatus) -> Optional[BookingStatus]:
    """The status after this one, or None at the end of the flow"""
    if status not in STATUS_FLOW:
        return None
    index = STATUS_FLOW.index(status)
    if index == len(STATUS_FLOW) - 1:
        return None
    return STATUS_FLOW[index + 1]


def describe_status(booking: Booking) -> StatusInfo:
    """What the rider is shown for the booking's current status"""
    status = booking.status
    if status == BookingStatus.SEARCHING:
        title, description, progress = "Finding your taxi...", "Looking for the best driver nearby", 25
    elif status == BookingStatus.CONFIRMED:
        title, description, progress = "Taxi confirmed!", "Your driver is getting ready", 50
    elif status == BookingStatus.ARRIVING:
        title = "Driver is on the way"
        description = f"Arriving in {booking.estimated_arrival} minutes"
        progress = 75
    elif status == BookingStatus.ARRIVED:
        title, description, progress = "Your taxi has arrived!", "Please head to the pickup location", 100
    else:
        title, description, progress = "Booking in progress", "Please wait...", 0

    cancellable = status not in (BookingStatus.ARRIVED, BookingStatus.COMPLETED)
    return StatusInfo(title=title, description=description, progress=progress, cancellable=cancellable)


class RideSimulation:
    def __init__(self, clock: VirtualClock, rng: Optional[random.Random] = None):
        self.clock = clock
        self.rng = rng or random.Random()
        self.location: Optional[Location] = None
        self.taxis: List[Taxi] = []
        self.booking: Optional[Booking] = None
        self._generation = 0
        self._fleet_timer: Optional[TimerHandle] = None
        self._booking_timer: Optional[TimerHandle] = None

    @property
    def generation(self) -> int:
        return self._generation

    # Fleet

    def set_location(self, location: Location) -> List[Taxi]:
        """Replace the user's location and regenerate the fleet around it"""
        self.location = location
        self.taxis = generate_fleet(location, self.rng)

        if self._fleet_timer is not None:
            self._fleet_timer.cancel()
        self._fleet_timer = self.clock.call_every(FLEET_UPDATE_INTERVAL_MS, self._update_fleet)
        return self.taxis

    def available_taxis(self) -> List[Taxi]:
        return available_taxis(self.taxis)

    def _update_fleet(self) -> None:
        jitter_fleet(self.taxis, self.rng)

    # Booking

    def book(self, taxi_id: str) -> Booking:
        """Start a new booking for the given taxi, replacing any current one"""
        if self.location is None:
            raise SimulationError("Pick a location before booking")

        taxi = find_taxi(self.taxis, taxi_id)
        if taxi is None:
            raise SimulationError(f"Taxi not found: {taxi_id}")
        if not taxi.is_available:
            raise SimulationError(f"Taxi {taxi_id} is not available")

        self._release_booking_timer()
        self._generation += 1
        self.booking = Booking(
            id=f"booking-{self.clock.now_ms}-{self._generation}",
            taxi_id=taxi_id,
            status=BookingStatus.SEARCHING,
            estimated_arrival=0,
        )
        print(f"[BOOKING] Booking {self.booking.id} created for {taxi_id} (generation {self._generation})")
        self._schedule_next(self._generation)
        return self.booking

    def book_by_type(self, vehicle_type: VehicleType) -> Booking:
        """Book the nearest available taxi of the given type"""
        taxi = nearest_available_by_type(self.taxis, vehicle_type)
        if taxi is None:
            raise SimulationError(f"No {vehicle_type.value} taxis available")
        return self.book(taxi.id)

    def cancel(self) -> bool:
        """Drop the current booking. Returns False if there was none."""
        if self.booking is None:
            return False
        print(f"[BOOKING] Booking {self.booking.id} cancelled while {self.booking.status.value}")
        self._release_booking_timer()
        self._generation += 1
        self.booking = None
        return True

    def _schedule_next(self, generation: int) -> None:
        upcoming = next_status(self.booking.status)
        if upcoming is None:
            self._booking_timer = None
            return
        delay = TRANSITION_DELAYS_MS[upcoming]
        self._booking_timer = self.clock.call_later(delay, lambda: self._advance(generation, upcoming))

    def _advance(self, generation: int, upcoming: BookingStatus) -> None:
        if generation != self._generation or self.booking is None:
            print(f"[BOOKING] Ignoring stale timer for generation {generation}")
            return

        booking = self.booking
        taxi = find_taxi(self.taxis, booking.taxi_id)
        booking.status = upcoming
        if taxi is not None:
            booking.driver = driver_snapshot(taxi)
        if upcoming == BookingStatus.ARRIVING:
            booking.estimated_arrival = taxi.estimated_arrival if taxi is not None else DEFAULT_ARRIVAL_MINUTES

        print(f"[BOOKING] Booking {booking.id} is now {upcoming.value}")
        self._schedule_next(generation)

    def _release_booking_timer(self) -> None:
        if self._booking_timer is not None:
            self._booking_timer.cancel()
            self._booking_timer = None

    # Lifecycle

    def close(self) -> None:
        """Release every timer this simulation owns"""
        self._release_booking_timer()
        if self._fleet_timer is not None:
            self._fleet_timer.cancel()
            self._fleet_timer = None

    def snapshot(self) -> dict:
        return {
            "now": self.clock.now_ms,
            "location": self.location,
            "taxis": self.taxis,
            "availableTaxis": self.available_taxis(),
            "booking": self.booking,
        }
