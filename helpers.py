from typing import Dict, List, Optional
import math
import random
from models import Location, Taxi, VehicleType, DriverSnapshot

FLEET_SIZE = 8
DRIVER_NAMES = ["John Smith", "Sarah Johnson", "Mike Davis", "Emily Brown", "David Wilson"]
VEHICLE_TYPES = [VehicleType.ECONOMY, VehicleType.PREMIUM, VehicleType.SUV]
DRIVER_PHONE = "+1 234 567 8900"

# Demo centre used when no real location is available (New York City)
DEFAULT_LOCATION = Location(lat=40.7128, lng=-74.0060, address="New York City, NY (Demo Location)")

# (base fare, per km)
FARES: Dict[VehicleType, tuple] = {
    VehicleType.ECONOMY: (8.0, 1.5),
    VehicleType.PREMIUM: (12.0, 2.0),
    VehicleType.SUV: (15.0, 2.5),
}

def generate_fleet(location: Location, rng: random.Random) -> List[Taxi]:
    """Generate a batch of taxis scattered around the location, nearest first"""
    taxis = []
    for i in range(FLEET_SIZE):
        lat = location.lat + (rng.random() - 0.5) * 0.02
        lng = location.lng + (rng.random() - 0.5) * 0.02
        distance = round(rng.random() * 5 + 0.5, 1)  # 0.5 to 5.5 km

        taxis.append(Taxi(
            id=f"taxi-{i}",
            driver_name=rng.choice(DRIVER_NAMES),
            vehicle_type=rng.choice(VEHICLE_TYPES),
            plate_number=f"ABC-{1000 + i}",
            rating=4.0 + rng.random(),
            location=Location(lat=lat, lng=lng),
            distance=distance,
            estimated_arrival=math.ceil(distance * 2),  # roughly 2 min per km
            is_available=rng.random() > 0.3,
        ))

    taxis.sort(key=lambda taxi: taxi.distance)
    print(f"[FLEET] Generated {len(taxis)} taxis around ({location.lat:.4f}, {location.lng:.4f})")
    return taxis

def jitter_fleet(taxis: List[Taxi], rng: random.Random) -> None:
    """Nudge every taxi's position and distance in place"""
    for taxi in taxis:
        taxi.location = Location(
            lat=taxi.location.lat + (rng.random() - 0.5) * 0.001,
            lng=taxi.location.lng + (rng.random() - 0.5) * 0.001,
        )
        taxi.distance = max(0.0, round(taxi.distance + (rng.random() - 0.5) * 0.1, 1))
    print(f"[FLEET] Updated positions of {len(taxis)} taxis")

def available_taxis(taxis: List[Taxi]) -> List[Taxi]:
    return [taxi for taxi in taxis if taxi.is_available]

def find_taxi(taxis: List[Taxi], taxi_id: str) -> Optional[Taxi]:
    for taxi in taxis:
        if taxi.id == taxi_id:
            return taxi
    return None

def nearest_available_by_type(taxis: List[Taxi], vehicle_type: VehicleType) -> Optional[Taxi]:
    """Closest available taxi of the given type, if any"""
    candidates = [t for t in available_taxis(taxis) if t.vehicle_type == vehicle_type]
    if not candidates:
        return None
    return min(candidates, key=lambda taxi: taxi.distance)

def estimate_fare(vehicle_type: VehicleType, taxis: List[Taxi]) -> float:
    """Base fare plus distance pricing from the nearest available taxi of that type"""
    nearest = nearest_available_by_type(taxis, vehicle_type)
    if nearest is None:
        return 0.0
    base, per_km = FARES[vehicle_type]
    return round(base + nearest.distance * per_km, 2)

def driver_snapshot(taxi: Taxi) -> DriverSnapshot:
    return DriverSnapshot(
        name=taxi.driver_name,
        phone=DRIVER_PHONE,
        vehicle=f"{taxi.vehicle_type.value} - {taxi.plate_number}",
        plate_number=taxi.plate_number,
        rating=taxi.rating,
    )

def demo_location(address: str, rng: random.Random) -> Location:
    """Pretend to geocode an address: a random point near the demo centre"""
    address = address.strip()
    if not address:
        return DEFAULT_LOCATION.model_copy()
    return Location(
        lat=DEFAULT_LOCATION.lat + (rng.random() - 0.5) * 0.1,
        lng=DEFAULT_LOCATION.lng + (rng.random() - 0.5) * 0.1,
        address=address,
    )
