import math

LOCATION = {"lat": 40.7128, "lng": -74.0060, "address": "Times Square"}


def set_location(client):
    response = client.post("/api/taxis/location", json=LOCATION)
    assert response.status_code == 200
    return response.json()


def first_available(client):
    taxis = client.get("/api/taxis").json()
    assert taxis, "seeded fleet should have an available taxi"
    return taxis[0]


def tick(client, ms):
    response = client.post("/api/simulation/tick", json={"ms": ms})
    assert response.status_code == 200
    return response.json()


def test_set_location_returns_camel_case_fleet(client):
    taxis = set_location(client)
    assert len(taxis) == 8
    taxi = taxis[0]
    for key in ("id", "driverName", "vehicleType", "plateNumber", "rating",
                "location", "distance", "estimatedArrival", "isAvailable"):
        assert key in taxi
    assert taxi["estimatedArrival"] == math.ceil(taxi["distance"] * 2)
    assert [t["distance"] for t in taxis] == sorted(t["distance"] for t in taxis)


def test_get_taxis_filters_unavailable(client):
    set_location(client)
    available = client.get("/api/taxis").json()
    everything = client.get("/api/taxis", params={"all": "true"}).json()
    assert len(everything) == 8
    assert all(t["isAvailable"] for t in available)
    assert len(available) == sum(t["isAvailable"] for t in everything)


def test_search_location(client):
    response = client.post("/api/taxis/location/search", json={"address": "Central Park"})
    assert response.status_code == 200
    data = response.json()
    assert data["location"]["address"] == "Central Park"
    assert len(data["taxis"]) == 8


def test_search_location_blank_address(client):
    response = client.post("/api/taxis/location/search", json={"address": "  "})
    assert response.status_code == 400


def test_fares(client):
    set_location(client)
    quotes = client.get("/api/taxis/fares").json()
    assert [q["vehicleType"] for q in quotes] == ["Economy", "Premium", "SUV"]
    for quote in quotes:
        if quote["available"] == 0:
            assert quote["estimatedFare"] == 0
            assert quote["estimatedArrival"] is None
        else:
            assert quote["estimatedFare"] > 0


def test_booking_flow_over_http(client):
    set_location(client)
    taxi = first_available(client)

    response = client.post("/api/bookings", json={"taxiId": taxi["id"]})
    assert response.status_code == 200
    booking = response.json()
    assert booking["status"] == "searching"
    assert booking["taxiId"] == taxi["id"]

    tick(client, 3000)
    current = client.get("/api/bookings/current").json()
    assert current["booking"]["status"] == "confirmed"
    assert current["booking"]["driver"]["name"] == taxi["driverName"]
    assert current["status"]["progress"] == 50

    tick(client, 2000)
    current = client.get("/api/bookings/current").json()
    assert current["booking"]["status"] == "arriving"
    assert current["booking"]["estimatedArrival"] == taxi["estimatedArrival"]

    tick(client, 5000)
    assert client.get("/api/bookings/current").json()["booking"]["status"] == "arrived"


def test_cancel_booking(client):
    set_location(client)
    taxi = first_available(client)
    client.post("/api/bookings", json={"taxiId": taxi["id"]})

    assert client.delete("/api/bookings/current").json() == {"cancelled": True}
    assert client.get("/api/bookings/current").json() == {"booking": None, "status": None}
    assert client.delete("/api/bookings/current").json() == {"cancelled": False}


def test_book_by_vehicle_type(client):
    set_location(client)
    quotes = client.get("/api/taxis/fares").json()
    quote = next(q for q in quotes if q["available"] > 0)

    response = client.post("/api/bookings", json={"vehicleType": quote["vehicleType"]})
    assert response.status_code == 200


def test_booking_errors(client):
    response = client.post("/api/bookings", json={"taxiId": "taxi-0"})
    assert response.status_code == 400
    assert "error" in response.json()

    set_location(client)
    assert client.post("/api/bookings", json={"taxiId": "taxi-42"}).status_code == 400
    assert client.post("/api/bookings", json={}).status_code == 400


def test_tick_rejects_negative(client):
    response = client.post("/api/simulation/tick", json={"ms": -1})
    assert response.status_code == 400


def test_tick_rejects_more_than_an_hour(client):
    set_location(client)
    response = client.post("/api/simulation/tick", json={"ms": 60 * 60 * 1000 + 1})
    assert response.status_code == 400
    assert "error" in response.json()
    assert client.get("/api/simulation/state").json()["now"] == 0

    assert tick(client, 60 * 60 * 1000)["now"] == 60 * 60 * 1000


def test_tick_jitters_fleet(client):
    set_location(client)
    before = client.get("/api/taxis", params={"all": "true"}).json()
    result = tick(client, 30000)
    assert result == {"now": 30000, "fired": 1}
    after = client.get("/api/taxis", params={"all": "true"}).json()
    assert [t["location"] for t in after] != [t["location"] for t in before]


def test_state_and_reset(client):
    set_location(client)
    state = client.get("/api/simulation/state").json()
    assert state["location"]["address"] == "Times Square"
    assert len(state["taxis"]) == 8
    assert state["booking"] is None

    assert client.post("/api/simulation/reset").status_code == 200
    state = client.get("/api/simulation/state").json()
    assert state["location"] is None
    assert state["taxis"] == []
