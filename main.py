import asyncio
import random
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth import ApiError
from config import Settings
from database import UserStore
from routes import auth_router, simulation_router
from scheduler import VirtualClock
from simulator import RideSimulation

PUMP_INTERVAL_SECONDS = 1.0


async def pump_clock(app: FastAPI) -> None:
    """Advance the simulation clock in step with wall time"""
    last = time.monotonic()
    carry = 0.0  # sub-millisecond remainder kept for the next step
    while True:
        await asyncio.sleep(PUMP_INTERVAL_SECONDS)
        now = time.monotonic()
        carry += (now - last) * 1000
        last = now
        step = int(carry)
        carry -= step
        app.state.clock.advance(step)


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = None
    if app.state.settings.simulation_realtime:
        print("[TICK] Real-time clock pump started")
        task = asyncio.create_task(pump_clock(app))
    yield
    if task is not None:
        task.cancel()
    app.state.simulation.close()


def create_app(settings: Optional[Settings] = None,
               user_store: Optional[UserStore] = None,
               clock: Optional[VirtualClock] = None,
               rng: Optional[random.Random] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    clock = clock or VirtualClock()

    app = FastAPI(title="Taxi Booking Demo", lifespan=lifespan)
    app.state.settings = settings
    app.state.user_store = user_store or UserStore(settings.database_url)
    app.state.clock = clock
    app.state.simulation = RideSimulation(clock, rng or random.Random(settings.simulation_seed))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        print(f"[REQUEST] Invalid body on {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.get("/")
    async def read_root():
        return {"message": "Taxi booking backend is running"}

    app.include_router(auth_router)
    app.include_router(simulation_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    settings: Settings = app.state.settings
    try:
        app.state.user_store.verify_connection()
        app.state.user_store.init_schema()
    except Exception as e:
        print(f"[DATABASE] Failed to connect to PostgreSQL database: {e}")
        raise SystemExit(1)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
