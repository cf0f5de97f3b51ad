# app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import APP_ENV, LOG_LEVEL
from app.core.errors import BookingError, InvalidPolicy
from app.core.logging import configure_logging
from app.services.booking_orchestrator import BookingOrchestrator
from app.services.slot_generator import SlotGenerator

#Import Routers
from app.api.v1 import availability
from app.api.v1 import bookings
from app.api.v1 import organizers

configure_logging(LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let queued notifications and calendar syncs finish before exit
    await app.state.orchestrator.drain()


# Create FastAPI app
app = FastAPI(
    title="Scheduling API",
    description="Appointment availability and booking for multi-tenant organizers",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.orchestrator = BookingOrchestrator()
app.state.slot_generator = SlotGenerator()

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(InvalidPolicy)
async def invalid_policy_handler(request: Request, exc: InvalidPolicy):
    return JSONResponse(
        status_code=422,
        content={"error": "invalid_policy", "detail": str(exc), "retriable": False},
    )


#Include routers
app.include_router(availability.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(organizers.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Scheduling API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "environment": APP_ENV
    }

if __name__ == "__main__":
    import uvicorn
    from app.core.config import API_HOST, API_PORT
    uvicorn.run("app.main:app", host=API_HOST, port=API_PORT, reload=True)
