"""
Waitlist API Server.

A FastAPI-based service exposing the waitlist matching and reservation
engine to the practitioner portal.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, time
from datetime import date as DateType
from datetime import time as TimeType
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from src.config import TREATMENTS, get_settings
from src.errors import SlotUnavailableError, WaitlistError
from src.models.booking import AvailabilitySlot, Booking, BookingStatus, SlotHold
from src.models.waitlist import (
    ClientContact,
    ContactChannel,
    PriorityDirection,
    WaitlistEntry,
    WaitlistStatus,
)
from src.scheduler import get_scheduler, shutdown_scheduler
from src.services.waitlist import SweepReport, WaitlistService, WaitlistStats, get_waitlist_service

# ============================================================================
# Data Models
# ============================================================================


class SlotCreateRequest(BaseModel):
    """Request to publish a newly opened slot."""

    date: DateType
    time: TimeType
    duration_minutes: int = Field(gt=0, le=480)
    resource_ref: str = Field(min_length=1)
    practitioner_name: Optional[str] = None


class SlotListResponse(BaseModel):
    """Response model for slot queries."""

    slots: List[AvailabilitySlot]
    total: int


class WaitlistEntryCreateRequest(BaseModel):
    """Request to put a client on the waitlist."""

    client_ref: str = Field(min_length=1)
    treatment_id: str
    preferred_date: date
    alternative_dates: List[date] = Field(default_factory=list)
    preferred_time: Optional[time] = None
    flexible_timing: bool = False
    priority: int = Field(default=0, ge=0)
    client: Optional[ClientContact] = None
    expires_at: Optional[datetime] = None


class WaitlistEntryResponse(WaitlistEntry):
    """Waitlist entry with the display fields the portal renders."""

    priority_stars: int
    priority_band: str
    wait_time: str
    candidate_count: int


class WaitlistListResponse(BaseModel):
    entries: List[WaitlistEntryResponse]
    total: int


class PriorityRequest(BaseModel):
    direction: PriorityDirection


class ContactRequest(BaseModel):
    """Request to notify a client about a matching slot."""

    channel: ContactChannel
    slot_id: Optional[UUID] = Field(default=None, description="Slot to mention; defaults to the earliest candidate")
    message: Optional[str] = Field(default=None, max_length=1000)


class BookRequest(BaseModel):
    """Request to book a waitlist entry into a slot."""

    slot_id: UUID
    confirm: bool = Field(default=True, description="False places a temporary hold instead")


class BookResponse(BaseModel):
    """Result of a booking or hold request."""

    success: bool
    booking: Optional[Booking] = None
    hold: Optional[SlotHold] = None
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error_code: str


# ============================================================================
# Helpers
# ============================================================================


def to_response(service: WaitlistService, entry: WaitlistEntry) -> WaitlistEntryResponse:
    now = service.clock()
    return WaitlistEntryResponse(
        **entry.model_dump(),
        priority_stars=service.ranker.stars(entry.priority),
        priority_band=service.ranker.band(entry.priority),
        wait_time=entry.wait_time_label(now),
        candidate_count=service.candidate_count(entry),
    )


# ============================================================================
# FastAPI Application
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    service = get_waitlist_service()

    # Startup
    logger.info(f"Starting Waitlist API Server for {settings.clinic_name}")
    if settings.seed_sample_slots:
        service.catalog._initialize_sample_slots(service.clock())
    if settings.enable_sweep_scheduler:
        get_scheduler(service).start()
    yield
    # Shutdown
    logger.info("Shutting down Waitlist API Server")
    shutdown_scheduler()
    await service.close()


app = FastAPI(
    title="Clinic Waitlist API",
    description="Waitlist matching and reservation engine for clinic appointments",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for the practitioner portal
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WaitlistError)
async def waitlist_error_handler(request: Request, exc: WaitlistError) -> JSONResponse:
    """Answer every engine error with its status code and a uniform body."""
    if isinstance(exc, SlotUnavailableError):
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.error_code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ============================================================================
# API Endpoints
# ============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.get("/api/v1/treatments")
async def list_treatments():
    """List all bookable treatments."""
    return {"treatments": TREATMENTS}


@app.get("/api/v1/availabilities", response_model=SlotListResponse)
async def list_availabilities(
    start_date: Optional[date] = Query(default=None, description="Earliest slot date"),
    end_date: Optional[date] = Query(default=None, description="Latest slot date"),
    resource_ref: Optional[str] = Query(default=None, description="Filter by practitioner or room"),
    min_duration: Optional[int] = Query(default=None, ge=1, description="Minimum slot length"),
    limit: int = Query(default=50, ge=1, le=200, description="Maximum slots to return"),
    offset: int = Query(default=0, ge=0, description="Number of slots to skip"),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Get the open slots currently in the catalog."""
    slots = service.list_slots(
        start_date=start_date,
        end_date=end_date,
        resource_ref=resource_ref,
        min_duration=min_duration,
        limit=limit,
        offset=offset,
    )
    return SlotListResponse(slots=slots, total=len(slots))


@app.post(
    "/api/v1/availabilities",
    response_model=AvailabilitySlot,
    status_code=status.HTTP_201_CREATED,
)
async def publish_availability(
    request: SlotCreateRequest,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Publish a newly opened slot from a practitioner calendar."""
    return await service.publish_slot(AvailabilitySlot(**request.model_dump()))


@app.get("/api/v1/waitlist", response_model=WaitlistListResponse)
async def list_waitlist(
    status_filter: Optional[WaitlistStatus] = Query(default=None, alias="status"),
    treatment_id: Optional[str] = Query(default=None),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """List waitlist entries in priority order."""
    entries = service.list_waitlist(status=status_filter, treatment_id=treatment_id)
    return WaitlistListResponse(
        entries=[to_response(service, entry) for entry in entries],
        total=len(entries),
    )


@app.post(
    "/api/v1/waitlist",
    response_model=WaitlistEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_waitlist_entry(
    request: WaitlistEntryCreateRequest,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Put a client on the waitlist."""
    entry = await service.create_entry(
        client_ref=request.client_ref,
        treatment=request.treatment_id,
        preferred_date=request.preferred_date,
        alternative_dates=request.alternative_dates,
        preferred_time=request.preferred_time,
        flexible_timing=request.flexible_timing,
        priority=request.priority,
        client=request.client,
        expires_at=request.expires_at,
    )
    return to_response(service, entry)


@app.get("/api/v1/waitlist/stats", response_model=WaitlistStats)
async def waitlist_stats(service: WaitlistService = Depends(get_waitlist_service)):
    """Dashboard counters."""
    return service.stats()


@app.post("/api/v1/waitlist/sweep", response_model=SweepReport)
async def sweep_waitlist(service: WaitlistService = Depends(get_waitlist_service)):
    """Run the maintenance sweep now."""
    return await service.sweep()


@app.get("/api/v1/waitlist/{entry_id}", response_model=WaitlistEntryResponse)
async def get_waitlist_entry(
    entry_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
):
    return to_response(service, service.get_entry(entry_id))


@app.patch("/api/v1/waitlist/{entry_id}/priority", response_model=WaitlistEntryResponse)
async def adjust_priority(
    entry_id: UUID,
    request: PriorityRequest,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Move an entry one step up or down the queue."""
    entry = await service.adjust_priority(entry_id, request.direction)
    return to_response(service, entry)


@app.get("/api/v1/waitlist/{entry_id}/candidates", response_model=SlotListResponse)
async def list_candidates(
    entry_id: UUID,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Open slots that satisfy the entry's treatment length and date preferences."""
    slots = service.find_candidates(entry_id, limit=limit)
    return SlotListResponse(slots=slots, total=len(slots))


@app.post("/api/v1/waitlist/{entry_id}/contact", response_model=WaitlistEntryResponse)
async def contact_client(
    entry_id: UUID,
    request: ContactRequest,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Notify the client about a matching slot."""
    entry = await service.contact(
        entry_id, request.channel, slot_hint=request.slot_id, message=request.message
    )
    return to_response(service, entry)


@app.post("/api/v1/waitlist/{entry_id}/book", response_model=BookResponse)
async def book_from_waitlist(
    entry_id: UUID,
    request: BookRequest,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """
    Book the entry into a slot.

    A lost race answers 409 so the portal can tell the operator someone
    else just took that slot and refresh the candidates.
    """
    result = await service.book(entry_id, request.slot_id, confirm=request.confirm)

    if isinstance(result, SlotHold):
        return BookResponse(
            success=True,
            hold=result,
            message=f"Slot held until {result.expires_at.isoformat()}",
        )
    return BookResponse(success=True, booking=result, message="Client booked from waitlist")


@app.post("/api/v1/waitlist/{entry_id}/reopen", response_model=WaitlistEntryResponse)
async def reopen_entry(
    entry_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Return a contacted entry to waiting."""
    entry = await service.reopen(entry_id)
    return to_response(service, entry)


@app.delete("/api/v1/waitlist/{entry_id}")
async def remove_from_waitlist(
    entry_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Remove an entry from the waitlist."""
    await service.remove(entry_id)
    return {"success": True, "entry_id": str(entry_id)}


@app.post("/api/v1/holds/{hold_id}/confirm", response_model=BookResponse)
async def confirm_hold(
    hold_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Turn a hold into a confirmed booking."""
    booking = await service.confirm_hold(hold_id)
    return BookResponse(success=True, booking=booking, message="Client booked from waitlist")


@app.delete("/api/v1/holds/{hold_id}")
async def release_hold(
    hold_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Release a hold."""
    hold = await service.release_hold(hold_id)
    return {"success": True, "hold_id": str(hold.id), "slot_id": str(hold.slot_id)}


@app.get("/api/v1/bookings")
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(default=None, alias="status"),
    service: WaitlistService = Depends(get_waitlist_service),
):
    bookings = service.list_bookings(status_filter)
    return {"bookings": [b.model_dump(mode="json") for b in bookings], "total": len(bookings)}


# ============================================================================
# Run Server
# ============================================================================


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """Run the waitlist API server."""
    import uvicorn

    settings = get_settings()
    # Single worker: the in-memory stores and their locks live in one process.
    uvicorn.run(
        "src.api.waitlist_server:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=False,
        workers=1,
        loop="uvloop",  # High-performance event loop
        http="httptools",  # Fast HTTP parser
    )


if __name__ == "__main__":
    run_server()
