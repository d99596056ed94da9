"""FastAPI application — HTTP + WebSocket endpoints for the booking wizard.

Endpoints:

  GET    /health                                   Health check
  GET    /api/services                             Service catalog
  GET    /api/countries                            Phone country codes
  POST   /api/wizard/sessions                      Start a wizard (optional profile pre-fill)
  GET    /api/wizard/sessions/{id}                 Session snapshot
  DELETE /api/wizard/sessions/{id}                 Close a session
  POST   /api/wizard/sessions/{id}/<command>       One wizard command per route
  GET    /api/admin/sessions                       All active sessions (bearer token)
  WS     /api/admin/sessions/{id}/events           Live event stream (?token=)

Every command returns the session snapshot. Rejected commands
(``WizardError``) answer 400 with ``{"error": ...}``; blocked step
advances are not errors and answer 200 with ``"advanced": false``.
"""

from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
import time
from datetime import date as Date
from datetime import time as Time
from decimal import Decimal
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Body, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from reservation.auth import require_admin_token, require_admin_ws
from reservation.catalog import COUNTRY_CODES, load_catalog
from reservation.config import settings
from reservation.errors import WizardError
from reservation.events import get_broadcaster, remove_broadcaster
from reservation.models.booking import TimeSlot, UserProfile
from reservation.providers import (
    BookingStore,
    BusinessHoursAvailability,
    GoogleGeocoder,
    InMemoryBookingStore,
    SandboxPaymentGateway,
    StaticLocation,
    TemplateEmailComposer,
)
from reservation.wizard import (
    WizardSession,
    get_active_sessions,
    get_session,
    register_session,
    sweep_idle_sessions,
    unregister_session,
)

log = logging.getLogger("reservation.app")

_START_TIME = time.time()


# ── Request bodies ────────────────────────────────────────────────

class ServiceBody(BaseModel):
    service_id: str


class CounterBody(BaseModel):
    field: str
    delta: int


class HoursBody(BaseModel):
    hours: Decimal


class DateBody(BaseModel):
    date: Date


class SlotBody(BaseModel):
    start: Time
    end: Time


class DetailsBody(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class CountryBody(BaseModel):
    iso: str


class AddressBody(BaseModel):
    text: str


class SuggestionBody(BaseModel):
    index: int


class LocationBody(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


class PayBody(BaseModel):
    token: str


def create_app(store: BookingStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Booking store shared by every session. Defaults to a fresh
               in-memory store.
    """
    for warning in settings.validate_startup():
        log.warning(warning)

    app = FastAPI(
        title="Cleaning Reservation Wizard",
        description="Multi-step booking wizard for residential and commercial cleaning",
        version="0.1.0",
    )
    booking_store = store if store is not None else InMemoryBookingStore()
    catalog = load_catalog()
    app.state.store = booking_store

    @app.exception_handler(WizardError)
    async def wizard_error_handler(request: Request, exc: WizardError) -> JSONResponse:
        log.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse({"error": str(exc)}, status_code=400)

    def _lookup(session_id: str) -> WizardSession:
        session = get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        session.touch()
        return session

    def _release(session_id: str) -> None:
        unregister_session(session_id)
        remove_broadcaster(session_id)

    def _finish(session_id: str, session: WizardSession, **extra) -> JSONResponse:
        """Snapshot the session, then release it once the booking is complete."""
        response = _snapshot(session, **extra)
        if session.is_done:
            _release(session_id)
        return response

    def _snapshot(session: WizardSession, **extra) -> JSONResponse:
        return JSONResponse({**session.to_dict(), **extra})

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check — confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "sessions": len(get_active_sessions()),
        })

    # ── Reference data ─────────────────────────────────────────

    @app.get("/api/services")
    async def list_services() -> JSONResponse:
        return JSONResponse({
            "services": [s.model_dump(mode="json") for s in catalog.values()],
        })

    @app.get("/api/countries")
    async def list_countries() -> JSONResponse:
        return JSONResponse({
            "countries": [c.model_dump(mode="json") for c in COUNTRY_CODES],
            "default": settings.default_country_iso,
        })

    # ── Session lifecycle ──────────────────────────────────────

    @app.post("/api/wizard/sessions")
    async def create_session(profile: Optional[UserProfile] = Body(default=None)) -> JSONResponse:
        for stale in sweep_idle_sessions(settings.session_idle_ttl_seconds):
            remove_broadcaster(stale)
        session = _create_session(booking_store, catalog, current_user=profile)
        sid = register_session(session)
        session.attach_broadcaster(get_broadcaster(sid))
        return JSONResponse(session.to_dict(), status_code=201)

    @app.get("/api/wizard/sessions/{session_id}")
    async def read_session(session_id: str) -> JSONResponse:
        return _snapshot(_lookup(session_id))

    @app.delete("/api/wizard/sessions/{session_id}")
    async def delete_session(session_id: str) -> JSONResponse:
        _lookup(session_id)
        _release(session_id)
        return JSONResponse({"session_id": session_id, "closed": True})

    # ── Service & duration ─────────────────────────────────────

    @app.post("/api/wizard/sessions/{session_id}/service")
    async def choose_service(session_id: str, body: ServiceBody) -> JSONResponse:
        session = _lookup(session_id)
        session.select_service(body.service_id)
        return _snapshot(session)

    @app.post("/api/wizard/sessions/{session_id}/counters")
    async def adjust_counter(session_id: str, body: CounterBody) -> JSONResponse:
        session = _lookup(session_id)
        session.adjust_counter(body.field, body.delta)
        return _snapshot(session)

    @app.post("/api/wizard/sessions/{session_id}/hours")
    async def set_hours(session_id: str, body: HoursBody) -> JSONResponse:
        session = _lookup(session_id)
        session.set_hours(body.hours)
        return _snapshot(session)

    # ── Date & time ────────────────────────────────────────────

    @app.post("/api/wizard/sessions/{session_id}/date")
    async def set_date(session_id: str, body: DateBody) -> JSONResponse:
        session = _lookup(session_id)
        session.set_date(body.date)
        await session.wait_for_slots()
        return _snapshot(session)

    @app.post("/api/wizard/sessions/{session_id}/slot")
    async def choose_slot(session_id: str, body: SlotBody) -> JSONResponse:
        session = _lookup(session_id)
        await session.wait_for_slots()
        listed = next(
            (s for s in session.slots if (s.start, s.end) == (body.start, body.end)),
            None,
        )
        session.select_slot(listed or TimeSlot(start=body.start, end=body.end))
        return _snapshot(session)

    # ── Contact details ────────────────────────────────────────

    @app.post("/api/wizard/sessions/{session_id}/details")
    async def update_details(session_id: str, body: DetailsBody) -> JSONResponse:
        session = _lookup(session_id)
        session.update_client_details(**body.model_dump(exclude_none=True))
        return _snapshot(session)

    @app.post("/api/wizard/sessions/{session_id}/country")
    async def set_country(session_id: str, body: CountryBody) -> JSONResponse:
        session = _lookup(session_id)
        session.set_country(body.iso)
        return _snapshot(session)

    @app.post("/api/wizard/sessions/{session_id}/address")
    async def set_address_text(session_id: str, body: AddressBody) -> JSONResponse:
        """One keystroke; suggestions appear on a later snapshot."""
        session = _lookup(session_id)
        session.set_address_text(body.text)
        return _snapshot(session)

    @app.post("/api/wizard/sessions/{session_id}/address/select")
    async def select_address(session_id: str, body: SuggestionBody) -> JSONResponse:
        session = _lookup(session_id)
        session.select_address_suggestion(body.index)
        return _snapshot(session)

    @app.post("/api/wizard/sessions/{session_id}/address/locate")
    async def locate_address(session_id: str, body: LocationBody) -> JSONResponse:
        """Reverse-geocode coordinates from the browser's geolocation API.

        Missing coordinates mean the browser denied permission.
        """
        session = _lookup(session_id)
        located = await session.use_current_location(StaticLocation(body.lat, body.lng))
        return _snapshot(session, located=located)

    # ── Navigation ─────────────────────────────────────────────

    @app.post("/api/wizard/sessions/{session_id}/next")
    async def go_next(session_id: str) -> JSONResponse:
        session = _lookup(session_id)
        advanced = session.next()
        return _snapshot(session, advanced=advanced)

    @app.post("/api/wizard/sessions/{session_id}/back")
    async def go_back(session_id: str) -> JSONResponse:
        session = _lookup(session_id)
        moved = session.back()
        return _snapshot(session, moved=moved)

    # ── Payment ────────────────────────────────────────────────

    @app.post("/api/wizard/sessions/{session_id}/pay")
    async def pay(session_id: str, body: PayBody) -> JSONResponse:
        session = _lookup(session_id)
        confirmed = await session.pay(body.token)
        return _finish(session_id, session, confirmed=confirmed)

    @app.post("/api/wizard/sessions/{session_id}/retry-save")
    async def retry_save(session_id: str) -> JSONResponse:
        session = _lookup(session_id)
        confirmed = await session.retry_save()
        return _finish(session_id, session, confirmed=confirmed)

    # ── Admin ──────────────────────────────────────────────────

    @app.get("/api/admin/sessions", dependencies=[Depends(require_admin_token)])
    async def list_sessions() -> JSONResponse:
        """Return summary of all active wizard sessions."""
        sessions = get_active_sessions()
        return JSONResponse({
            "sessions": [s.to_dict() for s in sessions.values()],
            "count": len(sessions),
        })

    @app.get("/api/admin/sessions/{session_id}", dependencies=[Depends(require_admin_token)])
    async def session_detail(session_id: str) -> JSONResponse:
        return JSONResponse(_lookup(session_id).to_dict(detail=True))

    @app.websocket("/api/admin/sessions/{session_id}/events")
    async def event_stream(websocket: WebSocket, session_id: str, token: str = "") -> None:
        """Stream a session's wizard events as JSON messages."""
        if not await require_admin_ws(websocket, token):
            return
        session = get_session(session_id)
        if not session:
            await websocket.close(code=4004, reason="Session not found")
            return

        await websocket.accept()
        broadcaster = get_broadcaster(session_id)
        session.attach_broadcaster(broadcaster)
        queue = broadcaster.subscribe()

        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            log.warning("Event stream error for %s: %s", session_id, e)
        finally:
            broadcaster.unsubscribe(queue)

    return app


# ── Helper functions ──────────────────────────────────────────────

def _create_session(
    store: BookingStore,
    catalog: dict,
    current_user: UserProfile | None = None,
) -> WizardSession:
    """Create a WizardSession with configured providers.

    Google Calendar and Google Maps are used when their credentials are
    configured; otherwise slots come from business hours minus stored
    bookings and address suggestions are disabled.
    """
    availability = None
    if settings.google_service_account_json:
        try:
            from reservation.providers.google import GoogleCalendarAvailability
            availability = GoogleCalendarAvailability(
                service_account_path=settings.google_service_account_json,
                calendar_id=settings.google_calendar_id,
                timezone_name=settings.calendar_timezone,
                open_hour=settings.business_open_hour,
                close_hour=settings.business_close_hour,
            )
        except Exception as e:
            log.warning("Google Calendar not configured: %s", e)
    if availability is None:
        availability = BusinessHoursAvailability(
            store=store,
            open_hour=settings.business_open_hour,
            close_hour=settings.business_close_hour,
        )

    geocoder = None
    if settings.google_maps_api_key:
        geocoder = GoogleGeocoder(
            settings.google_maps_api_key,
            timeout=settings.geocode_timeout,
            country=settings.default_country_iso,
        )

    return WizardSession(
        availability=availability,
        payments=SandboxPaymentGateway(),
        store=store,
        emails=TemplateEmailComposer(),
        geocoder=geocoder,
        catalog=catalog,
        current_user=current_user,
    )


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "reservation.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
