from fastapi import FastAPI, APIRouter, HTTPException
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import logging
from pathlib import Path
from pydantic import BaseModel, Field
from typing import List, Optional, Dict
from datetime import datetime, timezone

from common.categories import WEATHER_WARNINGS
from notifications import (
    AlertCandidate,
    BatchResult,
    ConfigurationError,
    CredentialExchanger,
    DailyTipJob,
    FcmPushClient,
    NoCandidatesError,
    NotificationMessage,
    NotificationService,
    TokenCache,
    TripLookupError,
    WeatherWarningJob,
    load_push_settings,
)
from notifications.models import TripSummary
from providers import get_providers

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create the main app
app = FastAPI()

# Create routers
api_router = APIRouter(prefix="/api")

# Shared across requests so repeated dispatches reuse a live token
_token_cache = TokenCache()
_notification_service_instance = None


def get_notification_service() -> NotificationService:
    """Get or create NotificationService instance.

    Raises:
        ConfigurationError: If push credentials are missing
    """
    global _notification_service_instance
    if _notification_service_instance is None:
        settings = load_push_settings()
        providers = get_providers()
        _notification_service_instance = NotificationService(
            recipient_store=providers.recipients,
            push_client=FcmPushClient(settings.project_id, timeout=settings.send_timeout),
            settings=settings,
            exchanger=CredentialExchanger(cache=_token_cache),
        )
    return _notification_service_instance


def _error(status_code: int, error: str, reason: str, **extra) -> HTTPException:
    detail = {"error": error, "reason": reason}
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail)


def _service_or_500() -> NotificationService:
    try:
        return get_notification_service()
    except ConfigurationError as e:
        logger.error(f"[PUSH] Push not configured: {e}")
        raise _error(500, "configuration_error", str(e))


def _batch_response(result: BatchResult) -> Dict:
    """200 body for a completed batch, 502 if no token could be minted."""
    if result.credential_error:
        raise _error(
            502,
            "credential_unavailable",
            result.credential_error,
            **result.to_dict(),
        )
    return {"success": True, **result.to_dict()}

# ==================== Models ====================

class AlertCandidateModel(BaseModel):
    event: str
    description: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    sender_name: Optional[str] = None

class SendNotificationRequest(BaseModel):
    user_id: Optional[str] = None
    user_ids: Optional[List[str]] = None
    category: str = WEATHER_WARNINGS
    title: Optional[str] = None
    body: Optional[str] = None
    data: Dict[str, str] = Field(default_factory=dict)
    # Alert composition (used instead of title/body)
    alerts: Optional[List[AlertCandidateModel]] = None
    trip_title: str = ""
    destination: str = ""
    entity_id: Optional[str] = None

class BatchResponse(BaseModel):
    success: bool
    sent: int
    failed: int
    suppressed: int
    total: int

class TripInfo(BaseModel):
    destination: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: Optional[str] = None

class DailyTipRequest(BaseModel):
    user_id: str = ""
    upcoming_trips: List[TripInfo] = Field(default_factory=list)

# ==================== API Routes ====================

@api_router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

@api_router.post("/notifications/send", response_model=BatchResponse)
async def send_notification(request: SendNotificationRequest):
    """Send a push notification to one or more users."""
    user_ids = request.user_ids or ([request.user_id] if request.user_id else [])
    if not user_ids:
        raise _error(400, "invalid_request", "user_id or user_ids is required")

    if not request.alerts and not (request.title and request.body):
        raise _error(400, "invalid_request", "Title and body are required")

    service = _service_or_500()

    if request.alerts:
        candidates = [
            AlertCandidate(
                event=alert.event,
                description=alert.description,
                start=alert.start,
                end=alert.end,
                source=alert.sender_name,
            )
            for alert in request.alerts
        ]
        try:
            result = await service.send_alerts(
                request.category,
                user_ids,
                candidates,
                trip_label=request.trip_title,
                destination_label=request.destination,
                entity_id=request.entity_id,
            )
        except NoCandidatesError as e:
            raise _error(400, "invalid_request", str(e))
    else:
        message = NotificationMessage(
            title=request.title,
            body=request.body,
            category=request.category,
            data=dict(request.data),
        )
        result = await service.send(message, user_ids)

    logger.info(f"[PUSH] /notifications/send: {result.to_dict()}")
    return _batch_response(result)

@api_router.post("/notifications/weather-check")
async def check_weather_warnings():
    """Check upcoming trips for weather alerts and notify owners (cron-triggered)."""
    service = _service_or_500()
    providers = get_providers()
    if providers.weather is None:
        logger.error("Weather check not configured: WEATHER_API_KEY missing")
        raise _error(500, "configuration_error", "WEATHER_API_KEY not configured")

    job = WeatherWarningJob(providers.trips, providers.weather, service)
    try:
        summary = await job.run()
    except TripLookupError as e:
        logger.error(f"Failed to fetch trips: {e}")
        raise _error(500, "trip_lookup_failed", str(e))

    if summary.get("credential_error"):
        raise _error(502, "credential_unavailable", summary["credential_error"], **{
            key: value for key, value in summary.items() if key != "credential_error"
        })
    return summary

@api_router.post("/notifications/daily-tip")
async def send_daily_tip(request: DailyTipRequest):
    """Generate a personalized travel tip and push it to the user."""
    if not request.user_id:
        raise _error(400, "invalid_request", "user_id is required")

    service = _service_or_500()
    job = DailyTipJob(get_providers().tips, service)
    trips = [
        TripSummary(
            destination=trip.destination,
            start_date=trip.start_date,
            end_date=trip.end_date,
            status=trip.status,
        )
        for trip in request.upcoming_trips
    ]
    response = await job.run(request.user_id, trips)

    if response.get("credential_error"):
        raise _error(502, "credential_unavailable", response["credential_error"], tip=response["tip"])
    return response


# Add CORS middleware first, before including router
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

@app.on_event("shutdown")
async def shutdown_push_client():
    if _notification_service_instance is not None:
        await _notification_service_instance.close()
