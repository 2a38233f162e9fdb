from fastapi import FastAPI, Depends, Header, Query, Request, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import asyncio
import hmac
import logging
import time

import httpx

# Import your modules
from . import schemas
from .config import Settings
from .content_core import ContentCacheService, ContentKind, NgoFetcher, RefreshScheduler, TedTalksFetcher
from .errors import AuthorizationError, ValidationError, failure_message, register_exception_handlers
from .logging_config import setup_logging
from .notifier import CHAT_CHANNEL, MESSAGE_EVENT, RealtimeNotifier
from .storage import Collection, StorageGateway

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    gateway: Optional[StorageGateway] = None,
    content_service: Optional[ContentCacheService] = None,
    notifier: Optional[RealtimeNotifier] = None,
) -> FastAPI:
    """Build the API. Collaborators not passed in are built from ``settings`` at startup."""
    settings = settings or Settings.from_env()

    # --- LIFESPAN (The Startup Manager) ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        state = app.state
        http_client = None

        # 1. Storage: no traffic without the indexes
        state.gateway = gateway or StorageGateway.from_url(settings.require_database())
        try:
            state.gateway.ensure_indexes()
        except Exception:
            state.gateway.close()
            raise

        # 2. Content pipeline
        if content_service is None:
            http_client = httpx.Client(timeout=settings.fetch_timeout_seconds)
            state.content_service = ContentCacheService(state.gateway, {
                ContentKind.TALKS: TedTalksFetcher(http_client, settings.ted_api_key, settings.ted_api_host),
                ContentKind.NGOS: NgoFetcher(http_client, settings.ngo_search_query),
            })
        else:
            state.content_service = content_service
        state.notifier = notifier or RealtimeNotifier.from_settings(settings)

        # 3. Initial data load, then the periodic refresh
        if settings.refresh_on_startup:
            await asyncio.to_thread(state.content_service.refresh_all)
        scheduler = None
        if settings.refresh_interval_seconds > 0:
            scheduler = RefreshScheduler(state.content_service, settings.refresh_interval_seconds)
            scheduler.start()
        state.scheduler = scheduler

        state.started_at = time.monotonic()
        logger.info("Server ready (environment: %s)", settings.environment)
        yield

        # 4. Shutdown: Clean up resources
        logger.info("Server shutting down...")
        if scheduler is not None:
            scheduler.stop()
        if http_client is not None:
            http_client.close()
        state.gateway.close()

    # Initialize App with Lifespan
    app = FastAPI(lifespan=lifespan, title="Social Cause Platform API")
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-api-key"],
        expose_headers=["Content-Length"],
    )
    register_exception_handlers(app, production=settings.is_production)
    register_routes(app)
    return app


# --- DEPENDENCIES ---
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> StorageGateway:
    return request.app.state.gateway


def get_content_service(request: Request) -> ContentCacheService:
    return request.app.state.content_service


def get_notifier(request: Request) -> RealtimeNotifier:
    return request.app.state.notifier


def require_admin(
    settings: Settings = Depends(get_settings),
    x_api_key: Optional[str] = Header(default=None),
):
    # Only gated in production
    if not settings.is_production:
        return
    expected = settings.admin_api_key
    if not expected or not x_api_key or not hmac.compare_digest(x_api_key, expected):
        raise AuthorizationError()


# --- THE ENDPOINTS ---
def register_routes(app: FastAPI):

    @app.get("/")
    def root():
        return {"status": "API is running", "docs": "/api/health"}

    @app.get("/api/health", response_model=schemas.HealthResponse)
    def health(request: Request, gateway: StorageGateway = Depends(get_gateway)):
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc),
            "uptime": time.monotonic() - request.app.state.started_at,
            "dbStatus": "connected" if gateway.ping() else "disconnected",
        }

    # Map check-ins
    @app.get("/api/map", response_model=list[schemas.CheckInResponse])
    def list_checkins(
        category: Optional[str] = None,
        limit: int = Query(100, ge=1, le=1000),
        gateway: StorageGateway = Depends(get_gateway),
    ):
        filters = {"category": category} if category else None
        with failure_message("Failed to fetch map data"):
            return gateway.find(Collection.CHECKINS, filters, limit=limit)

    @app.post("/api/map", response_model=schemas.CheckInResponse, status_code=201)
    def create_checkin(body: schemas.CheckInCreate, gateway: StorageGateway = Depends(get_gateway)):
        if body.location is None or not body.interest:
            raise ValidationError()
        with failure_message("Failed to save location"):
            return gateway.insert_one(Collection.CHECKINS, body.to_record())

    # Cached content
    @app.get("/api/content", response_model=list[schemas.TalkResponse])
    def list_talks(
        search: Optional[str] = None,
        limit: int = Query(20, ge=1, le=500),
        service: ContentCacheService = Depends(get_content_service),
    ):
        with failure_message("Failed to fetch content"):
            return service.serve(ContentKind.TALKS, search=search, limit=limit)

    @app.get("/api/action-hub", response_model=list[schemas.NgoResponse])
    def list_ngos(
        search: Optional[str] = None,
        type: Optional[str] = None,
        limit: int = Query(50, ge=1, le=500),
        service: ContentCacheService = Depends(get_content_service),
    ):
        with failure_message("Failed to fetch NGOs"):
            return service.serve(ContentKind.NGOS, search=search, limit=limit, type_=type)

    # Chat
    @app.get("/api/messages", response_model=list[schemas.MessageResponse])
    def list_messages(
        limit: int = Query(50, ge=1, le=500),
        gateway: StorageGateway = Depends(get_gateway),
    ):
        with failure_message("Failed to fetch messages"):
            return gateway.find(Collection.MESSAGES, limit=limit)

    @app.post("/api/send-message", response_model=schemas.MessageResponse, status_code=201)
    def send_message(
        body: schemas.MessageCreate,
        background_tasks: BackgroundTasks,
        gateway: StorageGateway = Depends(get_gateway),
        notifier: RealtimeNotifier = Depends(get_notifier),
    ):
        if not body.text or not body.user:
            raise ValidationError()
        with failure_message("Failed to send message"):
            row = gateway.insert_one(Collection.MESSAGES, body.to_record())

        # Publish after the response goes out, its outcome never changes it
        message = schemas.MessageResponse.model_validate(row)
        payload = message.model_dump(mode="json", by_alias=True)
        background_tasks.add_task(notifier.publish, CHAT_CHANNEL, MESSAGE_EVENT, payload)
        return row

    # Admin refresh (gated in production)
    @app.post("/api/refresh/ted-talks", response_model=schemas.RefreshResponse, dependencies=[Depends(require_admin)])
    def refresh_talks(service: ContentCacheService = Depends(get_content_service)):
        with failure_message("Failed to refresh TED Talks"):
            return {"success": True, "count": service.force_refresh(ContentKind.TALKS)}

    @app.post("/api/refresh/ngos", response_model=schemas.RefreshResponse, dependencies=[Depends(require_admin)])
    def refresh_ngos(service: ContentCacheService = Depends(get_content_service)):
        with failure_message("Failed to refresh NGOs"):
            return {"success": True, "count": service.force_refresh(ContentKind.NGOS)}
