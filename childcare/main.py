# childcare/main.py
from contextlib import asynccontextmanager
from datetime import timedelta
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from childcare.core.config import Settings, get_settings
from childcare.core.email_client import Mailer, SmtpMailer
from childcare.core.errors import STORE_ERRORS, DependencyError, ServiceError
from childcare.core.firebase import FirebaseIdentityProvider, IdentityProvider
from childcare.core.supabase_client import supabase_admin
from childcare.database import create_db_and_tables, create_engine_from_settings
from childcare.repositories.blob_repo import BlobStore, InMemoryBlobStore, SupabaseBlobStore
from childcare.repositories.event_repo import EventRepository
from childcare.repositories.user_repo import UserRepository
from childcare.services.banner_service import BannerLifecycleManager
from childcare.services.event_service import EventService
from childcare.services.image_service import ImageService
from childcare.services.invite_service import InviteService
from childcare.services.statistics_service import ImageStatisticsService
from childcare.services.user_deletion import DeletionSweeper, UserDeletionCoordinator
from childcare.services.user_service import UserService

# Routers
from childcare.routers.banner import router as banner_router
from childcare.routers.events import router as events_router
from childcare.routers.images import router as images_router
from childcare.routers.invites import router as invites_router
from childcare.routers.users import router as users_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


def _check_environment(settings: Settings) -> None:
    if settings.APP_ENV == "legacy":
        raise RuntimeError("APP_ENV=legacy is no longer supported")


def _build_blob_store(settings: Settings) -> BlobStore:
    """
    Supabase Storage when configured; in development an in-memory
    bucket stands in so the API can run without cloud credentials.
    """
    if settings.supabase_configured:
        return SupabaseBlobStore(supabase_admin(settings), settings.STORAGE_BUCKET)
    if settings.APP_ENV == "production":
        raise RuntimeError("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY are required in production")
    logger.warning("⚠️ Supabase not configured: using in-memory image storage")
    return InMemoryBlobStore()


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if isinstance(exc, DependencyError):
            logger.error("%s %s -> %s", request.method, request.url.path, exc.message)
        else:
            logger.info(
                "%s %s -> %s %s",
                request.method,
                request.url.path,
                exc.status_code,
                exc.message,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # Every violated field is reported, not just the first one.
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body") or "body",
                "message": err.get("msg", "invalid"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "status": status.HTTP_400_BAD_REQUEST,
                "kind": "InvalidArgument",
                "error": "Invalid request",
                "errors": errors,
            },
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Create tables.
      - Optionally propagate admin claims from invitations.
      - Finish user deletions left pending by a previous run and start
        the periodic sweeper if configured.

    Shutdown:
      - Stop the sweeper, cancel the banner timer, release Firebase.
    """
    settings: Settings = app.state.settings
    state = app.state

    logger.info("🔄 Startup: Connecting to database...")
    try:
        create_db_and_tables(state.engine)
        logger.info("✅ Startup: DB connection OK, tables verified.")
    except STORE_ERRORS as e:
        logger.error(f"❌ Startup: DB connection FAILED: {e}")
        raise

    if settings.SYNC_ADMIN_CLAIMS_ON_STARTUP:
        try:
            granted = state.identity.sync_admin_claims()
            logger.info(f"✅ Startup: admin claims synced ({granted} granted).")
        except STORE_ERRORS as e:
            logger.error(f"❌ Startup: admin claim sync FAILED: {e}")

    sweeper = DeletionSweeper(
        state.deletion_coordinator,
        state.engine,
        interval=settings.DELETION_SWEEP_INTERVAL_SECONDS,
    )
    try:
        sweeper.run_once()
    except DependencyError as e:
        logger.error(f"❌ Startup: deletion sweep FAILED: {e.message}")
    if settings.DELETION_SWEEP_INTERVAL_SECONDS > 0:
        sweeper.start()

    yield

    sweeper.stop()
    state.banner_manager.shutdown()
    if isinstance(state.identity, FirebaseIdentityProvider):
        state.identity.close()
    logger.info("👋 Shutdown complete.")


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    blob_store: BlobStore | None = None,
    identity: IdentityProvider | None = None,
    mailer: Mailer | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Every external client is constructed here (or injected, for tests)
    and kept on `app.state`; routers reach them through dependencies.
    """
    settings = settings or get_settings()
    _check_environment(settings)

    engine = engine or create_engine_from_settings(settings)
    blob_store = blob_store or _build_blob_store(settings)
    if identity is None:
        identity = FirebaseIdentityProvider(settings.FIREBASE_SERVICE_ACCOUNT_JSON or "")
    mailer = mailer or SmtpMailer(settings)

    user_repo = UserRepository()
    event_repo = EventRepository()
    statistics = ImageStatisticsService(size_limit=settings.MAX_IMAGE_BYTES)
    deletion = UserDeletionCoordinator(user_repo, event_repo, blob_store)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.blob_store = blob_store
    app.state.identity = identity
    app.state.banner_manager = BannerLifecycleManager(
        max_duration=timedelta(hours=settings.BANNER_MAX_HOURS),
    )
    app.state.deletion_coordinator = deletion
    app.state.user_service = UserService(
        user_repo,
        identity,
        deletion,
        max_images=settings.MAX_USER_IMAGES,
    )
    app.state.event_service = EventService(event_repo, user_repo)
    app.state.image_service = ImageService(
        user_repo,
        blob_store,
        statistics,
        max_images=settings.MAX_USER_IMAGES,
    )
    app.state.invite_service = InviteService(mailer, identity, settings.SIGNUP_URL)

    # --- CORS configuration ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _install_error_handlers(app)

    # Versioned API prefix, e.g. /api
    app.include_router(banner_router, prefix=settings.API_V1_STR)
    app.include_router(users_router, prefix=settings.API_V1_STR)
    app.include_router(events_router, prefix=settings.API_V1_STR)
    app.include_router(images_router, prefix=settings.API_V1_STR)
    app.include_router(invites_router, prefix=settings.API_V1_STR)

    @app.get("/")
    def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "childcare-backend"}

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("childcare.main:create_app", factory=True, host="0.0.0.0", port=8080)
