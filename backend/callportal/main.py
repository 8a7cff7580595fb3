import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from callportal.config import get_settings
from callportal.database import engine, Base
from callportal.routers import webhook, events, calls
from callportal.models import CallLog, Contact, PhoneEndpoint  # noqa: F401  ensure tables are registered
from callportal.services.broadcaster import EventBroadcaster
from callportal.services.twilio_client import TwilioClient

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Call Portal API...")

    # Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")

    if not settings.twilio_auth_token:
        logger.warning("TWILIO_AUTH_TOKEN is not set - call status webhooks will be rejected")

    yield

    # Shutdown
    logger.info("Shutting down Call Portal API...")
    app.state.call_log_broadcaster.close_all()
    app.state.contact_broadcaster.close_all()
    await app.state.twilio_client.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Call Portal",
        description="Call status ingestion and live dashboard events",
        version="1.0.0",
        lifespan=lifespan,
    )

    # One registry per event category, shared by the webhook and the streams
    app.state.call_log_broadcaster = EventBroadcaster(
        "call_logs",
        keepalive_interval=settings.stream_keepalive_seconds,
        queue_size=settings.stream_queue_size,
    )
    app.state.contact_broadcaster = EventBroadcaster(
        "contacts",
        keepalive_interval=settings.stream_keepalive_seconds,
        queue_size=settings.stream_queue_size,
    )
    app.state.twilio_client = TwilioClient(settings)

    # CORS middleware for the dashboard frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(webhook.router, prefix="/api")
    app.include_router(events.router, prefix="/api")
    app.include_router(calls.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Call Portal API",
            "version": "1.0.0",
            "status": "running",
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "webhook_enabled": bool(settings.twilio_auth_token),
            "subscribers": {
                "call_logs": len(request.app.state.call_log_broadcaster),
                "contacts": len(request.app.state.contact_broadcaster),
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "callportal.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=True,
    )
