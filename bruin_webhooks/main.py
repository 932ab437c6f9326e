import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import text

from .api import events, webhooks
from . import config, models
from .crud import delete_old_logs
from .database import engine as default_engine, SessionLocal
from .events import EventBus
from .exceptions import ValidationError, WebhookNotFound
from .worker.delivery import DeliveryExecutor
from .worker.dispatcher import Dispatcher
from .worker.retry import RetryController

logger = logging.getLogger("webhook_service")

def create_app(engine=default_engine, session_factory=SessionLocal, executor=None,
               policy=None, reset_policy=config.FAILURE_RESET_POLICY,
               max_workers=config.MAX_WORKERS, clock=None, enable_cleanup=True):
    # Create database tables
    models.Base.metadata.create_all(bind=engine)

    controller_kwargs = {"clock": clock} if clock else {}
    controller = RetryController(
        executor or DeliveryExecutor(),
        session_factory,
        policy=policy,
        reset_policy=reset_policy,
        **controller_kwargs,
    )
    dispatcher = Dispatcher(session_factory, controller, max_workers=max_workers)
    event_bus = EventBus()
    dispatcher.attach(event_bus)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        dispatcher.start()

        scheduler = None
        if enable_cleanup:
            scheduler = BackgroundScheduler()

            # Prune old delivery logs on an interval
            def cleanup_logs():
                db = session_factory()
                try:
                    deleted = delete_old_logs(db, hours=config.LOG_RETENTION_HOURS)
                    logger.info(f"Pruned {deleted} delivery logs older than {config.LOG_RETENTION_HOURS}h")
                finally:
                    db.close()

            scheduler.add_job(cleanup_logs, "interval", hours=config.LOG_CLEANUP_INTERVAL_HOURS)
            scheduler.start()
        try:
            yield
        finally:
            if scheduler:
                scheduler.shutdown(wait=False)
            dispatcher.stop()

    app = FastAPI(
        title="Bruin Webhook Dispatcher",
        description="Delivers signed note and state events to registered webhooks",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory
    app.state.controller = controller
    app.state.dispatcher = dispatcher
    app.state.event_bus = event_bus

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(WebhookNotFound)
    async def not_found_handler(request: Request, exc: WebhookNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    # Include routers
    app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
    app.include_router(events.router, prefix="/events", tags=["events"])

    @app.get("/")
    def read_root():
        return {"message": "Welcome to Bruin Webhook Dispatcher"}

    @app.get("/health")
    def health_check():
        # Check database connection
        db = session_factory()
        try:
            db.execute(text("SELECT 1"))
            db_status = "healthy"
        except Exception as e:
            db_status = f"unhealthy: {str(e)}"
        finally:
            db.close()

        return {
            "status": "up",
            "database": db_status,
        }

    @app.get("/health/dispatcher")
    def dispatcher_health():
        """Get status of the delivery pool and retry scheduler."""
        return dispatcher.status()

    return app

app = create_app()
