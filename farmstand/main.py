"""
FastAPI Application Entry Point - Farmstand Order Service
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from farmstand.config import settings
from farmstand.database import SessionLocal, init_db
from farmstand.logging_config import configure_logging
from farmstand.api import health, no_show, orders, pickup, stock
from farmstand.publishers.event_publisher import EventPublisher
from farmstand.services.no_show_service import (
    NoShowHandlingService,
    start_no_show_monitoring,
    stop_no_show_monitoring,
)
from farmstand.services.notification_client import NotificationDispatcher
from farmstand.services.order_service import OrderService

configure_logging()
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Farmstand Order Service",
    description="Order lifecycle for a farmstand shop: checkout, pickup scheduling, no-shows and stock",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(orders.router)
app.include_router(pickup.router)
app.include_router(stock.router)
app.include_router(no_show.router)

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


def build_no_show_service(db) -> NoShowHandlingService:
    """Wire a sweep service for background runs (no request user)"""
    publisher = EventPublisher()
    notifier = NotificationDispatcher()
    return NoShowHandlingService(db, OrderService(db, publisher, notifier), notifier)


@app.on_event("startup")
async def startup_event():
    """Initialize database and optional background jobs on startup"""
    logger.info("Starting %s...", settings.SERVICE_NAME)
    init_db()
    logger.info("Database initialized")
    logger.info("RabbitMQ URL: %s, notifications: %s", settings.RABBITMQ_URL, settings.NOTIFICATION_BACKEND)
    if settings.NO_SHOW_MONITOR_ENABLED:
        start_no_show_monitoring(SessionLocal, build_no_show_service)
    logger.info("%s is running on port %s", settings.SERVICE_NAME, settings.SERVICE_PORT)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down %s...", settings.SERVICE_NAME)
    await stop_no_show_monitoring()
