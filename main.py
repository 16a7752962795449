"""Main entry point for the Pulse monitoring service."""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from pulse import __version__
from pulse.config import MonitorSettings, load_config
from pulse.scheduler.coordinator import MonitoringCoordinator


logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO", log_format: str = "console") -> None:
    """Configure structured logging for the whole process."""
    level_no = getattr(logging, str(level).upper(), logging.INFO)
    renderer = (
        structlog.processors.JSONRenderer()
        if str(log_format).lower() == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level_no, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    # Telegram tokens are part of the Bot API URL.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def create_app(coordinator: MonitoringCoordinator) -> FastAPI:
    """Status app; the coordinator runs for the lifetime of the server."""
    app = FastAPI(title="Pulse Monitoring", version=__version__)

    @app.on_event("startup")
    async def startup_event():
        await coordinator.start()
        logger.info("Monitoring system started")

    @app.on_event("shutdown")
    async def shutdown_event():
        await coordinator.stop()
        logger.info("Monitoring system stopped")

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "healthy", "service": "pulse-monitor", "version": __version__}

    @app.get("/status")
    async def get_status():
        """Scheduler and task table state."""
        status = coordinator.status()
        if not status.get("running"):
            return JSONResponse(content=status, status_code=503)
        return status

    return app


async def run_scheduler_only(coordinator: MonitoringCoordinator) -> None:
    await coordinator.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await coordinator.stop()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Pulse website monitoring service")
    parser.add_argument(
        "--config",
        default=os.getenv("PULSE_CONFIG", "config/pulse.yaml"),
        help="Path to YAML config",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (INFO, WARNING, ...)")
    parser.add_argument("--once", action="store_true", help="Run one poll/check/aggregation cycle and exit")
    parser.add_argument("--no-http", action="store_true", help="Run the scheduler without the status app")
    args = parser.parse_args(argv)

    settings: MonitorSettings = load_config(args.config)
    configure_logging(args.log_level or settings.log_level, settings.log_format)

    if args.once:
        summary = asyncio.run(MonitoringCoordinator(settings).run_once())
        logger.info("Single cycle finished", **summary)
        return 0 if summary.get("aggregation_error") is None else 1

    if args.no_http:
        try:
            asyncio.run(run_scheduler_only(MonitoringCoordinator(settings)))
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        return 0

    app = create_app(MonitoringCoordinator(settings))
    logger.info("Starting status server", host=settings.http_host, port=settings.http_port)
    uvicorn.run(app, host=settings.http_host, port=settings.http_port, log_level="warning")
    return 0


if __name__ == "__main__":
    sys.exit(main())
