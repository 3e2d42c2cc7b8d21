"""
Health check server for the rewards scheduler.

Exposes the state of the daily multiplier batch over HTTP.
"""

import asyncio

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

# Global scheduler reference for health checks
_scheduler: AsyncIOScheduler | None = None


def set_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    """Register the scheduler whose state the endpoints report."""
    global _scheduler
    _scheduler = scheduler
    if scheduler is not None:
        logger.info("Scheduler registered for health checks")


def _next_run(job) -> str | None:
    # Jobs added before start() have no next_run_time yet
    next_run_time = getattr(job, "next_run_time", None)
    return next_run_time.isoformat() if next_run_time else None


def scheduler_status() -> tuple[dict, int]:
    """
    Describe the registered scheduler.

    Returns:
        Tuple of (JSON body, HTTP status)
    """
    if _scheduler is None:
        return {"status": "unhealthy", "error": "Scheduler not initialized"}, 503

    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": _next_run(job),
        }
        for job in _scheduler.get_jobs()
    ]
    running = _scheduler.running
    return (
        {
            "status": "healthy" if running else "stopped",
            "scheduler_running": running,
            "jobs_count": len(jobs),
            "jobs": jobs,
        },
        200 if running else 503,
    )


async def health_handler(request: web.Request) -> web.Response:
    body, status = scheduler_status()
    return web.json_response(body, status=status)


async def liveness_handler(request: web.Request) -> web.Response:
    return web.json_response({"status": "alive", "alive": True})


def create_health_app() -> web.Application:
    """Application serving /health and /liveness."""
    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(host: str, port: int) -> web.AppRunner:
    """
    Start the health check server.

    Returns:
        AppRunner to pass to stop_health_server
    """
    runner = web.AppRunner(create_health_app())
    await runner.setup()
    await web.TCPSite(runner, host, port).start()

    logger.info(f"Health check server started on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """Stop the health check server, giving up after ``timeout`` seconds."""
    logger.info("Stopping health check server...")
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
    except TimeoutError:
        logger.warning(
            f"Health check server cleanup timed out after {timeout}s"
        )
