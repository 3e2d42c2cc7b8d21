"""Tests for the periodic scheduler, health reporting and logging setup."""

from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from app.config.logging import setup_logging
from app.config.settings import Settings
from jobs import health
from jobs.scheduler import DAILY_RECALCULATION_JOB, create_scheduler


class TestCreateScheduler:
    """Tests for create_scheduler."""

    def test_daily_job_registered(self):
        """The batch recalculation runs once a day."""
        scheduler = create_scheduler()

        job = scheduler.get_job(DAILY_RECALCULATION_JOB)

        assert job is not None
        assert isinstance(job.trigger, CronTrigger)
        assert job.name == "Daily multiplier recalculation"

    def test_hour_from_settings(self):
        """The run hour is configurable."""
        scheduler = create_scheduler(Settings(multiplier_recalc_hour=5))

        trigger = scheduler.get_job(DAILY_RECALCULATION_JOB).trigger

        hour_field = next(f for f in trigger.fields if f.name == "hour")
        assert str(hour_field) == "5"


class TestSchedulerStatus:
    """Tests for the health report."""

    def teardown_method(self):
        health.set_scheduler(None)

    def test_without_scheduler(self):
        """No registered scheduler is unhealthy."""
        health.set_scheduler(None)

        body, status = health.scheduler_status()

        assert status == 503
        assert body["status"] == "unhealthy"

    def test_stopped_scheduler(self):
        """A scheduler that never started reports its jobs as stopped."""
        health.set_scheduler(create_scheduler())

        body, status = health.scheduler_status()

        assert status == 503
        assert body["status"] == "stopped"
        assert body["jobs_count"] == 1
        assert body["jobs"][0]["id"] == DAILY_RECALCULATION_JOB


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_file_sink(self, tmp_path):
        """Messages reach the configured log file."""
        log_file = tmp_path / "rewards.log"

        setup_logging(Settings(log_file=str(log_file), log_level="DEBUG"))
        logger.debug("ledger entry posted")
        logger.complete()

        assert "ledger entry posted" in log_file.read_text(encoding="utf-8")

    def teardown_method(self):
        setup_logging(Settings())
