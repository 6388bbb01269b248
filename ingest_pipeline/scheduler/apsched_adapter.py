"""APScheduler wrapper registering periodic pipeline runs."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import PipelineConfig, ScheduleType
from ..logging_conf import configure_logging


class APSchedulerAdapter:
    """Manage APScheduler jobs for configured pipelines."""

    def __init__(self) -> None:
        self.scheduler = BackgroundScheduler()
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_pipeline(
        self, pipeline: PipelineConfig, callback: Callable[[PipelineConfig], None]
    ) -> None:
        trigger = self._build_trigger(pipeline)
        job_id = f"pipeline::{pipeline.name}"
        # One run at a time per pipeline: cursor and dedup state are single-writer.
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=job_id,
            args=[pipeline],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", pipeline=pipeline.name, schedule=pipeline.schedule.model_dump())

    def remove_pipeline(self, name: str) -> None:
        job_id = f"pipeline::{name}"
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            self.logger.warning("job_remove_failed", pipeline=name)

    def _build_trigger(self, pipeline: PipelineConfig):
        schedule = pipeline.schedule
        if schedule.type is ScheduleType.CRON:
            return CronTrigger.from_crontab(str(schedule.value))
        if schedule.type is ScheduleType.INTERVAL:
            if isinstance(schedule.value, (int, float)):
                return IntervalTrigger(seconds=float(schedule.value))
            if isinstance(schedule.value, dict):
                return IntervalTrigger(**schedule.value)
            raise ValueError("Interval schedule requires seconds or kwargs dict")
        if schedule.type is ScheduleType.ONCE:
            if schedule.value:
                run_date = datetime.fromisoformat(str(schedule.value))
            else:
                run_date = datetime.now()
            return DateTrigger(run_date=run_date)
        raise ValueError(f"Unknown schedule type: {schedule.type}")

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter"]
