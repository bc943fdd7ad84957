"""
Execution Readiness Portal
Scheduler Service.

The readiness core has two periodic jobs: the escalation tick and the
proof expiry check.  Cadence belongs to the external scheduler (cron,
the platform scheduler, or ``/api/v1/cron``).  This module keeps the job
registry, runs a named job inside an app context, and records every run
on the job's ``ScheduledJob`` row.

    register_job                      decorator filling the registry
    SchedulerService.ensure_jobs_registered
    SchedulerService.run_job          run one job, record the outcome
    SchedulerService.run_due_jobs     run what ``is_due`` (CLI path)
    SchedulerService.list_jobs        registry + run history
"""

from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from typing import Callable

from flask import Flask, has_app_context

from readiness.models import db
from readiness.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)

_job_registry: dict[str, Callable] = {}

DAILY = 24 * 60


def register_job(name: str):
    """Register *fn* under *name*; jobs are called as ``fn(app, **kwargs)``."""
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def _default_interval(app: Flask, job_name: str) -> int:
    if job_name == "escalation_tick":
        return int(app.config.get("ESCALATION_TICK_MINUTES", 10))
    return DAILY


class SchedulerService:
    """Runs registered jobs against the bound app."""

    _app: Flask | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        from readiness.services import scheduled_jobs  # noqa: F401  (fills the registry)

        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("Scheduler bound with jobs: %s", ", ".join(sorted(_job_registry)))

    @classmethod
    def _context(cls):
        # Reuse a live context so request-triggered runs share its session.
        return nullcontext() if has_app_context() else cls._app.app_context()

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """Insert a ``ScheduledJob`` row for each registered job missing one."""
        if cls._app is None:
            return []
        created = []
        with cls._context():
            known = {name for (name,) in db.session.query(ScheduledJob.job_name)}
            for name, fn in _job_registry.items():
                if name in known:
                    continue
                summary = (fn.__doc__ or name).strip().splitlines()[0]
                job = ScheduledJob(
                    job_name=name,
                    description=summary,
                    interval_minutes=_default_interval(cls._app, name),
                    is_enabled=True,
                )
                db.session.add(job)
                created.append(job)
            if created:
                db.session.commit()
                logger.info("Registered %d scheduled job rows", len(created))
        return created

    @classmethod
    def run_job(cls, job_name: str, **kwargs) -> dict:
        """Run *job_name* once.

        Returns ``{"job_name", "status", "duration_ms", "result", "error"}``
        where status is ``success``, ``failed``, ``skipped`` (disabled) or
        ``error`` (unknown job / unbound scheduler).  Keyword arguments are
        passed to the job (``now=`` / ``today=`` in tests).
        """
        fn = _job_registry.get(job_name)
        if fn is None:
            return {"job_name": job_name, "status": "error", "duration_ms": 0,
                    "result": None, "error": f"Unknown job: {job_name}"}
        if cls._app is None:
            return {"job_name": job_name, "status": "error", "duration_ms": 0,
                    "result": None, "error": "Scheduler not initialized"}

        with cls._context():
            record = ScheduledJob.query.filter_by(job_name=job_name).first()
            if record is not None and not record.is_enabled:
                logger.info("Job %s disabled; skipped", job_name)
                return {"job_name": job_name, "status": "skipped", "duration_ms": 0,
                        "result": None, "error": None}

            started = time.monotonic()
            result, error, status = None, None, "success"
            try:
                result = fn(cls._app, **kwargs)
            except Exception as exc:
                db.session.rollback()
                status, error = "failed", str(exc)
                logger.exception("Job %s failed", job_name)
            duration_ms = int((time.monotonic() - started) * 1000)

            record = ScheduledJob.query.filter_by(job_name=job_name).first()
            if record is not None:
                record.record_run(status=status, duration_ms=duration_ms,
                                  result=result, error=error)
                db.session.commit()

        logger.info("Job %s %s in %d ms", job_name, status, duration_ms)
        return {"job_name": job_name, "status": status, "duration_ms": duration_ms,
                "result": result, "error": error}

    @classmethod
    def run_due_jobs(cls, now=None, force=False) -> list[dict]:
        """Run every job whose interval has elapsed (all enabled jobs with *force*)."""
        cls.ensure_jobs_registered()
        outcomes = []
        with cls._context():
            records = ScheduledJob.query.order_by(ScheduledJob.job_name).all()
            due = [r.job_name for r in records
                   if r.job_name in _job_registry and (r.is_due(now) or (force and r.is_enabled))]
        for name in due:
            outcomes.append(cls.run_job(name))
        return outcomes

    @classmethod
    def list_jobs(cls) -> list[dict]:
        with cls._context():
            records = {r.job_name: r for r in ScheduledJob.query.all()}
            return [
                {"job_name": name, "record": records[name].to_dict() if name in records else None}
                for name in sorted(_job_registry)
            ]
