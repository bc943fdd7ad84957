"""
Execution Readiness Portal
Scheduling model.

Models:
    - ScheduledJob: one row per registered background job

The external scheduler owns the cadence.  ``interval_minutes`` is the
cadence it is expected to keep; ``is_due`` lets the ``flask run-jobs``
command skip jobs that ran recently.
"""

from datetime import datetime, timedelta, timezone

from readiness.models import db
from readiness.utils.helpers import as_utc


class ScheduledJob(db.Model):
    """Run history for ``escalation_tick`` and ``proof_expiry_check``."""

    __tablename__ = "scheduled_jobs"

    id = db.Column(db.Integer, primary_key=True)
    job_name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(300), default="")
    interval_minutes = db.Column(db.Integer, nullable=False, default=10)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)

    last_run_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_success_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_run_status = db.Column(db.String(10), nullable=True)
    last_run_duration_ms = db.Column(db.Integer, nullable=True)
    last_run_result = db.Column(db.JSON, nullable=True)
    last_error = db.Column(db.Text, nullable=True)
    run_count = db.Column(db.Integer, nullable=False, default=0)
    failure_streak = db.Column(db.Integer, nullable=False, default=0,
                               comment="Consecutive failed runs; reset by a success")

    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))

    def record_run(self, *, status, duration_ms, result=None, error=None, when=None):
        when = when or datetime.now(timezone.utc)
        self.last_run_at = when
        self.last_run_status = status
        self.last_run_duration_ms = duration_ms
        self.last_run_result = result
        self.run_count = (self.run_count or 0) + 1
        if status == "failed":
            self.failure_streak = (self.failure_streak or 0) + 1
            self.last_error = error
        else:
            self.failure_streak = 0
            self.last_success_at = when
            self.last_error = None

    def is_due(self, now=None) -> bool:
        """True when enabled and ``interval_minutes`` have passed since the last run."""
        if not self.is_enabled:
            return False
        if self.last_run_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return as_utc(now) - as_utc(self.last_run_at) >= timedelta(minutes=self.interval_minutes)

    def to_dict(self):
        return {
            "id": self.id,
            "job_name": self.job_name,
            "description": self.description,
            "interval_minutes": self.interval_minutes,
            "is_enabled": self.is_enabled,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_run_status": self.last_run_status,
            "last_run_duration_ms": self.last_run_duration_ms,
            "last_run_result": self.last_run_result,
            "last_error": self.last_error,
            "run_count": self.run_count,
            "failure_streak": self.failure_streak,
        }

    def __repr__(self):
        return f"<ScheduledJob {self.job_name} every {self.interval_minutes}m>"
