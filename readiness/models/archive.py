"""
Archive Mixin: soft delete for readiness entities.

Units and workstreams are never hard-deleted. Archiving flips
``is_archived`` and stamps ``archived_at``; archived rows disappear from
mutation paths but stay readable for history and audit queries.

Usage:
    class Unit(ArchiveMixin, db.Model):
        ...

    unit.archive()
    Unit.query_active().all()
"""

from datetime import datetime, timezone

from readiness.models import db


class ArchiveMixin:
    """Mixin that adds archive (soft delete) support to a model."""

    is_archived = db.Column(db.Boolean, nullable=False, default=False, index=True)
    archived_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None)

    def archive(self):
        """Mark this record as archived."""
        self.is_archived = True
        self.archived_at = datetime.now(timezone.utc)

    @classmethod
    def query_active(cls):
        """Return a query that excludes archived records."""
        return cls.query.filter(cls.is_archived.is_(False))
