"""
Execution Readiness Portal
Hierarchy domain models.

Models:
    - Client: tenant organisation that owns programs
    - Program: delivery program within a client
    - Workstream: aggregation container of units; status is derived only

Scope is resolved by joins (unit → workstream → program → client); the
client id lives on Program only.
"""

from datetime import datetime, timezone

from readiness.models import db
from readiness.models.archive import ArchiveMixin


# ── Constants ────────────────────────────────────────────────────────────────

WORKSTREAM_STATUSES = {"RED", "GREEN", "BLOCKED", "EMPTY"}


class Client(db.Model):
    """Tenant organisation."""

    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    programs = db.relationship("Program", back_populates="client", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Client {self.id}: {self.slug}>"


class Program(ArchiveMixin, db.Model):
    """Delivery program owned by a client."""

    __tablename__ = "programs"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    client = db.relationship("Client", back_populates="programs")
    workstreams = db.relationship("Workstream", back_populates="program", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "name": self.name,
            "description": self.description,
            "is_archived": self.is_archived,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Program {self.id}: {self.name[:40]}>"


class Workstream(ArchiveMixin, db.Model):
    """
    Aggregation container of units.

    ``overall_status`` is a cached derivation refreshed whenever one of its
    units changes status; it never carries independent truth.
    """

    __tablename__ = "workstreams"

    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(
        db.Integer, db.ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    overall_status = db.Column(db.String(10), nullable=False, default="EMPTY",
                               comment="RED | GREEN | BLOCKED | EMPTY")
    status_computed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    program = db.relationship("Program", back_populates="workstreams")
    units = db.relationship("Unit", back_populates="workstream", lazy="dynamic")

    @property
    def client_id(self):
        return self.program.client_id if self.program else None

    def to_dict(self):
        return {
            "id": self.id,
            "program_id": self.program_id,
            "name": self.name,
            "overall_status": self.overall_status,
            "status_computed_at": self.status_computed_at.isoformat() if self.status_computed_at else None,
            "is_archived": self.is_archived,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Workstream {self.id}: {self.name[:40]} [{self.overall_status}]>"
