"""
Execution Readiness Portal
Proof domain model.

Models:
    - Proof: one evidence submission for a unit

Lifecycle: pending → approved | rejected.  An approved proof is never
edited or un-approved.  A correction names the proof it replaces
(``supersedes_proof_id``); approving the correction supersedes exactly that
proof (``is_superseded`` + ``superseded_by_proof_id``) and both rows stay.
"""

from datetime import datetime, timezone

from readiness.models import db


# ── Constants ────────────────────────────────────────────────────────────────

APPROVAL_STATUSES = {"pending", "approved", "rejected"}

# Open enumeration: any non-empty lowercase slug is accepted; these are the
# types the UI offers.
KNOWN_PROOF_TYPES = {"photo", "video", "document", "certificate", "permit", "invoice"}


class Proof(db.Model):
    """Evidence submission with approval lifecycle."""

    __tablename__ = "proofs"
    __table_args__ = (
        db.Index("ix_proofs_active", "unit_id", "approval_status", "is_superseded"),
        db.CheckConstraint(
            "approved_by IS NULL OR approved_by != uploaded_by",
            name="ck_proofs_separation_of_duties",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(
        db.Integer, db.ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    type = db.Column(db.String(30), nullable=False, comment="photo | video | document | …")

    # Evidence metadata (media itself lives in external storage)
    url = db.Column(db.String(1000), nullable=True)
    file_name = db.Column(db.String(300), nullable=True)
    file_hash = db.Column(db.String(64), nullable=True, comment="SHA-256 hex")
    reference_number = db.Column(db.String(120), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Approval lifecycle
    approval_status = db.Column(db.String(10), nullable=False, default="pending")
    uploaded_by = db.Column(db.String(150), nullable=False)
    uploaded_by_role = db.Column(db.String(30), nullable=True)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False,
                            default=lambda: datetime.now(timezone.utc))
    approved_by = db.Column(db.String(150), nullable=True,
                            comment="Deciding actor (approve or reject)")
    approved_by_role = db.Column(db.String(30), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    # Correction and validity
    supersedes_proof_id = db.Column(db.Integer, db.ForeignKey("proofs.id"), nullable=True,
                                    comment="Approved proof this submission corrects")
    is_superseded = db.Column(db.Boolean, nullable=False, default=False)
    superseded_by_proof_id = db.Column(db.Integer, db.ForeignKey("proofs.id"), nullable=True)
    superseded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_valid = db.Column(db.Boolean, nullable=False, default=True)
    is_expired = db.Column(db.Boolean, nullable=False, default=False)

    unit = db.relationship("Unit", back_populates="proofs")

    @property
    def is_active(self) -> bool:
        """Approved and not superseded."""
        return self.approval_status == "approved" and not self.is_superseded

    def to_dict(self):
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "type": self.type,
            "url": self.url,
            "file_name": self.file_name,
            "file_hash": self.file_hash,
            "reference_number": self.reference_number,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "notes": self.notes,
            "approval_status": self.approval_status,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "approved_by": self.approved_by,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "rejection_reason": self.rejection_reason,
            "supersedes_proof_id": self.supersedes_proof_id,
            "is_superseded": self.is_superseded,
            "superseded_by_proof_id": self.superseded_by_proof_id,
            "is_valid": self.is_valid,
            "is_expired": self.is_expired,
        }

    def __repr__(self):
        return f"<Proof {self.id}: {self.type} [{self.approval_status}]>"
