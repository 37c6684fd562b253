"""
Campaign Engine
Escalation domain model.

Models:
    - Escalation: a flagged issue on a campaign that needs a human decision
"""

from campaign_engine.models import _iso, _utcnow, _uuid, db


# ── Constants ────────────────────────────────────────────────────────────────

ESCALATION_TYPES = {
    "below_threshold",
    "persistent_failure",
    "budget_depleted",
    "anomaly_detected",
    "strategic_question",
}

# Ascending order; rank is the tuple index.
ESCALATION_SEVERITIES = ("info", "warning", "critical")

ESCALATION_STATUSES = ("open", "acknowledged", "resolved", "dismissed")

ACTIVE_STATUSES = ("open", "acknowledged")

ESCALATION_TRANSITIONS = {
    "open": ("acknowledged", "resolved", "dismissed"),
    "acknowledged": ("resolved", "dismissed"),
    "resolved": (),
    "dismissed": (),
}

ESCALATION_ACTIONS = {
    "acknowledge": "acknowledged",
    "resolve": "resolved",
    "dismiss": "dismissed",
}


class Escalation(db.Model):
    """Issue raised against a campaign, ordered for display by severity."""

    __tablename__ = "escalations"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    campaign_id = db.Column(
        db.String(36),
        db.ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = db.Column(db.String(30), nullable=False)
    severity = db.Column(db.String(10), nullable=False, comment="info | warning | critical")
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="open", index=True)
    human_response = db.Column(db.Text, nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "type": self.type,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "human_response": self.human_response,
            "resolved_at": _iso(self.resolved_at),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Escalation {self.severity}/{self.status}: {self.title}>"
