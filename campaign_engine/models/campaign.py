"""
Campaign Engine
Campaign domain models.

Models:
    - Campaign: the unit under lifecycle control
    - Content: generated creative attached to a campaign (counted by the launch gate)

Lifecycle (operator-invoked actions):
    setup     --approve-->  approved
    setup     --launch--->  live
    approved  --launch--->  live
    live      --pause---->  paused
    paused    --resume--->  live
    live      --complete->  completed
    paused    --complete->  completed
    completed              (terminal)
"""

from campaign_engine.models import _iso, _utcnow, _uuid, db


# ── Constants ────────────────────────────────────────────────────────────────

CAMPAIGN_STATUSES = ("setup", "approved", "live", "paused", "completed")

CONTENT_TYPES = {"ad", "organic_post", "story"}
CONTENT_STATUSES = {"generated", "approved", "scheduled", "posted", "paused", "retired"}

CAMPAIGN_TRANSITIONS = {
    "approve": {"from": ("setup",), "to": "approved"},
    "launch": {"from": ("setup", "approved"), "to": "live"},
    "pause": {"from": ("live",), "to": "paused"},
    "resume": {"from": ("paused",), "to": "live"},
    "complete": {"from": ("live", "paused"), "to": "completed"},
}

# Fields accepted by update_campaign; anything else is ignored.
CAMPAIGN_EDITABLE_FIELDS = (
    "name", "target_audience", "target_markets", "channels",
    "budget_daily", "budget_total", "start_date", "end_date",
    "success_metrics", "performance_thresholds", "auto_optimize",
)

_PAST = {
    "approve": "approved",
    "launch": "launched",
    "pause": "paused",
    "resume": "resumed",
    "complete": "completed",
}


def validate_campaign_transition(current_status: str, action: str) -> dict:
    """
    Validate whether an action is valid for the current status.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    rule = CAMPAIGN_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": current_status, "to": None,
                "reason": f"Unknown action: {action}"}

    if current_status not in rule["from"]:
        return {"valid": False, "from": current_status, "to": rule["to"],
                "reason": f"Campaign cannot be {_PAST[action]} from {current_status} status"}

    return {"valid": True, "from": current_status, "to": rule["to"], "reason": None}


# ═════════════════════════════════════════════════════════════════════════════
# Campaign
# ═════════════════════════════════════════════════════════════════════════════

class Campaign(db.Model):
    """
    A marketing campaign owned (through its playbook) by one business.

    ``status`` only changes through campaign_lifecycle; ``playbook_id`` never
    changes after creation.
    """

    __tablename__ = "campaigns"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    playbook_id = db.Column(
        db.String(36),
        db.ForeignKey("playbooks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="setup", index=True)

    target_audience = db.Column(db.String(100), nullable=True)
    target_markets = db.Column(db.JSON, nullable=True, comment='e.g. ["US", "CA"]')
    channels = db.Column(db.JSON, nullable=True, comment='e.g. ["meta", "tiktok"]')
    budget_daily = db.Column(db.Numeric(10, 2), nullable=True)
    budget_total = db.Column(db.Numeric(10, 2), nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    success_metrics = db.Column(db.JSON, nullable=True)
    performance_thresholds = db.Column(db.JSON, nullable=True)
    auto_optimize = db.Column(db.Boolean, nullable=False, default=True)

    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    contents = db.relationship(
        "Content", backref="campaign", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    tasks = db.relationship(
        "Task", backref="campaign", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    escalations = db.relationship(
        "Escalation", backref="campaign", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    @property
    def business_id(self):
        return self.playbook.business_id if self.playbook else None

    def to_dict(self, include_counts=False):
        d = {
            "id": self.id,
            "playbook_id": self.playbook_id,
            "business_id": self.business_id,
            "name": self.name,
            "status": self.status,
            "target_audience": self.target_audience,
            "target_markets": self.target_markets or [],
            "channels": self.channels or [],
            "budget_daily": float(self.budget_daily) if self.budget_daily is not None else None,
            "budget_total": float(self.budget_total) if self.budget_total is not None else None,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "success_metrics": self.success_metrics or {},
            "performance_thresholds": self.performance_thresholds or {},
            "auto_optimize": self.auto_optimize,
            "approved_at": _iso(self.approved_at),
            "approved_by": self.approved_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_counts:
            d["content_count"] = self.contents.count()
            d["task_count"] = self.tasks.count()
            d["escalation_count"] = self.escalations.count()
        return d

    def __repr__(self):
        return f"<Campaign {self.name} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# Content
# ═════════════════════════════════════════════════════════════════════════════

class Content(db.Model):
    """A piece of creative for a campaign. Launch requires at least one."""

    __tablename__ = "content"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    campaign_id = db.Column(
        db.String(36),
        db.ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = db.Column(db.String(20), default="organic_post")
    status = db.Column(db.String(20), default="generated")
    headline = db.Column(db.String(255), nullable=True)
    body = db.Column(db.Text, nullable=True)
    cta_text = db.Column(db.String(100), nullable=True)
    cta_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "type": self.type,
            "status": self.status,
            "headline": self.headline,
            "body": self.body,
            "cta_text": self.cta_text,
            "cta_url": self.cta_url,
            "created_at": _iso(self.created_at),
        }
