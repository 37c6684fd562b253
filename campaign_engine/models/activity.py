"""
Campaign Engine
Activity domain model.

Models:
    - ActivityLog: immutable, append-only trail of every state change.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from campaign_engine.core.exceptions import PersistenceError, ValidationError
from campaign_engine.models import _iso, _utcnow, _uuid, db

logger = logging.getLogger(__name__)


# ── Constants ────────────────────────────────────────────────────────────────

ACTORS = {"human", "system"}

ENTITY_TYPES = {"business", "playbook", "campaign", "content", "task", "escalation"}

ACTIONS = {
    # Business
    "business_created",
    "playbook_created",
    # Campaign lifecycle
    "campaign_created",
    "campaign_updated",
    "campaign_approved",
    "campaign_launched",
    "campaign_paused",
    "campaign_resumed",
    "campaign_completed",
    "campaign_auto_advanced",
    "content_created",
    # Task
    "task_created",
    "task_updated",
    "task_completed",
    "task_blocked",
    # Escalation
    "escalation_created",
    "escalation_acknowledged",
    "escalation_resolved",
    "escalation_dismissed",
}


class ActivityLog(db.Model):
    """
    Append-only audit record.

    One row per state-changing operation. Rows are written through
    :func:`append_activity` in the same session as the mutation they
    describe, so both commit or neither does.
    """

    __tablename__ = "activity_log"
    __table_args__ = (
        db.Index("idx_activity_business", "business_id"),
        db.Index("idx_activity_campaign", "campaign_id"),
        db.Index("idx_activity_entity", "entity_type", "entity_id"),
        db.Index("idx_activity_created", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    business_id = db.Column(
        db.String(36),
        db.ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )
    campaign_id = db.Column(
        db.String(36),
        db.ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=True,
    )
    actor = db.Column(db.String(10), nullable=False, comment="human | system")
    action = db.Column(
        db.String(100), nullable=False,
        comment="campaign_launched | task_completed | …",
    )
    entity_type = db.Column(db.String(30), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "campaign_id": self.campaign_id,
            "actor": self.actor,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details or {},
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<ActivityLog {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def append_activity(
    *,
    business_id: str,
    action: str,
    entity_type: str,
    entity_id: str,
    actor: str = "human",
    campaign_id: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """
    Append a single activity row. Uses ``flush`` so callers keep
    transaction control.

    Raises:
        ValidationError: a referential field is missing, or the actor, entity
            type or action is outside the known vocabulary.
        PersistenceError: the flush failed. The caller must roll back; the
            mutation being described must not be committed without its entry.
    """
    if not business_id or not entity_id or not action:
        raise ValidationError(
            "Activity entries require business_id, action and entity_id",
            details={"business_id": business_id, "action": action, "entity_id": entity_id},
        )
    if actor not in ACTORS:
        raise ValidationError(f"Unknown actor: {actor}")
    if entity_type not in ENTITY_TYPES or action not in ACTIONS:
        raise ValidationError(
            f"Unknown activity {entity_type}/{action}",
            details={"entity_type": entity_type, "action": action},
        )

    entry = ActivityLog(
        business_id=business_id,
        campaign_id=campaign_id,
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        details=details,
    )
    db.session.add(entry)
    try:
        db.session.flush()
    except SQLAlchemyError as exc:
        logger.error("Activity append failed action=%s entity=%s/%s", action, entity_type, entity_id)
        raise PersistenceError(f"activity append ({action})", exc) from exc
    return entry
