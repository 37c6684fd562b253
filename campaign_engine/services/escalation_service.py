"""
Escalation tracker.

Listing order is severity (critical first) then newest first; the status
filter ``active`` stands for open + acknowledged. Transitions:

    open          → acknowledged | resolved | dismissed
    acknowledged  → resolved | dismissed
    resolved, dismissed  (terminal)
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import case, select

from campaign_engine.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from campaign_engine.models import db
from campaign_engine.models.activity import append_activity
from campaign_engine.models.escalation import (
    ACTIVE_STATUSES,
    ESCALATION_ACTIONS,
    ESCALATION_SEVERITIES,
    ESCALATION_TRANSITIONS,
    ESCALATION_TYPES,
    Escalation,
)
from campaign_engine.services.campaign_lifecycle import get_campaign
from campaign_engine.utils.helpers import clean_text, one_of, unit_of_work

logger = logging.getLogger(__name__)


def _severity_rank():
    return case(
        {severity: rank for rank, severity in enumerate(ESCALATION_SEVERITIES)},
        value=Escalation.severity,
        else_=-1,
    )


def get_escalation(escalation_id: str) -> Escalation:
    escalation = db.session.get(Escalation, escalation_id) if isinstance(escalation_id, str) else None
    if not escalation:
        raise NotFoundError(resource="Escalation", resource_id=escalation_id)
    return escalation


def list_escalations(status=None, severity=None, campaign_id=None) -> list[Escalation]:
    stmt = select(Escalation)
    if status == "active":
        stmt = stmt.where(Escalation.status.in_(ACTIVE_STATUSES))
    elif status:
        stmt = stmt.where(Escalation.status == status)
    if severity:
        stmt = stmt.where(Escalation.severity == severity)
    if campaign_id:
        stmt = stmt.where(Escalation.campaign_id == campaign_id)
    stmt = stmt.order_by(_severity_rank().desc(), Escalation.created_at.desc())
    return db.session.execute(stmt).scalars().all()


def create_escalation(
    campaign_id: str,
    type: str,
    severity: str,
    title: str,
    description: str | None = None,
) -> Escalation:
    """Open an escalation against a campaign. Logged with the system actor."""
    campaign = get_campaign(campaign_id)
    one_of(type, ESCALATION_TYPES, "type", f"Invalid escalation type: {type}")
    one_of(severity, ESCALATION_SEVERITIES, "severity", f"Invalid severity: {severity}")
    title = clean_text(title, "title")
    description = clean_text(description, "description") or None
    if not title:
        raise ValidationError("Escalation title is required", details={"title": "required"})

    escalation = Escalation(
        campaign_id=campaign.id,
        type=type,
        severity=severity,
        title=title,
        description=description,
        status="open",
    )
    with unit_of_work("create_escalation"):
        db.session.add(escalation)
        db.session.flush()
        append_activity(
            business_id=campaign.business_id,
            campaign_id=campaign.id,
            actor="system",
            action="escalation_created",
            entity_type="escalation",
            entity_id=escalation.id,
            details={"type": type, "severity": severity, "title": title},
        )
    logger.info("Escalation opened id=%s campaign=%s severity=%s", escalation.id, campaign.id, severity)
    return escalation


def transition_escalation(escalation_id: str, action: str, human_response: str | None = None) -> Escalation:
    """
    Apply ``acknowledge``, ``resolve`` or ``dismiss``.

    Raises:
        ValidationError: unknown action.
        NotFoundError: unknown escalation.
        InvalidTransitionError: the current status does not allow the action.
    """
    new_status = ESCALATION_ACTIONS.get(action) if isinstance(action, str) else None
    if new_status is None:
        raise ValidationError(
            "Action is required (acknowledge, resolve, dismiss)",
            details={"action": action},
        )
    human_response = clean_text(human_response, "human_response") or None

    with unit_of_work("transition_escalation"):
        escalation = db.session.execute(
            select(Escalation).where(Escalation.id == escalation_id).with_for_update()
        ).scalar_one_or_none()
        if not escalation:
            raise NotFoundError(resource="Escalation", resource_id=escalation_id)

        previous = escalation.status
        if new_status not in ESCALATION_TRANSITIONS.get(previous, ()):
            raise InvalidTransitionError(
                f'Cannot {action} an escalation with status "{previous}"',
                current_status=previous,
            )

        escalation.status = new_status
        if human_response:
            escalation.human_response = human_response
        if new_status == "resolved":
            escalation.resolved_at = datetime.now(timezone.utc)

        append_activity(
            business_id=escalation.campaign.business_id,
            campaign_id=escalation.campaign_id,
            action=f"escalation_{new_status}",
            entity_type="escalation",
            entity_id=escalation.id,
            details={
                "previous_status": previous,
                "new_status": new_status,
                "human_response": human_response or None,
            },
        )
    return escalation
