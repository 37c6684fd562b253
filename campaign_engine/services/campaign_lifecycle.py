"""
Campaign lifecycle service.

Business logic for:
    - Campaign creation, partial field update, content attachment
    - Lifecycle transitions: approve, launch, pause, resume, complete
    - Launch gates: source status, outstanding human tasks, content present
    - Auto-advance after the last human task of a campaign is completed

Every status write is a compare-and-set (``UPDATE … WHERE status IN …``),
and the row is locked with ``SELECT … FOR UPDATE`` on dialects that support
it, so two concurrent launches cannot both succeed. The loser re-reads the
row and fails with InvalidTransitionError naming the status it found.

Each mutation and its activity entry are committed together through
:func:`campaign_engine.utils.helpers.unit_of_work`.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update

from campaign_engine.core.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from campaign_engine.models import db
from campaign_engine.models.activity import append_activity
from campaign_engine.models.business import Playbook
from campaign_engine.models.campaign import (
    CAMPAIGN_EDITABLE_FIELDS,
    CAMPAIGN_TRANSITIONS,
    CONTENT_STATUSES,
    CONTENT_TYPES,
    Campaign,
    Content,
    validate_campaign_transition,
)
from campaign_engine.models.task import DEFAULT_HUMAN_TASKS, DEFAULT_SYSTEM_TASKS, Task
from campaign_engine.utils.helpers import clean_text, one_of, parse_date_field, unit_of_work

logger = logging.getLogger(__name__)

_DATE_FIELDS = ("start_date", "end_date")
_BUDGET_FIELDS = ("budget_daily", "budget_total")
_LIST_FIELDS = ("target_markets", "channels")
_OBJECT_FIELDS = ("success_metrics", "performance_thresholds")


# ── Lookups ──────────────────────────────────────────────────────────────────


def get_campaign(campaign_id: str) -> Campaign:
    campaign = db.session.get(Campaign, campaign_id) if isinstance(campaign_id, str) else None
    if not campaign:
        raise NotFoundError(resource="Campaign", resource_id=campaign_id)
    return campaign


def _lock_campaign(campaign_id: str) -> Campaign:
    """Load a campaign with a row lock (no-op on SQLite)."""
    campaign = db.session.execute(
        select(Campaign)
        .where(Campaign.id == campaign_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not campaign:
        raise NotFoundError(resource="Campaign", resource_id=campaign_id)
    return campaign


def pending_human_tasks(campaign_id: str) -> list[Task]:
    """Human tasks not yet completed, in creation order."""
    return db.session.execute(
        select(Task)
        .where(
            Task.campaign_id == campaign_id,
            Task.assignee == "human",
            Task.status != "completed",
        )
        .order_by(Task.created_at.asc())
    ).scalars().all()


def count_incomplete_human_tasks(campaign_id: str) -> int:
    return db.session.execute(
        select(func.count(Task.id)).where(
            Task.campaign_id == campaign_id,
            Task.assignee == "human",
            Task.status != "completed",
        )
    ).scalar() or 0


def content_count(campaign_id: str) -> int:
    return db.session.execute(
        select(func.count(Content.id)).where(Content.campaign_id == campaign_id)
    ).scalar() or 0


# ── Status writes ────────────────────────────────────────────────────────────


def _compare_and_set_status(campaign: Campaign, action: str, extra_where=(), **values) -> None:
    """
    Move *campaign* along the transition named *action*.

    The UPDATE only matches while the row is still in one of the rule's
    source statuses. Zero matched rows means another writer got there
    first; the current status is re-read and reported.
    """
    rule = CAMPAIGN_TRANSITIONS[action]
    result = db.session.execute(
        update(Campaign)
        .where(Campaign.id == campaign.id, Campaign.status.in_(rule["from"]), *extra_where)
        .values(status=rule["to"], **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.expire(campaign)
        current = db.session.execute(
            select(Campaign.status).where(Campaign.id == campaign.id)
        ).scalar()
        check = validate_campaign_transition(current, action)
        raise InvalidTransitionError(
            check["reason"] or f"Campaign was modified concurrently (now {current})",
            current_status=current,
        )
    db.session.refresh(campaign)


def _require_transition(campaign: Campaign, action: str) -> None:
    check = validate_campaign_transition(campaign.status, action)
    if not check["valid"]:
        raise InvalidTransitionError(check["reason"], current_status=campaign.status)


def _log_campaign(campaign: Campaign, action: str, details: dict | None = None, actor="human"):
    append_activity(
        business_id=campaign.business_id,
        campaign_id=campaign.id,
        actor=actor,
        action=action,
        entity_type="campaign",
        entity_id=campaign.id,
        details=details,
    )


# ── CRUD ─────────────────────────────────────────────────────────────────────


def _campaign_value(key: str, value):
    """Validate one editable field; ``None`` clears every field but ``auto_optimize``."""
    if key == "name":
        value = clean_text(value, "name")
        if not value:
            raise ValidationError("Campaign name cannot be blank", details={"name": "required"})
        return value
    if key == "auto_optimize":
        if not isinstance(value, bool):
            raise ValidationError("auto_optimize must be true or false", details={key: value})
        return value
    if value is None:
        return None
    if key in _DATE_FIELDS:
        return parse_date_field(value, key)
    if key in _BUDGET_FIELDS:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValidationError(f"{key} must be a non-negative number", details={key: value})
        return value
    if key in _LIST_FIELDS:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{key} must be a list of strings", details={key: value})
        return value
    if key in _OBJECT_FIELDS:
        if not isinstance(value, dict):
            raise ValidationError(f"{key} must be an object", details={key: value})
        return value
    return clean_text(value, key) or None


def create_campaign(playbook_id: str, name: str, **fields) -> Campaign:
    """Create a campaign in ``setup`` under an existing playbook."""
    playbook_id = clean_text(playbook_id, "playbook_id")
    playbook = db.session.get(Playbook, playbook_id) if playbook_id else None
    if not playbook:
        raise NotFoundError(resource="Playbook", resource_id=playbook_id)
    name = clean_text(name, "name")
    if not name:
        raise ValidationError("Campaign name is required", details={"name": "required"})

    values = {
        k: _campaign_value(k, v) for k, v in fields.items()
        if k in CAMPAIGN_EDITABLE_FIELDS and k != "name"
    }

    campaign = Campaign(playbook_id=playbook.id, name=name, status="setup", **values)
    with unit_of_work("create_campaign"):
        db.session.add(campaign)
        db.session.flush()
        _log_campaign(campaign, "campaign_created", {"name": campaign.name})

    logger.info("Campaign created id=%s playbook=%s", campaign.id, playbook.id)
    return campaign


def update_campaign(campaign_id: str, fields: dict) -> Campaign:
    """
    Apply the editable keys present in *fields*; absent keys are untouched.

    A live campaign must be paused before it can be edited.
    """
    campaign = get_campaign(campaign_id)
    if campaign.status == "live":
        raise InvalidStateError("Cannot edit a live campaign. Pause it first.")

    values = {
        key: _campaign_value(key, fields[key])
        for key in CAMPAIGN_EDITABLE_FIELDS if key in fields
    }

    with unit_of_work("update_campaign"):
        for key, value in values.items():
            setattr(campaign, key, value)
        _log_campaign(campaign, "campaign_updated", {"changes": list(values)})
    return campaign


def add_content(campaign_id: str, **fields) -> Content:
    """Attach a piece of content; the launch gate counts these."""
    campaign = get_campaign(campaign_id)
    content_type = one_of(fields.get("type") or "organic_post", CONTENT_TYPES, "type",
                          f"Invalid content type: {fields.get('type')}")
    status = one_of(fields.get("status") or "generated", CONTENT_STATUSES, "status",
                    f"Invalid content status: {fields.get('status')}")

    content = Content(
        campaign_id=campaign.id,
        type=content_type,
        status=status,
        **{k: clean_text(fields.get(k), k) or None for k in ("headline", "body", "cta_text", "cta_url")},
    )
    with unit_of_work("add_content"):
        db.session.add(content)
        db.session.flush()
        append_activity(
            business_id=campaign.business_id,
            campaign_id=campaign.id,
            action="content_created",
            entity_type="content",
            entity_id=content.id,
            details={"type": content.type, "headline": content.headline},
        )
    return content


# ── Lifecycle Transitions ────────────────────────────────────────────────────


def approve_campaign(campaign_id: str, approved_by: str | None = None) -> Campaign:
    """
    setup → approved, generating the default human and system task sets.

    A campaign is approved at most once; after an auto-reset to ``setup``
    it goes straight to launch.
    """
    with unit_of_work("approve_campaign"):
        campaign = _lock_campaign(campaign_id)
        _require_transition(campaign, "approve")
        if campaign.approved_at is not None:
            raise InvalidTransitionError(
                "Campaign has already been approved", current_status=campaign.status,
            )

        _compare_and_set_status(
            campaign, "approve",
            extra_where=(Campaign.approved_at.is_(None),),
            approved_at=datetime.now(timezone.utc),
            approved_by=approved_by,
        )

        # Spread created_at so the rows keep template order.
        stamp = datetime.now(timezone.utc)
        created = 0
        for assignee, templates in (("human", DEFAULT_HUMAN_TASKS), ("system", DEFAULT_SYSTEM_TASKS)):
            for tpl in templates:
                db.session.add(Task(
                    campaign_id=campaign.id, assignee=assignee, status="pending",
                    created_at=stamp + timedelta(microseconds=created), **tpl,
                ))
                created += 1
        db.session.flush()

        _log_campaign(campaign, "campaign_approved", {
            "approved_by": approved_by,
            "tasks_created": created,
        })

    logger.info("Campaign approved id=%s by=%s tasks=%d", campaign.id, approved_by, created)
    return campaign


def launch_campaign(campaign_id: str) -> Campaign:
    """
    setup|approved → live.

    Gates, checked in order:
        1. source status is setup or approved
        2. every human task is completed
        3. at least one Content row exists

    Raises:
        NotFoundError: unknown campaign.
        InvalidTransitionError: a gate failed; no state is changed.
    """
    with unit_of_work("launch_campaign"):
        campaign = _lock_campaign(campaign_id)
        _require_transition(campaign, "launch")

        pending = pending_human_tasks(campaign.id)
        if pending:
            titles = ", ".join(t.title for t in pending)
            raise InvalidTransitionError(
                f"Complete these tasks before launch: {titles}",
                current_status=campaign.status,
            )

        if content_count(campaign.id) == 0:
            raise InvalidTransitionError(
                "Campaign must have content before launch",
                current_status=campaign.status,
            )

        _compare_and_set_status(campaign, "launch")
        _log_campaign(campaign, "campaign_launched")

    logger.info("Campaign launched id=%s", campaign.id)
    return campaign


def _simple_transition(campaign_id: str, action: str, log_action: str) -> Campaign:
    with unit_of_work(f"{action}_campaign"):
        campaign = _lock_campaign(campaign_id)
        previous = campaign.status
        _require_transition(campaign, action)
        _compare_and_set_status(campaign, action)
        _log_campaign(campaign, log_action, {"previous_status": previous})

    logger.info("Campaign %s id=%s (%s → %s)", log_action, campaign.id, previous, campaign.status)
    return campaign


def pause_campaign(campaign_id: str) -> Campaign:
    """live → paused."""
    return _simple_transition(campaign_id, "pause", "campaign_paused")


def resume_campaign(campaign_id: str) -> Campaign:
    """paused → live."""
    return _simple_transition(campaign_id, "resume", "campaign_resumed")


def complete_campaign(campaign_id: str) -> Campaign:
    """live|paused → completed (terminal)."""
    return _simple_transition(campaign_id, "complete", "campaign_completed")


# ── Auto-advance ─────────────────────────────────────────────────────────────


def reset_status_after_human_tasks(current_status: str) -> str:
    """
    Status a campaign takes once its last human task is completed.

    Unconditional: a live or completed campaign is also sent back to setup.
    """
    return "setup"


def auto_advance_on_task_completion(campaign_id: str) -> Campaign | None:
    """
    Apply :func:`reset_status_after_human_tasks` when the campaign has no
    incomplete human tasks left. Returns the campaign if it was reset,
    ``None`` when human work is still outstanding.

    Runs as its own unit of work, after the task completion has committed.
    """
    with unit_of_work("auto_advance_campaign"):
        campaign = _lock_campaign(campaign_id)
        if count_incomplete_human_tasks(campaign.id) > 0:
            return None

        previous = campaign.status
        new_status = reset_status_after_human_tasks(previous)
        db.session.execute(
            update(Campaign)
            .where(Campaign.id == campaign.id)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        db.session.refresh(campaign)
        _log_campaign(
            campaign, "campaign_auto_advanced",
            {"previous_status": previous, "new_status": new_status},
            actor="system",
        )

    logger.info("Campaign auto-advanced id=%s (%s → %s)", campaign.id, previous, new_status)
    return campaign
