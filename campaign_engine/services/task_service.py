"""
Task service: dependency gate, completion workflow, partial update, listing.

Business rules:
    - A task has at most one prerequisite (``depends_on_id``), on the same
      campaign, fixed at creation. Chains cannot form cycles.
    - complete_task refuses while the prerequisite is open (BlockedError).
    - update_task may set status=completed directly; that path stamps
      completed_at but skips the prerequisite gate.
    - Completing the last open human task of a campaign triggers the
      campaign auto-advance rule as a second, separately committed step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields as dc_fields
from datetime import datetime, timezone

from sqlalchemy import case, select

from campaign_engine.core.exceptions import (
    BlockedError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from campaign_engine.models import db
from campaign_engine.models.activity import append_activity
from campaign_engine.models.business import Playbook
from campaign_engine.models.campaign import Campaign
from campaign_engine.models.escalation import Escalation
from campaign_engine.models.task import DEFAULT_PRIORITY, TASK_ASSIGNEES, TASK_STATUSES, Task
from campaign_engine.services import campaign_lifecycle
from campaign_engine.utils.helpers import clean_text, one_of, parse_date_field, unit_of_work

logger = logging.getLogger(__name__)


class _Unset:
    """Marker for a field absent from a partial update."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "UNSET"


UNSET = _Unset()


@dataclass
class TaskUpdate:
    """
    Partial update for a Task. A field left as ``UNSET`` is not touched;
    ``None`` clears it (where the column allows).
    """

    title: object = UNSET
    description: object = UNSET
    instructions: object = UNSET
    priority: object = UNSET
    due_date: object = UNSET
    status: object = UNSET

    @classmethod
    def from_dict(cls, data: dict) -> "TaskUpdate":
        """Build from a request payload; unknown keys are ignored."""
        known = {f.name for f in dc_fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def present(self) -> dict:
        return {f.name: getattr(self, f.name) for f in dc_fields(self)
                if getattr(self, f.name) is not UNSET}


@dataclass
class TaskCompletionResult:
    """Outcome of :func:`complete_task`.

    ``task`` is always committed as completed. ``campaign_reset`` is True when
    the follow-up step reset the campaign. ``follow_up_error`` carries the
    failure of that step, if any; the completion itself still stands.
    """

    task: Task
    campaign_reset: bool = False
    follow_up_error: PersistenceError | None = None


# Enum rank, not alphabetical: pending < in_progress < completed < blocked.
def _status_rank():
    return case(
        {status: rank for rank, status in enumerate(TASK_STATUSES)},
        value=Task.status,
        else_=len(TASK_STATUSES),
    )


# ── Lookups ──────────────────────────────────────────────────────────────────


def get_task(task_id: str) -> Task:
    task = db.session.get(Task, task_id) if isinstance(task_id, str) else None
    if not task:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def list_tasks(campaign_id=None, assignee=None, status=None, business_id=None) -> list[Task]:
    """
    Filter tasks. Ordered by status rank, then priority (highest first),
    then creation time (oldest first).
    """
    stmt = select(Task)
    if campaign_id:
        stmt = stmt.where(Task.campaign_id == campaign_id)
    if assignee:
        stmt = stmt.where(Task.assignee == assignee)
    if status:
        stmt = stmt.where(Task.status == status)
    if business_id:
        stmt = (
            stmt.join(Campaign, Task.campaign_id == Campaign.id)
            .join(Playbook, Campaign.playbook_id == Playbook.id)
            .where(Playbook.business_id == business_id)
        )
    stmt = stmt.order_by(_status_rank(), Task.priority.desc(), Task.created_at.asc())
    return db.session.execute(stmt).scalars().all()


def _log_task(task: Task, action: str, details: dict | None, actor: str = "human"):
    append_activity(
        business_id=task.campaign.business_id,
        campaign_id=task.campaign_id,
        actor=actor,
        action=action,
        entity_type="task",
        entity_id=task.id,
        details=details,
    )


# ── Create ───────────────────────────────────────────────────────────────────


def create_task(
    campaign_id: str,
    title: str,
    assignee: str,
    *,
    type: str = "custom",
    description: str | None = None,
    instructions: str | None = None,
    priority: int | None = None,
    due_date=None,
    depends_on_id: str | None = None,
) -> Task:
    """Create a pending task, optionally chained to a prerequisite on the same campaign."""
    campaign = campaign_lifecycle.get_campaign(campaign_id)

    title = clean_text(title, "title")
    if not title:
        raise ValidationError("Task title is required", details={"title": "required"})
    one_of(assignee, TASK_ASSIGNEES, "assignee")
    depends_on_id = clean_text(depends_on_id, "depends_on_id") or None

    if depends_on_id:
        prereq = db.session.get(Task, depends_on_id)
        if not prereq or prereq.campaign_id != campaign.id:
            raise ValidationError(
                "Prerequisite task must exist on the same campaign",
                details={"depends_on_id": depends_on_id},
            )

    try:
        priority = DEFAULT_PRIORITY if priority is None else int(priority)
    except (TypeError, ValueError):
        raise ValidationError("priority must be an integer", details={"priority": priority})

    task = Task(
        campaign_id=campaign.id,
        assignee=assignee,
        type=clean_text(type, "type") or "custom",
        title=title,
        description=clean_text(description, "description") or None,
        instructions=clean_text(instructions, "instructions") or None,
        priority=priority,
        due_date=parse_date_field(due_date, "due_date"),
        depends_on_id=depends_on_id,
        status="pending",
    )
    with unit_of_work("create_task"):
        db.session.add(task)
        db.session.flush()
        _log_task(task, "task_created", {"title": task.title, "assignee": task.assignee})
    return task


# ── Completion workflow ──────────────────────────────────────────────────────


def complete_task(task_id: str, completion_notes: str | None = None) -> TaskCompletionResult:
    """
    Complete a task through the prerequisite gate.

    Step 1 (one commit): status → completed, completed_at, notes, and the
    ``task_completed`` entry.
    Step 2 (second commit): if no human task on the campaign is still open,
    apply the campaign auto-advance rule. A database failure here is
    rolled back, logged and returned on the result; step 1 is kept.

    Raises:
        ValidationError: completion_notes is not a string.
        NotFoundError: unknown task.
        InvalidStateError: task already completed.
        BlockedError: prerequisite not completed.
        PersistenceError: step 1 could not be committed.
    """
    completion_notes = clean_text(completion_notes, "completion_notes") or None

    with unit_of_work("complete_task"):
        task = db.session.execute(
            select(Task).where(Task.id == task_id).with_for_update()
        ).scalar_one_or_none()
        if not task:
            raise NotFoundError(resource="Task", resource_id=task_id)
        if task.is_completed:
            raise InvalidStateError("Task is already completed")

        prereq = task.depends_on
        if prereq is not None and not prereq.is_completed:
            raise BlockedError(prereq.title, prereq.id)

        task.status = "completed"
        task.completed_at = datetime.now(timezone.utc)
        task.completion_notes = completion_notes
        _log_task(
            task, "task_completed",
            {"title": task.title, "type": task.type},
            actor="human" if task.assignee == "human" else "system",
        )

    logger.info("Task completed id=%s campaign=%s", task.id, task.campaign_id)

    result = TaskCompletionResult(task=task)
    try:
        result.campaign_reset = (
            campaign_lifecycle.auto_advance_on_task_completion(task.campaign_id) is not None
        )
    except PersistenceError as exc:
        logger.error("Auto-advance failed after completing task %s: %s", task.id, exc)
        result.follow_up_error = exc
    return result


# ── Partial update ───────────────────────────────────────────────────────────


def update_task(task_id: str, changes: TaskUpdate) -> Task:
    """
    Apply the fields present on *changes*.

    Setting ``status="completed"`` here stamps ``completed_at`` without the
    prerequisite check and without triggering the campaign auto-advance.
    Use :func:`complete_task` for the gated path.
    """
    task = get_task(task_id)
    present = changes.present()

    values = {}
    for key, value in present.items():
        if key == "title":
            value = clean_text(value, "title")
            if not value:
                raise ValidationError("Task title cannot be blank", details={"title": "required"})
        elif key == "priority":
            try:
                value = DEFAULT_PRIORITY if value is None else int(value)
            except (TypeError, ValueError):
                raise ValidationError("priority must be an integer", details={"priority": value})
        elif key in ("description", "instructions"):
            value = clean_text(value, key) or None
        elif key == "due_date":
            value = parse_date_field(value, "due_date")
        elif key == "status":
            one_of(value, TASK_STATUSES, "status", f"Invalid task status: {value}")
        values[key] = value

    with unit_of_work("update_task"):
        for key, value in values.items():
            setattr(task, key, value)
        if values.get("status") == "completed":
            task.completed_at = datetime.now(timezone.utc)
        _log_task(task, "task_updated", {"changes": list(values)})
    return task


# ── Block ────────────────────────────────────────────────────────────────────


def block_task(task_id: str, reason: str) -> Task:
    """
    Mark a task blocked and open a warning escalation on its campaign.

    Raises:
        ValidationError: reason missing.
        NotFoundError: unknown task.
        InvalidStateError: the task is already completed.
    """
    reason = clean_text(reason, "reason")
    if not reason:
        raise ValidationError("Reason is required when blocking a task", details={"reason": "required"})

    with unit_of_work("block_task"):
        task = get_task(task_id)
        if task.is_completed:
            raise InvalidStateError("Cannot block a completed task")

        task.status = "blocked"
        task.completion_notes = f"BLOCKED: {reason}"
        db.session.add(Escalation(
            campaign_id=task.campaign_id,
            type="persistent_failure",
            severity="warning",
            title=f"Task Blocked: {task.title}",
            description=reason,
            status="open",
        ))
        _log_task(task, "task_blocked", {"title": task.title, "reason": reason})

    logger.warning("Task blocked id=%s reason=%s", task.id, reason)
    return task
