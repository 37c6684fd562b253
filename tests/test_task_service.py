"""
Task service tests: prerequisite gate, completion workflow, partial update,
ordered listing and blocking.

Dependency model: one optional prerequisite per task (``depends_on_id``),
same campaign, set at creation. ``complete_task`` enforces the gate;
``update_task`` with status=completed does not.
"""

import pytest
from sqlalchemy.exc import OperationalError

from campaign_engine.core.exceptions import (
    BlockedError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from campaign_engine.models import db
from campaign_engine.models.activity import ActivityLog
from campaign_engine.models.business import Business, Playbook
from campaign_engine.models.campaign import Campaign
from campaign_engine.models.escalation import Escalation
from campaign_engine.models.task import Task
from campaign_engine.services import campaign_lifecycle, task_service
from campaign_engine.services.task_service import UNSET, TaskUpdate


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════


def _task(campaign, title="Upload Campaign Images", assignee="human",
          status="pending", priority=5, depends_on=None) -> Task:
    t = Task(
        campaign_id=campaign.id,
        assignee=assignee,
        type="upload_images",
        title=title,
        status=status,
        priority=priority,
        depends_on_id=depends_on.id if depends_on else None,
    )
    db.session.add(t)
    db.session.commit()
    return t


def _reload(task_id) -> Task:
    db.session.expire_all()
    return db.session.get(Task, task_id)


def _log(action, entity_id=None):
    q = ActivityLog.query.filter_by(action=action)
    if entity_id:
        q = q.filter_by(entity_id=entity_id)
    return q.all()


# ═════════════════════════════════════════════════════════════════════════════
# create_task
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateTask:
    def test_creates_pending_with_default_priority(self, campaign):
        t = task_service.create_task(campaign.id, "Shoot photos", "human")
        assert t.status == "pending"
        assert t.priority == 5
        (entry,) = _log("task_created", t.id)
        assert entry.details == {"title": "Shoot photos", "assignee": "human"}

    def test_prerequisite_on_same_campaign(self, campaign):
        first = task_service.create_task(campaign.id, "First", "human")
        second = task_service.create_task(campaign.id, "Second", "human", depends_on_id=first.id)
        assert second.depends_on_id == first.id
        assert [d.id for d in first.dependents] == [second.id]

    def test_prerequisite_on_other_campaign_rejected(self, campaign, playbook):
        other = Campaign(playbook_id=playbook.id, name="Other", status="setup")
        db.session.add(other)
        db.session.commit()
        foreign = _task(other, title="Elsewhere")

        with pytest.raises(ValidationError, match="same campaign"):
            task_service.create_task(campaign.id, "Mine", "human", depends_on_id=foreign.id)

    def test_unknown_prerequisite_rejected(self, campaign):
        with pytest.raises(ValidationError):
            task_service.create_task(campaign.id, "Mine", "human", depends_on_id="nope")

    @pytest.mark.parametrize("assignee", ["robot", "", None])
    def test_invalid_assignee(self, campaign, assignee):
        with pytest.raises(ValidationError):
            task_service.create_task(campaign.id, "X", assignee)

    def test_unknown_campaign(self):
        with pytest.raises(NotFoundError):
            task_service.create_task("missing", "X", "human")

    @pytest.mark.parametrize("kwargs,field", [
        ({"title": 123}, "title"),
        ({"title": "Mine", "description": ["a"]}, "description"),
        ({"title": "Mine", "due_date": "someday"}, "due_date"),
        ({"title": "Mine", "assignee": ["human"]}, "assignee"),
    ])
    def test_rejects_malformed_fields(self, campaign, kwargs, field):
        kwargs.setdefault("assignee", "human")
        with pytest.raises(ValidationError) as exc:
            task_service.create_task(campaign.id, **kwargs)
        assert field in exc.value.details
        assert Task.query.count() == 0



# ═════════════════════════════════════════════════════════════════════════════
# complete_task: prerequisite gate
# ═════════════════════════════════════════════════════════════════════════════


class TestCompleteTask:
    def test_completes_and_logs_with_assignee_actor(self, campaign):
        _task(campaign, title="Keeps campaign open")
        t = _task(campaign, title="Generate UTM Parameters", assignee="system")

        result = task_service.complete_task(t.id, "all links tagged")
        task = _reload(t.id)
        assert task.status == "completed"
        assert task.completed_at is not None
        assert task.completion_notes == "all links tagged"
        assert result.follow_up_error is None

        (entry,) = _log("task_completed", t.id)
        assert entry.actor == "system"
        assert entry.details == {"title": "Generate UTM Parameters", "type": "upload_images"}

    def test_blocked_by_open_prerequisite(self, campaign):
        first = _task(campaign, title="Configure Meta Ads Manager")
        second = _task(campaign, title="Upload Campaign Images", depends_on=first)

        with pytest.raises(BlockedError) as exc:
            task_service.complete_task(second.id)
        assert str(exc.value) == (
            'Cannot complete: dependent task "Configure Meta Ads Manager" is not completed'
        )
        assert exc.value.blocking_id == first.id
        assert _reload(second.id).status == "pending"
        assert _log("task_completed") == []

    @pytest.mark.parametrize("prereq_status", ["pending", "in_progress", "blocked"])
    def test_any_non_completed_prerequisite_blocks(self, campaign, prereq_status):
        first = _task(campaign, title="First", status=prereq_status)
        second = _task(campaign, title="Second", depends_on=first)
        with pytest.raises(BlockedError):
            task_service.complete_task(second.id)

    def test_completing_prerequisite_unlocks_dependent(self, campaign):
        first = _task(campaign, title="First")
        second = _task(campaign, title="Second", depends_on=first)

        task_service.complete_task(first.id)
        task_service.complete_task(second.id)
        assert _reload(second.id).status == "completed"

    def test_already_completed_is_idempotent_failure(self, campaign):
        _task(campaign, title="Other")
        t = _task(campaign)
        task_service.complete_task(t.id)
        completed_at = _reload(t.id).completed_at

        with pytest.raises(InvalidStateError, match="already completed"):
            task_service.complete_task(t.id, "again")

        task = _reload(t.id)
        assert task.completed_at == completed_at
        assert task.completion_notes is None
        assert len(_log("task_completed", t.id)) == 1

    def test_not_found(self):
        with pytest.raises(NotFoundError):
            task_service.complete_task("missing")

    def test_log_failure_keeps_task_open(self, campaign, monkeypatch):
        t = _task(campaign)

        def _boom(**kwargs):
            raise PersistenceError("activity append (task_completed)")

        monkeypatch.setattr(task_service, "append_activity", _boom)
        with pytest.raises(PersistenceError):
            task_service.complete_task(t.id)
        assert _reload(t.id).status == "pending"


# ═════════════════════════════════════════════════════════════════════════════
# complete_task: follow-up step
# ═════════════════════════════════════════════════════════════════════════════


class TestCompletionFollowUp:
    def test_follow_up_failure_is_reported_not_raised(self, campaign, monkeypatch):
        campaign.status = "live"
        db.session.commit()
        t = _task(campaign)

        def _db_down(**kwargs):
            raise OperationalError("INSERT INTO activity_log", {}, Exception("disk I/O error"))

        # Only the campaign side of the workflow loses its database.
        monkeypatch.setattr(campaign_lifecycle, "append_activity", _db_down)
        result = task_service.complete_task(t.id)

        assert isinstance(result.follow_up_error, PersistenceError)
        assert result.campaign_reset is False
        assert _reload(t.id).status == "completed"
        db.session.expire_all()
        assert db.session.get(Campaign, campaign.id).status == "live"
        assert len(_log("task_completed", t.id)) == 1

    def test_no_reset_reported_when_human_work_remains(self, campaign):
        t = _task(campaign, title="A")
        _task(campaign, title="B")
        result = task_service.complete_task(t.id)
        assert result.campaign_reset is False
        assert result.follow_up_error is None


# ═════════════════════════════════════════════════════════════════════════════
# update_task: partial semantics
# ═════════════════════════════════════════════════════════════════════════════


class TestUpdateTask:
    def test_unset_fields_are_untouched(self, campaign):
        t = _task(campaign, priority=7)
        t.description = "keep me"
        db.session.commit()

        task_service.update_task(t.id, TaskUpdate(title="Renamed"))
        task = _reload(t.id)
        assert task.title == "Renamed"
        assert task.description == "keep me"
        assert task.priority == 7

        (entry,) = _log("task_updated", t.id)
        assert entry.details == {"changes": ["title"]}

    def test_none_clears_optional_field(self, campaign):
        t = _task(campaign)
        t.description = "old"
        db.session.commit()
        task_service.update_task(t.id, TaskUpdate(description=None))
        assert _reload(t.id).description is None

    def test_from_dict_distinguishes_absent_from_null(self):
        update = TaskUpdate.from_dict({"due_date": None, "bogus": 1})
        assert update.due_date is None
        assert update.title is UNSET
        assert update.present() == {"due_date": None}

    def test_status_completed_bypasses_gate(self, campaign):
        first = _task(campaign, title="First")
        second = _task(campaign, title="Second", depends_on=first)

        task_service.update_task(second.id, TaskUpdate(status="completed"))
        task = _reload(second.id)
        assert task.status == "completed"
        assert task.completed_at is not None
        assert _reload(first.id).status == "pending"

    def test_invalid_status_rejected_without_changes(self, campaign):
        t = _task(campaign)
        with pytest.raises(ValidationError):
            task_service.update_task(t.id, TaskUpdate(title="New", status="done"))
        assert _reload(t.id).title == "Upload Campaign Images"
        assert _log("task_updated") == []

    def test_due_date_parsed(self, campaign):
        t = _task(campaign)
        task_service.update_task(t.id, TaskUpdate(due_date="2026-05-01"))
        assert _reload(t.id).to_dict()["due_date"] == "2026-05-01"

    def test_unparseable_due_date_keeps_stored_value(self, campaign):
        t = _task(campaign)
        task_service.update_task(t.id, TaskUpdate(due_date="2026-05-01"))
        with pytest.raises(ValidationError) as exc:
            task_service.update_task(t.id, TaskUpdate(due_date="not-a-date"))
        assert exc.value.details == {"due_date": "not-a-date"}
        assert _reload(t.id).to_dict()["due_date"] == "2026-05-01"

    @pytest.mark.parametrize("cleared", [None, ""])
    def test_empty_due_date_clears(self, campaign, cleared):
        t = _task(campaign)
        task_service.update_task(t.id, TaskUpdate(due_date="2026-05-01"))
        task_service.update_task(t.id, TaskUpdate(due_date=cleared))
        assert _reload(t.id).due_date is None

    @pytest.mark.parametrize("changes,field", [
        (TaskUpdate(title=123), "title"),
        (TaskUpdate(instructions={"step": 1}), "instructions"),
        (TaskUpdate(status=["completed"]), "status"),
    ])
    def test_non_string_values_rejected(self, campaign, changes, field):
        t = _task(campaign)
        with pytest.raises(ValidationError) as exc:
            task_service.update_task(t.id, changes)
        assert field in exc.value.details
        assert _reload(t.id).title == "Upload Campaign Images"
        assert _log("task_updated") == []


    def test_not_found(self):
        with pytest.raises(NotFoundError):
            task_service.update_task("missing", TaskUpdate(title="x"))


# ═════════════════════════════════════════════════════════════════════════════
# list_tasks: ordering and filters
# ═════════════════════════════════════════════════════════════════════════════


class TestListTasks:
    def test_status_rank_then_priority_desc(self, campaign):
        done_hi = _task(campaign, title="done-5", status="completed", priority=5)
        pend_lo = _task(campaign, title="pending-1", priority=1)
        pend_hi = _task(campaign, title="pending-5", priority=5)
        blocked = _task(campaign, title="blocked-9", status="blocked", priority=9)
        working = _task(campaign, title="wip-1", status="in_progress", priority=1)

        ids = [t.id for t in task_service.list_tasks(campaign_id=campaign.id)]
        assert ids == [pend_hi.id, pend_lo.id, working.id, done_hi.id, blocked.id]

    def test_creation_order_breaks_ties(self, campaign):
        a = _task(campaign, title="a")
        b = _task(campaign, title="b")
        assert [t.id for t in task_service.list_tasks(campaign_id=campaign.id)] == [a.id, b.id]

    def test_filters(self, campaign):
        _task(campaign, title="h", assignee="human")
        s = _task(campaign, title="s", assignee="system", status="completed")
        assert [t.id for t in task_service.list_tasks(assignee="system")] == [s.id]
        assert [t.id for t in task_service.list_tasks(status="completed")] == [s.id]

    def test_business_filter_traverses_playbook(self, campaign):
        mine = _task(campaign, title="mine")

        other_biz = Business(name="Other", slug="other")
        db.session.add(other_biz)
        db.session.flush()
        other_pb = Playbook(business_id=other_biz.id, name="PB")
        db.session.add(other_pb)
        db.session.flush()
        other_campaign = Campaign(playbook_id=other_pb.id, name="C")
        db.session.add(other_campaign)
        db.session.commit()
        _task(other_campaign, title="theirs")

        result = task_service.list_tasks(business_id=campaign.business_id)
        assert [t.id for t in result] == [mine.id]


# ═════════════════════════════════════════════════════════════════════════════
# block_task
# ═════════════════════════════════════════════════════════════════════════════


class TestBlockTask:
    def test_blocks_and_opens_escalation(self, campaign):
        t = _task(campaign, title="Configure Meta Ads Manager")
        task_service.block_task(t.id, "Waiting on ad account access")

        task = _reload(t.id)
        assert task.status == "blocked"
        assert task.completion_notes == "BLOCKED: Waiting on ad account access"

        (esc,) = Escalation.query.filter_by(campaign_id=campaign.id).all()
        assert esc.type == "persistent_failure"
        assert esc.severity == "warning"
        assert esc.status == "open"
        assert esc.title == "Task Blocked: Configure Meta Ads Manager"
        assert esc.description == "Waiting on ad account access"

        (entry,) = _log("task_blocked", t.id)
        assert entry.details == {
            "title": "Configure Meta Ads Manager",
            "reason": "Waiting on ad account access",
        }

    def test_reason_required(self, campaign):
        t = _task(campaign)
        with pytest.raises(ValidationError):
            task_service.block_task(t.id, "  ")

    def test_non_string_reason_rejected(self, campaign):
        t = _task(campaign)
        with pytest.raises(ValidationError):
            task_service.block_task(t.id, 404)
        assert _reload(t.id).status == "pending"


    def test_completed_task_cannot_be_blocked(self, campaign):
        t = _task(campaign, status="completed")
        with pytest.raises(InvalidStateError, match="Cannot block a completed task"):
            task_service.block_task(t.id, "late")
        assert Escalation.query.count() == 0
