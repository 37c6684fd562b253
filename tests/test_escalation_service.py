"""
Escalation tracker tests: creation, filtered listing, severity ordering,
and the acknowledge / resolve / dismiss transitions.
"""

import pytest

from campaign_engine.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from campaign_engine.models import db
from campaign_engine.models.activity import ActivityLog
from campaign_engine.models.escalation import ESCALATION_STATUSES, ESCALATION_TRANSITIONS, Escalation
from campaign_engine.services import escalation_service


def _esc(campaign, severity="warning", status="open", title="Spend anomaly") -> Escalation:
    e = Escalation(
        campaign_id=campaign.id,
        type="anomaly_detected",
        severity=severity,
        status=status,
        title=title,
    )
    db.session.add(e)
    db.session.commit()
    return e


class TestCreateEscalation:
    def test_opens_and_logs_as_system(self, campaign):
        esc = escalation_service.create_escalation(
            campaign.id, "budget_depleted", "critical", "Budget gone", "Daily cap hit at 09:00",
        )
        assert esc.status == "open"
        assert esc.resolved_at is None

        entry = ActivityLog.query.filter_by(action="escalation_created").one()
        assert entry.actor == "system"
        assert entry.entity_id == esc.id
        assert entry.business_id == campaign.business_id
        assert entry.details["severity"] == "critical"

    @pytest.mark.parametrize("field,kwargs", [
        ("type", {"type": "weather", "severity": "info", "title": "x"}),
        ("severity", {"type": "anomaly_detected", "severity": "urgent", "title": "x"}),
        ("title", {"type": "anomaly_detected", "severity": "info", "title": "  "}),
        ("title", {"type": "anomaly_detected", "severity": "info", "title": 7}),
        ("type", {"type": ["anomaly_detected"], "severity": "info", "title": "x"}),
        ("description", {"type": "anomaly_detected", "severity": "info", "title": "x", "description": 1}),
    ])
    def test_rejects_invalid_input(self, campaign, field, kwargs):
        with pytest.raises(ValidationError) as exc:
            escalation_service.create_escalation(campaign.id, **kwargs)
        assert field in exc.value.details
        assert Escalation.query.count() == 0

    def test_unknown_campaign(self):
        with pytest.raises(NotFoundError):
            escalation_service.create_escalation("missing", "anomaly_detected", "info", "x")


class TestListEscalations:
    def test_critical_first_then_newest(self, campaign):
        old_warning = _esc(campaign, "warning", title="old warning")
        info = _esc(campaign, "info", title="info")
        critical = _esc(campaign, "critical", title="critical")
        new_warning = _esc(campaign, "warning", title="new warning")

        ids = [e.id for e in escalation_service.list_escalations()]
        assert ids == [critical.id, new_warning.id, old_warning.id, info.id]

    def test_active_means_open_or_acknowledged(self, campaign):
        opened = _esc(campaign, status="open")
        acked = _esc(campaign, status="acknowledged")
        _esc(campaign, status="resolved")
        _esc(campaign, status="dismissed")

        result = {e.id for e in escalation_service.list_escalations(status="active")}
        assert result == {opened.id, acked.id}

    def test_exact_status_and_severity_filters(self, campaign):
        resolved = _esc(campaign, "critical", status="resolved")
        _esc(campaign, "critical", status="open")
        _esc(campaign, "info", status="resolved")

        result = escalation_service.list_escalations(status="resolved", severity="critical")
        assert [e.id for e in result] == [resolved.id]

    def test_campaign_filter(self, campaign, playbook):
        from campaign_engine.models.campaign import Campaign

        other = Campaign(playbook_id=playbook.id, name="Other")
        db.session.add(other)
        db.session.commit()
        mine = _esc(campaign)
        _esc(other)

        result = escalation_service.list_escalations(campaign_id=campaign.id)
        assert [e.id for e in result] == [mine.id]


class TestTransitionEscalation:
    @pytest.mark.parametrize("start,action,end", [
        ("open", "acknowledge", "acknowledged"),
        ("open", "resolve", "resolved"),
        ("open", "dismiss", "dismissed"),
        ("acknowledged", "resolve", "resolved"),
        ("acknowledged", "dismiss", "dismissed"),
    ])
    def test_allowed(self, campaign, start, action, end):
        esc = _esc(campaign, status=start)
        escalation_service.transition_escalation(esc.id, action)
        db.session.expire_all()
        assert db.session.get(Escalation, esc.id).status == end

    @pytest.mark.parametrize("start,action", [
        ("acknowledged", "acknowledge"),
        ("resolved", "acknowledge"),
        ("resolved", "dismiss"),
        ("dismissed", "resolve"),
    ])
    def test_rejected(self, campaign, start, action):
        esc = _esc(campaign, status=start)
        with pytest.raises(InvalidTransitionError) as exc:
            escalation_service.transition_escalation(esc.id, action)
        assert str(exc.value) == f'Cannot {action} an escalation with status "{start}"'
        assert exc.value.current_status == start
        assert ActivityLog.query.count() == 0

    def test_resolve_stamps_resolved_at_and_records_response(self, campaign):
        esc = _esc(campaign)
        escalation_service.transition_escalation(esc.id, "resolve", "Raised the daily cap")

        db.session.expire_all()
        esc = db.session.get(Escalation, esc.id)
        assert esc.resolved_at is not None
        assert esc.human_response == "Raised the daily cap"

        entry = ActivityLog.query.filter_by(action="escalation_resolved").one()
        assert entry.actor == "human"
        assert entry.details == {
            "previous_status": "open",
            "new_status": "resolved",
            "human_response": "Raised the daily cap",
        }

    def test_acknowledge_does_not_stamp_resolved_at(self, campaign):
        esc = _esc(campaign)
        escalation_service.transition_escalation(esc.id, "acknowledge")
        assert db.session.get(Escalation, esc.id).resolved_at is None

    @pytest.mark.parametrize("start", ["open", "acknowledged"])
    def test_dismiss_logs_dismissed(self, campaign, start):
        esc = _esc(campaign, status=start)
        escalation_service.transition_escalation(esc.id, "dismiss", "False alarm")

        entry = ActivityLog.query.filter_by(entity_id=esc.id).one()
        assert entry.action == "escalation_dismissed"
        assert entry.details == {
            "previous_status": start,
            "new_status": "dismissed",
            "human_response": "False alarm",
        }
        assert db.session.get(Escalation, esc.id).resolved_at is None

    @pytest.mark.parametrize("action,logged", [
        ("acknowledge", "escalation_acknowledged"),
        ("resolve", "escalation_resolved"),
        ("dismiss", "escalation_dismissed"),
    ])
    def test_logged_action_names_new_status(self, campaign, action, logged):
        esc = _esc(campaign)
        escalation_service.transition_escalation(esc.id, action)
        assert [e.action for e in ActivityLog.query.all()] == [logged]

    @pytest.mark.parametrize("action", ["", None, "close", ["resolve"], {"action": "resolve"}])
    def test_unknown_action(self, campaign, action):
        esc = _esc(campaign)
        with pytest.raises(ValidationError, match="Action is required"):
            escalation_service.transition_escalation(esc.id, action)

    def test_unknown_escalation(self):
        with pytest.raises(NotFoundError):
            escalation_service.transition_escalation("missing", "resolve")


def test_transition_table_covers_every_status():
    assert set(ESCALATION_TRANSITIONS) == set(ESCALATION_STATUSES)
    for targets in ESCALATION_TRANSITIONS.values():
        assert set(targets) <= set(ESCALATION_STATUSES)
