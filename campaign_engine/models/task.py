"""
Campaign Engine
Task domain model.

Models:
    - Task: a unit of work on a campaign, done by a human or by the system

Dependencies are a single optional back-reference (``depends_on_id``):
each task has at most one prerequisite and any number of dependents, so
the tasks of a campaign form a forest of chains rather than a general DAG.
"""

from campaign_engine.models import _iso, _utcnow, _uuid, db


# ── Constants ────────────────────────────────────────────────────────────────

TASK_ASSIGNEES = {"human", "system"}

# Declaration order doubles as the sort order used by list_tasks.
TASK_STATUSES = ("pending", "in_progress", "completed", "blocked")

DEFAULT_PRIORITY = 5

# Task sets generated when a campaign is approved.
DEFAULT_HUMAN_TASKS = (
    {
        "type": "review_content",
        "title": "Review Generated Content",
        "description": "Review all AI-generated content for brand voice and accuracy",
        "priority": 8,
    },
    {
        "type": "upload_images",
        "title": "Upload Campaign Images",
        "description": "Upload images for content that needs visuals",
        "priority": 7,
    },
    {
        "type": "setup_meta",
        "title": "Configure Meta Ads Manager",
        "description": "Set up ad sets and targeting in Meta Business Suite",
        "priority": 9,
    },
)

DEFAULT_SYSTEM_TASKS = (
    {
        "type": "generate_content",
        "title": "Generate Initial Content Batch",
        "description": "AI generates content variations from playbook",
        "priority": 10,
    },
    {
        "type": "match_images",
        "title": "Match Images to Content",
        "description": "Auto-match library images to generated content",
        "priority": 6,
    },
    {
        "type": "generate_utm",
        "title": "Generate UTM Parameters",
        "description": "Create tracking parameters for all content",
        "priority": 5,
    },
)


class Task(db.Model):
    """
    Work item gating campaign progress.

    ``completed_at`` is stamped by both completion paths; only
    ``complete_task`` enforces the prerequisite gate.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("idx_tasks_campaign_assignee_status", "campaign_id", "assignee", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    campaign_id = db.Column(
        db.String(36),
        db.ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assignee = db.Column(db.String(10), nullable=False, comment="human | system")
    type = db.Column(db.String(100), nullable=False, default="custom")
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    instructions = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    priority = db.Column(db.Integer, nullable=False, default=DEFAULT_PRIORITY)
    depends_on_id = db.Column(
        db.String(36),
        db.ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    due_date = db.Column(db.Date, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completion_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    depends_on = db.relationship(
        "Task", remote_side=[id], backref=db.backref("dependents", lazy="dynamic"),
    )

    @property
    def is_completed(self):
        return self.status == "completed"

    def to_dict(self, include_links=False):
        d = {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "assignee": self.assignee,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "instructions": self.instructions,
            "status": self.status,
            "priority": self.priority,
            "depends_on_id": self.depends_on_id,
            "due_date": _iso(self.due_date),
            "completed_at": _iso(self.completed_at),
            "completion_notes": self.completion_notes,
            "created_at": _iso(self.created_at),
        }
        if include_links:
            prereq = self.depends_on
            d["depends_on"] = (
                {"id": prereq.id, "title": prereq.title, "status": prereq.status}
                if prereq else None
            )
            d["dependents"] = [
                {"id": t.id, "title": t.title, "status": t.status}
                for t in self.dependents.order_by(Task.created_at)
            ]
        return d

    def __repr__(self):
        return f"<Task {self.title} [{self.assignee}/{self.status}]>"
