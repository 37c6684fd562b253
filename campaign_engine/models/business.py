"""
Campaign Engine
Tenant domain models.

Models:
    - Business: tenant/owner of playbooks and campaigns
    - Playbook: named template owned by a Business; campaigns hang off it

Architecture chain: Business → Playbook → Campaign → Task / Content / Escalation
"""

from campaign_engine.models import _iso, _utcnow, _uuid, db


# ── Constants ────────────────────────────────────────────────────────────────

PLAYBOOK_STATUSES = {"draft", "active", "archived"}


class Business(db.Model):
    """A tenant. ``slug`` is globally unique and URL-safe."""

    __tablename__ = "businesses"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    website_url = db.Column(db.String(500), nullable=True)
    brand_colors = db.Column(db.JSON, nullable=True, comment='{"primary": "#6A1A19", …}')
    settings = db.Column(db.JSON, nullable=True, comment="Opaque key-value settings")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    playbooks = db.relationship(
        "Playbook", backref="business", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "website_url": self.website_url,
            "brand_colors": self.brand_colors,
            "settings": self.settings,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Business {self.slug}>"


class Playbook(db.Model):
    """Campaign template container. Only ``business_id`` matters to the lifecycle."""

    __tablename__ = "playbooks"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    business_id = db.Column(
        db.String(36),
        db.ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    version = db.Column(db.Integer, default=1)
    status = db.Column(db.String(20), default="draft", comment="draft | active | archived")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    campaigns = db.relationship(
        "Campaign", backref="playbook", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "version": self.version,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Playbook {self.name}>"
