"""
Business registry service.

Business rules:
    - name is required (blank → ValidationError)
    - slug defaults to a URL-safe form of the name; an explicit slug is
      normalised the same way
    - slug is globally unique; a collision raises ConflictError (409)
    - every creation appends one activity entry in the same commit

Usage:
    from campaign_engine.services.business_service import create_business

    biz = create_business({"name": "Joe's Diner!!"})   # slug "joe-s-diner"
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from campaign_engine.core.exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from campaign_engine.models import db
from campaign_engine.models.activity import append_activity
from campaign_engine.models.business import PLAYBOOK_STATUSES, Business, Playbook
from campaign_engine.utils.helpers import clean_text, one_of, unit_of_work

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to ``-``, strip edge dashes.

    >>> slugify("Joe's Diner!!")
    'joe-s-diner'
    """
    return _NON_ALNUM.sub("-", (value or "").lower()).strip("-")


def get_business(business_id: str) -> Business:
    business = db.session.get(Business, business_id) if isinstance(business_id, str) else None
    if not business:
        raise NotFoundError(resource="Business", resource_id=business_id)
    return business


def create_business(data: dict) -> Business:
    """Create a Business from a request payload.

    Args:
        data: ``name`` (required), ``slug``, ``description``, ``website_url``,
            ``brand_colors``, ``settings``.

    Returns:
        The committed Business.

    Raises:
        ValidationError: name missing, a field of the wrong type, or slug
            empty after normalisation.
        ConflictError: another business already owns the slug.
    """
    name = clean_text(data.get("name"), "name")
    if not name:
        raise ValidationError("Business name is required", details={"name": "required"})

    slug = slugify(clean_text(data.get("slug"), "slug") or name)
    if not slug:
        raise ValidationError(
            "Business slug must contain at least one letter or digit",
            details={"slug": data.get("slug") or name},
        )

    existing = db.session.execute(
        select(Business.id).where(Business.slug == slug)
    ).scalar_one_or_none()
    for key in ("brand_colors", "settings"):
        if data.get(key) is not None and not isinstance(data[key], dict):
            raise ValidationError(f"{key} must be an object", details={key: data[key]})

    if existing:
        raise ConflictError(resource="Business", field="slug", value=slug)

    business = Business(
        name=name,
        slug=slug,
        description=clean_text(data.get("description"), "description") or None,
        website_url=clean_text(data.get("website_url"), "website_url") or None,
        brand_colors=data.get("brand_colors"),
        settings=data.get("settings"),
    )
    try:
        with unit_of_work("create_business"):
            db.session.add(business)
            db.session.flush()
            append_activity(
                business_id=business.id,
                action="business_created",
                entity_type="business",
                entity_id=business.id,
                details={"name": business.name},
            )
    except PersistenceError as exc:
        # Lost a race on the unique slug index.
        if isinstance(exc.cause, IntegrityError):
            raise ConflictError(resource="Business", field="slug", value=slug) from exc
        raise

    logger.info("Business created id=%s slug=%s", business.id, business.slug)
    return business


def create_playbook(business_id: str, data: dict) -> Playbook:
    """Create a Playbook under *business_id*."""
    business = get_business(business_id)

    name = clean_text(data.get("name"), "name")
    if not name:
        raise ValidationError("Playbook name is required", details={"name": "required"})
    status = one_of(data.get("status") or "draft", PLAYBOOK_STATUSES, "status",
                    f"Invalid playbook status: {data.get('status')}")

    playbook = Playbook(business_id=business.id, name=name, status=status)
    with unit_of_work("create_playbook"):
        db.session.add(playbook)
        db.session.flush()
        append_activity(
            business_id=business.id,
            action="playbook_created",
            entity_type="playbook",
            entity_id=playbook.id,
            details={"name": playbook.name},
        )
    return playbook
