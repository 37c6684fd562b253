"""
Demo data for local development (``flask seed-demo``).

Idempotent: a business whose slug already exists is left alone.
"""

import logging

from sqlalchemy import select

from campaign_engine.models import db
from campaign_engine.models.business import Business
from campaign_engine.services.business_service import create_business, create_playbook

logger = logging.getLogger(__name__)

DEMO_BUSINESSES = (
    {
        "name": "Melissa for Educators",
        "slug": "melissa",
        "description": (
            "Education SaaS platform helping teachers create personalized "
            "learning experiences. $99/year subscription."
        ),
        "website_url": "https://melissaforeducators.com",
        "brand_colors": {
            "primary": "#6A1A19",
            "secondary": "#8B2E2D",
            "accent": "#F7AC13",
            "background": "#FFF8F0",
            "text": "#1A1A1A",
        },
        "settings": {
            "industry": "education",
            "price_point": 99,
            "billing_cycle": "yearly",
            "target_markets": ["United States"],
            "timezone": "America/Chicago",
        },
        "playbook": "Teacher Time-Savers",
    },
    {
        "name": "Vaquero Homes",
        "slug": "vaquero",
        "description": (
            "Custom home builder and real estate developer serving the Texas "
            "market. Premium construction with a focus on quality craftsmanship."
        ),
        "website_url": "https://vaquerohomes.com",
        "brand_colors": {
            "primary": "#2C3E50",
            "secondary": "#34495E",
            "accent": "#E67E22",
            "background": "#FFFFFF",
            "text": "#1A1A1A",
        },
        "settings": {
            "industry": "real_estate",
            "target_markets": ["Texas", "Dallas-Fort Worth", "Austin", "Houston", "San Antonio"],
            "timezone": "America/Chicago",
        },
        "playbook": "Texas Family Homes",
    },
)


def seed_demo_businesses() -> int:
    """Create the demo businesses (each with one playbook). Returns how many were created."""
    created = 0
    for demo in DEMO_BUSINESSES:
        exists = db.session.execute(
            select(Business.id).where(Business.slug == demo["slug"])
        ).scalar_one_or_none()
        if exists:
            logger.info("Demo business %s already present", demo["slug"])
            continue
        data = {k: v for k, v in demo.items() if k != "playbook"}
        business = create_business(data)
        create_playbook(business.id, {"name": demo["playbook"], "status": "active"})
        created += 1
    return created
