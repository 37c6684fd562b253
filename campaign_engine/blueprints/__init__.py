"""
Campaign Engine
Blueprint registry and shared request helpers.
"""

from flask import request


def json_body() -> dict | None:
    """Return the JSON object body, ``{}`` when empty, ``None`` when not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def paginate_query(query, default_per_page=50, max_per_page=200):
    """Apply page/per_page pagination to a Flask-SQLAlchemy query.

    Query params:
        page     — page number (default 1)
        per_page — items per page (default 50, capped at max_per_page)

    Returns:
        flask_sqlalchemy Pagination object
    """
    page = max(1, request.args.get("page", 1, type=int))
    per_page = min(max_per_page, max(1, request.args.get("per_page", default_per_page, type=int)))
    return query.paginate(page=page, per_page=per_page, error_out=False)
