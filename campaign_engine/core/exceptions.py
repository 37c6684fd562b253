"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register one handler per type and
translate them into the standard JSON error envelope. Every class carries a
stable ``kind`` tag that survives into the HTTP response so callers can
branch on it without parsing messages.

Usage:
    from campaign_engine.core.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError(resource="Campaign", resource_id=campaign_id)
    raise InvalidTransitionError("Campaign cannot be launched from live status")
"""


class CampaignEngineError(Exception):
    """Base class for every error the service layer reports to its callers."""

    kind = "error"


class NotFoundError(CampaignEngineError):
    """Raised when a referenced entity does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Campaign", "Task").
        resource_id: The PK that was looked up.
    """

    kind = "not_found"

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(CampaignEngineError):
    """Raised when input is well-formed but violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    kind = "validation"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(CampaignEngineError):
    """Raised when an operation would duplicate a unique value.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    kind = "conflict"

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class InvalidTransitionError(CampaignEngineError):
    """Raised when a requested status change violates a transition table or gate.

    The message always names the unmet condition: the source status, the
    pending task titles, or the missing content.

    Args:
        message: Human-readable explanation.
        current_status: Status the entity was in when the check ran.
    """

    kind = "invalid_transition"

    def __init__(self, message: str, current_status: str | None = None) -> None:
        self.current_status = current_status
        super().__init__(message)


class InvalidStateError(CampaignEngineError):
    """Raised when an entity is already in a state that forbids the operation."""

    kind = "invalid_state"


class BlockedError(CampaignEngineError):
    """Raised when a task is completed while its prerequisite is still open.

    Args:
        blocking_title: Title of the prerequisite task.
        blocking_id: PK of the prerequisite task.
    """

    kind = "blocked"

    def __init__(self, blocking_title: str, blocking_id: str | None = None) -> None:
        self.blocking_title = blocking_title
        self.blocking_id = blocking_id
        super().__init__(
            f'Cannot complete: dependent task "{blocking_title}" is not completed'
        )


class PersistenceError(CampaignEngineError):
    """Raised when a database write fails, including an activity log append.

    Args:
        operation: Short name of the unit of work that failed.
        cause: The underlying driver/ORM exception, if any.
    """

    kind = "persistence_failure"

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        self.operation = operation
        self.cause = cause
        msg = f"Persistence failure during {operation}"
        if cause is not None:
            msg += f": {cause.__class__.__name__}"
        super().__init__(msg)
