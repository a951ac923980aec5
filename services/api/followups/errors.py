"""Domain errors raised by the follow-up core.

Every error carries a user-facing ``message``; none of them is fatal. Routers
translate them into HTTP responses, background loops log them and move on.
"""

import uuid


class FollowUpError(Exception):
    """Base class for follow-up domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidActionError(FollowUpError):
    """Input rejected before any store call (missing reason, bad due time...)."""


class PersistenceError(FollowUpError):
    """The store call failed. Local state is unchanged and nothing is retried."""


class FollowUpNotFoundError(FollowUpError):
    """The follow-up no longer exists or is not visible to the viewer."""

    def __init__(self, follow_up_id: uuid.UUID) -> None:
        super().__init__("Follow-up not found")
        self.follow_up_id = follow_up_id
