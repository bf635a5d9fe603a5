"""
Exception types for the check-in core.

Every failure in this package is local and recoverable: a rejected user
action, a lookup for something that no longer exists, or an async result
that arrived too late to matter.
"""


class GymlyError(Exception):
    """Base class for all gymly errors."""

    pass


class ValidationError(GymlyError):
    """Raised when a user action is rejected (missing gym, empty muscle selection, bad time)."""

    pass


class NotFoundError(GymlyError):
    """Raised when a specific record (gym id, plan id) was asked for and does not exist."""

    pass


class StaleResultError(GymlyError):
    """
    Raised internally when an async lookup or tick resolves after its
    originating generation was superseded.

    Never surfaces to callers; the task that raised it simply ends.
    """

    def __init__(self, generation: int, current: int):
        super().__init__(f"stale result from generation {generation} (current {current})")
        self.generation = generation
        self.current = current
