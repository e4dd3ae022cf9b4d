"""Error taxonomy shared by the calendar modules and the routes."""


class PlannerError(Exception):
    """Base class for errors surfaced to the user as a notice."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PlannerError):
    """A draft or field set is incomplete or malformed.

    Raised before anything reaches the store; never triggers a refetch.
    """


class StoreError(PlannerError):
    """A read or write against the event store failed."""


class EventNotFound(StoreError):
    """The event does not exist in the caller's scope."""

    def __init__(self, event_id):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class PermissionDenied(StoreError):
    """The caller has no identity to scope the operation to."""


class AuthError(PlannerError):
    """Sign-in or sign-out failed."""


class BusyError(PlannerError):
    """Another mutating action for the same user is still in flight."""


class InvalidTransition(PlannerError):
    """An edit session action was requested from a state that does not allow it."""
