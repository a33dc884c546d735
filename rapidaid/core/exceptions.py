"""
Error taxonomy for the dispatch core.

Engines raise these; routes translate them to HTTP responses.
Nothing in the core retries on any of them.
"""

from typing import Optional


class RapidAidError(Exception):
    """Base class for all dispatch-core errors."""


class ReportValidationError(RapidAidError):
    """Missing or invalid coordinate/type on an incoming report."""


class NotFoundError(RapidAidError):
    """A referenced record does not exist."""


class AlertNotFound(NotFoundError):
    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} not found")


class FacilityNotFound(NotFoundError):
    def __init__(self, facility_id: str):
        self.facility_id = facility_id
        super().__init__(f"Facility {facility_id} not found")


class NoFacilityAvailable(NotFoundError):
    """No active facility of the requested type exists."""

    def __init__(self, facility_type: str):
        self.facility_type = facility_type
        super().__init__(f"No active {facility_type} facilities found")


class DuplicateReporter(RapidAidError):
    """The user already appears in the alert's reporter list."""

    def __init__(self, alert_id: str, user_id: str):
        self.alert_id = alert_id
        self.user_id = user_id
        super().__init__(f"User {user_id} already reported alert {alert_id}")


class InvalidTransition(RapidAidError):
    """Lifecycle guard violation."""

    def __init__(self, alert_id: str, from_status: str, to_status: str, allowed: Optional[list] = None):
        self.alert_id = alert_id
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = allowed or []
        super().__init__(
            f"Invalid status transition for alert {alert_id}: {from_status} → {to_status}. "
            f"Allowed transitions from {from_status}: {self.allowed}"
        )


class StoreError(RapidAidError):
    """Persistence backend failure."""


class NotifierError(RapidAidError):
    """Push delivery failure. Never escapes the notifier boundary."""
