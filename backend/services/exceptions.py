"""Custom exceptions for job dispatch and assignment."""


class DispatchValidationError(Exception):
    """Raised when dispatch input is malformed; always raised before any write."""

    def __init__(self, message="Validation failed", details=None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class UpstreamUnavailableError(Exception):
    """Raised when the GeoIndex or the job request store cannot be reached."""
    pass


class JobRequestNotFoundError(Exception):
    """Raised when a job request cannot be found."""
    pass


class TechnicianNotFoundError(Exception):
    """Raised when a technician referenced by a request has no profile."""
    pass


class TechnicianVanishedError(Exception):
    """Raised when a candidate selected by search no longer exists at commit time."""

    def __init__(self, technician_id, message=None):
        super().__init__(message or f"Assigned technician {technician_id} not found in database")
        self.technician_id = technician_id


class AssignmentConflictError(Exception):
    """Raised when the job request transaction keeps conflicting after all retries."""
    pass
