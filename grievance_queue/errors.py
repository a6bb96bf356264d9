"""Error types for queue access and complaint assignment."""
from typing import Optional


class QueueError(Exception):
    """Base class for queue store failures."""


class QueueConnectionError(QueueError):
    """The queue store could not be reached at connect time."""


class StoreError(QueueError):
    """A list operation failed after the connection was established."""


class SerializationError(QueueError):
    """An item could not be encoded as JSON before a push."""


class MalformedPayloadError(ValueError):
    """A stored element is not valid JSON."""

    def __init__(self, raw: str, reason: str = ""):
        self.raw = raw
        super().__init__(f"Malformed queue payload: {reason or raw[:80]!r}")


class MissingFieldError(ValueError):
    """A complaint lacks a field required for routing."""

    def __init__(self, field: str, complaint_id: Optional[str] = None):
        self.field = field
        self.complaint_id = complaint_id
        super().__init__(f"Complaint {complaint_id} missing {field}")


class OutOfScopeError(ValueError):
    """A complaint's municipality is not served by this worker."""

    def __init__(self, municipality: str, complaint_id: Optional[str] = None):
        self.municipality = municipality
        self.complaint_id = complaint_id
        super().__init__(f"Complaint {complaint_id} has unserved municipality: {municipality}")


class AssignmentCallFailure(Exception):
    """The assignment service rejected the call or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
