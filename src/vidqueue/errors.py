"""Custom exceptions for vidqueue."""


class VidQueueError(Exception):
    """Base exception for vidqueue."""

    pass


class ValidationError(VidQueueError):
    """Submitted URL or request body is not acceptable."""

    pass


class NotFoundError(VidQueueError):
    """Unknown job id or artifact."""

    pass


class StateConflictError(VidQueueError):
    """Operation not allowed in the job's current status."""

    pass


class ExtractionFailure(VidQueueError):
    """The extraction tool failed or produced no artifact."""

    pass


class StorageFailure(VidQueueError):
    """Job store operation failed."""

    pass
