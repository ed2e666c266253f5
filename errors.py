class BookingServiceError(Exception):
    """
    Raised by a leg service (local taxi service or remote booking client)
    when a create or delete call does not succeed.
    `kind` is the machine-readable failure class carried into LegFailure /
    CompensationFailure values by the orchestrator.
    """

    kind = "internal_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidRequest(BookingServiceError):
    kind = "invalid_request"


class Conflict(BookingServiceError):
    kind = "conflict"


class RemoteUnavailable(BookingServiceError):
    kind = "remote_unavailable"


class ProtocolError(BookingServiceError):
    kind = "protocol_error"


class InternalError(BookingServiceError):
    kind = "internal_error"


# Failure kinds that are the caller's fault (reported as 400).
CLIENT_ERROR_KINDS = (InvalidRequest.kind, Conflict.kind)


class NotFound(LookupError):
    """No composite booking with the given id."""


class StoreError(Exception):
    """The composite booking store could not complete a write."""
