class SentryCaptureError(Exception):
    """Base class for all errors raised by this library."""


class InvalidDsnError(SentryCaptureError, ValueError):
    """Raised on malformed or incomplete DSNs."""


class InvalidSampleRateError(SentryCaptureError, ValueError):
    """Raised when a sample rate outside of the [0, 1] interval is configured."""


class TransportError(SentryCaptureError):
    """Raised when the ingestion endpoint answers with a non-success status.

    ``status`` is the HTTP status code, ``error`` the diagnostic text sent by
    the server in the ``X-Sentry-Error`` header (empty if there was none).
    """

    def __init__(self, status, error=""):
        # type: (int, str) -> None
        self.status = status
        self.error = error
        SentryCaptureError.__init__(self, status, error)

    def __str__(self):
        # type: () -> str
        if self.error:
            return "%s: %s" % (self.status, self.error)
        return "Unexpected status code: %s" % (self.status,)
