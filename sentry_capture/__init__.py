from sentry_capture.builder import EventBuilder
from sentry_capture.client import Client
from sentry_capture.event import (
    Breadcrumb,
    Event,
    EventDefaults,
    ExceptionRecord,
    Frame,
    Level,
    Message,
    SdkInfo,
)
from sentry_capture.exceptions import (
    InvalidDsnError,
    InvalidSampleRateError,
    SentryCaptureError,
    TransportError,
)
from sentry_capture.transport import HttpTransport, Request
from sentry_capture.utils import Dsn

from sentry_capture.consts import VERSION  # noqa

__all__ = [  # noqa
    "Breadcrumb",
    "Client",
    "Dsn",
    "Event",
    "EventBuilder",
    "EventDefaults",
    "ExceptionRecord",
    "Frame",
    "HttpTransport",
    "InvalidDsnError",
    "InvalidSampleRateError",
    "Level",
    "Message",
    "Request",
    "SdkInfo",
    "SentryCaptureError",
    "TransportError",
]

# Initialize the debug support after everything is loaded
from sentry_capture.debug import init_debug_support

init_debug_support()
del init_debug_support
