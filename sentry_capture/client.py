import os
import random

from sentry_capture.builder import EventBuilder
from sentry_capture.consts import DEFAULT_OPTIONS, ClientConstructor
from sentry_capture.debug import client_debug
from sentry_capture.event import EventDefaults
from sentry_capture.exceptions import InvalidSampleRateError
from sentry_capture.transport import HttpTransport
from sentry_capture.utils import Dsn, logger

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any
    from typing import Dict
    from typing import Optional
    from typing import Union

    from sentry_capture._types import ErrorLike
    from sentry_capture.event import Event, Level


def _get_options(*args, **kwargs):
    # type: (*Optional[str], **Any) -> Dict[str, Any]
    if args and (isinstance(args[0], (str, bytes, Dsn)) or args[0] is None):
        dsn = args[0]  # type: Optional[Union[str, bytes, Dsn]]
        args = args[1:]
    else:
        dsn = None

    if len(args) > 1:
        raise TypeError("Only a single positional argument is expected")

    rv = dict(DEFAULT_OPTIONS)
    options = dict(*args, **kwargs)
    if dsn is not None and options.get("dsn") is None:
        options["dsn"] = dsn

    for key, value in options.items():
        if key not in rv:
            raise TypeError("Unknown option %r" % (key,))
        rv[key] = value

    if rv["dsn"] is None:
        rv["dsn"] = os.environ.get("SENTRY_DSN")

    if isinstance(rv["dsn"], bytes):
        rv["dsn"] = rv["dsn"].decode("utf-8")

    return rv


def _check_sample_rate(sample_rate):
    # type: (Any) -> float
    if isinstance(sample_rate, bool) or not isinstance(sample_rate, (int, float)):
        raise InvalidSampleRateError(
            "sample rate must be a number, got %r" % (sample_rate,)
        )
    if not 0 <= sample_rate <= 1:
        raise InvalidSampleRateError(
            "sample rate must be in the [0, 1] interval, got %r" % (sample_rate,)
        )
    return float(sample_rate)


class _Client(object):
    """The client creates event builders and sends the events they produce
    to Sentry. It takes the client options as keyword arguments and
    optionally the DSN as first argument.

    A client without a DSN is disabled: it never talks to the network and
    every capture returns an empty string.
    """

    def __init__(self, *args, **kwargs):
        # type: (*Optional[str], **Any) -> None
        self.options = options = get_options(*args, **kwargs)  # type: ignore

        with client_debug(options["debug"]):
            self.sample_rate = _check_sample_rate(options["sample_rate"])
            self.defaults = options["defaults"] or EventDefaults()

            dsn = options["dsn"]
            if isinstance(dsn, Dsn) or (dsn and dsn.strip()):
                self.transport = HttpTransport(
                    dsn, options
                )  # type: Optional[HttpTransport]
                logger.debug("Sending events to %s", self.transport.parsed_dsn.host)
            else:
                self.transport = None
                logger.warning(
                    "No DSN configured, the Sentry client has been disabled "
                    "and events won't be captured"
                )

    @property
    def dsn(self):
        # type: () -> Optional[Dsn]
        """The parsed DSN, or `None` if the client is disabled."""
        if self.transport is None:
            return None
        return self.transport.parsed_dsn

    def create_event_builder(self):
        # type: () -> EventBuilder
        """Returns a new builder prepopulated with a copy of the defaults."""
        defaults = self.defaults
        builder = EventBuilder(self)
        builder.logger = defaults.logger
        builder.level = defaults.level
        builder.server_name = defaults.server_name
        builder.release = defaults.release
        builder.environment = defaults.environment
        builder.tags = dict(defaults.tags)
        builder.modules = dict(defaults.modules)
        builder.extra = dict(defaults.extra)
        builder.contexts = {
            key: dict(context) for key, context in defaults.contexts.items()
        }
        return builder

    def _should_send(self):
        # type: () -> bool
        if self.sample_rate < 1.0 and random.random() >= self.sample_rate:
            return False

        return True

    def send_event(self, event):
        # type: (Event) -> str
        """Sends a built event.

        Returns the id Sentry assigned to the event, or an empty string if
        the client is disabled or the event was sampled out. Raises
        :py:class:`sentry_capture.exceptions.TransportError` if Sentry
        rejects the event.
        """
        if self.transport is None:
            return ""

        with client_debug(self.options["debug"]):
            if not self._should_send():
                logger.info("Event %s was dropped by sampling", event.event_id)
                return ""

            return self.transport.send(event)

    def capture_exception(self, error=None):
        # type: (Optional[ErrorLike]) -> str
        """Captures an exception, by default the one currently being handled."""
        if self.transport is None:
            return ""

        builder = self.create_event_builder()
        builder.set_exception(error)
        return builder.capture()

    def capture_message(self, message, *params, **kwargs):
        # type: (str, *Any, **Optional[Union[Level, str, int]]) -> str
        """Captures a message. `params` are `%`-interpolated into `message`;
        the level can be passed as the `level` keyword argument."""
        if self.transport is None:
            return ""

        level = kwargs.pop("level", None)
        if kwargs:
            raise TypeError("Unexpected arguments %r" % (sorted(kwargs),))

        builder = self.create_event_builder()
        if level is not None:
            builder.level = level
        builder.set_message(message, *params)
        return builder.capture()

    def close(self):
        # type: () -> None
        """Releases the connections of the client's pool."""
        if self.transport is not None:
            self.transport.close()

    def __enter__(self):
        # type: () -> _Client
        return self

    def __exit__(self, exc_type, exc_value, tb):
        # type: (Any, Any, Any) -> None
        self.close()


if TYPE_CHECKING:
    # Make mypy, PyCharm and other static analyzers think `get_options` is a
    # type to have nicer autocompletion for params.
    #
    # Use `ClientConstructor` to define the argument types of `Client` and
    # `Dict[str, Any]` to tell static analyzers about the return type.

    class get_options(ClientConstructor, Dict[str, Any]):  # noqa: N801
        pass

    class Client(ClientConstructor, _Client):
        pass

else:
    # Alias `get_options` for actual usage. Go through the lambda indirection
    # to throw PyCharm off of the weakly typed signature (it would otherwise
    # discover both the weakly typed signature of `_Client` and our faked
    # `ClientConstructor` type).

    get_options = (lambda: _get_options)()
    Client = (lambda: _Client)()
