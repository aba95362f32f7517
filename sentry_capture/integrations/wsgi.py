from sentry_capture.consts import VERSION
from sentry_capture.event import SdkInfo
from sentry_capture.utils import logger, safe_repr

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any
    from typing import Callable
    from typing import Dict
    from typing import Iterable
    from typing import Iterator
    from typing import Optional

    from sentry_capture.builder import EventBuilder
    from sentry_capture.client import Client


# The key under which the builder of the current request is stored in the
# WSGI environ. Applications can enrich the event through it before an
# exception escapes.
EVENT_BUILDER_KEY = "sentry_capture.event_builder"

LOGGER_NAME = "sentry_capture.wsgi"

SDK_INFO = SdkInfo(name="sentry-capture.wsgi", version=VERSION)


def wsgi_decoding_dance(s, charset="utf-8", errors="replace"):
    # type: (str, str, str) -> str
    return s.encode("latin1").decode(charset, errors)


def get_request_path(environ):
    # type: (Dict[str, Any]) -> str
    script_name = environ.get("SCRIPT_NAME", "").rstrip("/")
    path_info = environ.get("PATH_INFO", "").lstrip("/")
    return wsgi_decoding_dance("%s/%s" % (script_name, path_info))


def get_event_builder(environ):
    # type: (Dict[str, Any]) -> Optional[EventBuilder]
    """The event builder of the request the environ belongs to, if any."""
    return environ.get(EVENT_BUILDER_KEY)


class SentryWsgiMiddleware(object):
    """Reports exceptions escaping a WSGI application.

    Each request gets its own event builder, stored in the environ under
    `EVENT_BUILDER_KEY`. When the application raises, either while being
    called or while its response is iterated, the exception is attached to
    the builder and sent. The original exception is always re-raised; a
    failure to report it is logged and otherwise ignored.
    """

    __slots__ = ("app", "client")

    def __init__(self, app, client):
        # type: (Callable[[Dict[str, Any], Callable[..., Any]], Any], Client) -> None
        self.app = app
        self.client = client

    def __call__(self, environ, start_response):
        # type: (Dict[str, Any], Callable[..., Any]) -> Any
        builder = self._create_event_builder(environ)
        environ[EVENT_BUILDER_KEY] = builder

        try:
            response = self.app(environ, start_response)
        except Exception as e:
            self._capture_exception(builder, e)
            raise

        return _CapturingResponse(self, builder, response)

    def _create_event_builder(self, environ):
        # type: (Dict[str, Any]) -> EventBuilder
        builder = self.client.create_event_builder()
        builder.sdk = SDK_INFO
        if not (builder.logger or "").strip():
            builder.logger = LOGGER_NAME
        builder.culprit = "%s %s" % (
            environ.get("REQUEST_METHOD", "").upper(),
            get_request_path(environ),
        )
        return builder

    def _capture_exception(self, builder, error):
        # type: (EventBuilder, BaseException) -> None
        if self.client.dsn is None:
            return

        try:
            builder.set_exception(error)
            builder.capture()
        except Exception:
            logger.error(
                "Exception during communication with Sentry, the following "
                "exception was thus NOT reported to Sentry: %s",
                safe_repr(error),
                exc_info=True,
            )


class _CapturingResponse(object):
    """Wraps the response iterable so that exceptions raised while it is
    consumed are reported as well."""

    __slots__ = ("_middleware", "_builder", "_response")

    def __init__(self, middleware, builder, response):
        # type: (SentryWsgiMiddleware, EventBuilder, Iterable[bytes]) -> None
        self._middleware = middleware
        self._builder = builder
        self._response = response

    def __iter__(self):
        # type: () -> Iterator[bytes]
        iterator = iter(self._response)

        while True:
            try:
                chunk = next(iterator)
            except StopIteration:
                break
            except Exception as e:
                self._middleware._capture_exception(self._builder, e)
                raise

            yield chunk

    def close(self):
        # type: () -> None
        close = getattr(self._response, "close", None)
        if close is None:
            return

        try:
            close()
        except Exception as e:
            self._middleware._capture_exception(self._builder, e)
            raise
