import itertools

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any
    from typing import Optional
    from typing import Union

    import urllib3

    import sentry_capture
    from sentry_capture._types import SendRequest


VERSION = "0.4.0"

SDK_NAME = "sentry-capture"

# The platform value Sentry uses to pick the right UI components.
PLATFORM = "python"

# Version of the store protocol sent in the auth header.
PROTOCOL_VERSION = 7

DEFAULT_MAX_BREADCRUMBS = 100

# The frames of a traceback are read with this many lines of source context
# around the current line.
SOURCE_CONTEXT_LINES = 5


class ClientConstructor:

    def __init__(
        self,
        dsn=None,  # type: Optional[str]
        *,
        defaults=None,  # type: Optional[sentry_capture.event.EventDefaults]
        sample_rate=1.0,  # type: float
        send_request=None,  # type: Optional[SendRequest]
        timeout=None,  # type: Optional[Union[float, urllib3.Timeout]]
        http_proxy=None,  # type: Optional[str]
        https_proxy=None,  # type: Optional[str]
        ca_certs=None,  # type: Optional[str]
        num_pools=2,  # type: int
        debug=False,  # type: bool
        with_locals=False,  # type: bool
        include_source_context=True,  # type: bool
        max_breadcrumbs=DEFAULT_MAX_BREADCRUMBS,  # type: int
    ):
        # type: (...) -> None
        """Create a client that sends events to Sentry.

        :param dsn: The DSN tells the client where to send the events.

            If this option is `None`, the value of the `SENTRY_DSN` environment
            variable is used. An empty DSN disables the client: nothing is
            ever sent and every capture returns an empty identifier.

        :param defaults: An :py:class:`sentry_capture.event.EventDefaults`
            holding static data (logger, release, tags, ...) that is copied
            into every event builder the client creates.

        :param sample_rate: The fraction of events that are actually sent, in
            the `[0, 1]` interval. `0.25` sends roughly a quarter of them.

        :param send_request: A function that takes a
            :py:class:`sentry_capture.transport.Request` and returns a
            urllib3-style response (`status`, `headers`, `data`). Use it to
            wrap requests in a retry policy or to share a connection pool. By
            default requests go through a pool owned by the client.

        :param timeout: Timeout for requests made by the default pool, either
            seconds or a `urllib3.Timeout`. `None` keeps urllib3's default.

        :param http_proxy: Proxy used for plain HTTP DSNs. Defaults to the
            proxy configured in the environment, an empty string disables it.

        :param https_proxy: Proxy used for HTTPS DSNs. Same fallback rules as
            `http_proxy`.

        :param ca_certs: Path to a CA bundle. Defaults to the `certifi` bundle.

        :param num_pools: Number of connection pools the default pool manager
            keeps around.

        :param debug: Turns debug logging on or off.

        :param with_locals: Attach the local variables of every frame to
            exception stack traces.

        :param include_source_context: Attach the lines of source code around
            every frame of a stack trace.

        :param max_breadcrumbs: The maximum number of breadcrumbs an event
            builder keeps. Older breadcrumbs are dropped first.
        """
        pass


def _get_default_options():
    # type: () -> dict[str, Any]
    import inspect

    a = inspect.getfullargspec(ClientConstructor.__init__)
    defaults = a.defaults or ()
    kwonlydefaults = a.kwonlydefaults or {}

    return dict(
        itertools.chain(
            zip(a.args[-len(defaults) :], defaults),
            kwonlydefaults.items(),
        )
    )


DEFAULT_OPTIONS = _get_default_options()
del _get_default_options
