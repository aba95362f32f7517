import gzip
import io
import json

from urllib.request import getproxies

import certifi
import urllib3

from sentry_capture.exceptions import TransportError
from sentry_capture.serializer import serialize_event
from sentry_capture.utils import Dsn, json_dumps, logger

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any
    from typing import Dict
    from typing import Optional
    from typing import Union

    from urllib3.poolmanager import PoolManager
    from urllib3.poolmanager import ProxyManager

    from sentry_capture._types import SendRequest
    from sentry_capture.event import Event


class Request(object):
    """An HTTP request ready to be sent to Sentry."""

    __slots__ = ("method", "url", "body", "headers")

    def __init__(self, method, url, body, headers):
        # type: (str, str, bytes, Dict[str, str]) -> None
        self.method = method
        self.url = url
        self.body = body
        self.headers = headers

    def __repr__(self):
        # type: () -> str
        return "<Request %s %s>" % (self.method, self.url)


class HttpTransport(object):
    """Sends events to the store endpoint of a DSN.

    Every call to `send` performs exactly one POST request. Requests are
    handed to `send_request` when one is configured; otherwise they go
    through a urllib3 pool that is created once and shared by all sends.
    """

    def __init__(
        self,
        dsn,  # type: Union[Dsn, str]
        options,  # type: Dict[str, Any]
    ):
        # type: (...) -> None
        self.parsed_dsn = Dsn(dsn)
        self.options = options

        send_request = options["send_request"]  # type: Optional[SendRequest]
        if send_request is None:
            self._pool = self._make_pool(
                self.parsed_dsn,
                http_proxy=options["http_proxy"],
                https_proxy=options["https_proxy"],
                ca_certs=options["ca_certs"],
            )  # type: Optional[Union[PoolManager, ProxyManager]]
            send_request = self._send_with_pool
        else:
            self._pool = None
        self._send_request = send_request

    def _get_pool_options(self, ca_certs):
        # type: (Optional[Any]) -> Dict[str, Any]
        return {
            "num_pools": self.options["num_pools"],
            "cert_reqs": "CERT_REQUIRED",
            "ca_certs": ca_certs or certifi.where(),
        }

    def _in_no_proxy(self, parsed_dsn):
        # type: (Dsn) -> bool
        no_proxy = getproxies().get("no")
        if not no_proxy:
            return False
        for host in no_proxy.split(","):
            host = host.strip()
            if parsed_dsn.host.endswith(host) or parsed_dsn.netloc.endswith(host):
                return True
        return False

    def _make_pool(
        self,
        parsed_dsn,  # type: Dsn
        http_proxy,  # type: Optional[str]
        https_proxy,  # type: Optional[str]
        ca_certs,  # type: Optional[Any]
    ):
        # type: (...) -> Union[PoolManager, ProxyManager]
        proxy = None
        no_proxy = self._in_no_proxy(parsed_dsn)

        # try HTTPS first
        if parsed_dsn.scheme == "https" and (https_proxy != ""):
            proxy = https_proxy or (not no_proxy and getproxies().get("https"))

        # maybe fallback to HTTP proxy
        if not proxy and (http_proxy != ""):
            proxy = http_proxy or (not no_proxy and getproxies().get("http"))

        opts = self._get_pool_options(ca_certs)

        if proxy:
            return urllib3.ProxyManager(proxy, **opts)
        else:
            return urllib3.PoolManager(**opts)

    def _send_with_pool(self, request):
        # type: (Request) -> urllib3.BaseHTTPResponse
        assert self._pool is not None
        kwargs = {}  # type: Dict[str, Any]
        if self.options["timeout"] is not None:
            kwargs["timeout"] = self.options["timeout"]
        return self._pool.request(
            request.method,
            request.url,
            body=request.body,
            headers=request.headers,
            **kwargs
        )

    def make_request(self, event):
        # type: (Event) -> Request
        """Serializes, compresses and signs an event."""
        body = io.BytesIO()
        with gzip.GzipFile(fileobj=body, mode="w") as f:
            f.write(json_dumps(serialize_event(event)))

        auth = self.parsed_dsn.to_auth(event.sdk.client)
        headers = {
            "Content-Type": "application/json",
            "Content-Encoding": "gzip",
            "User-Agent": auth.client,
            "X-Sentry-Auth": auth.to_header(event.timestamp),
        }  # type: Dict[str, Any]

        return Request("POST", auth.store_api_url, body.getvalue(), headers)

    def send(self, event):
        # type: (Event) -> str
        """Sends an event and returns the id Sentry assigned to it.

        Raises :py:class:`sentry_capture.exceptions.TransportError` if the
        server does not accept the event.
        """
        request = self.make_request(event)

        logger.debug(
            "Sending event, level:%s event_id:%s project:%s host:%s",
            event.level,
            event.event_id,
            self.parsed_dsn.project_id,
            self.parsed_dsn.host,
        )

        response = self._send_request(request)
        try:
            if response.status != 200:
                error = response.headers.get("X-Sentry-Error") or ""
                logger.debug(
                    "Unexpected status code: %s (error: %s)", response.status, error
                )
                raise TransportError(response.status, error)

            return self._event_id_from_response(response, event)
        finally:
            close = getattr(response, "close", None)
            if close is not None:
                close()

    def _event_id_from_response(self, response, event):
        # type: (Any, Event) -> str
        try:
            rv = json.loads(response.data)["id"]
        except (ValueError, TypeError, KeyError):
            rv = None

        if not rv:
            logger.warning(
                "Sentry accepted event %s without returning an id (body: %r)",
                event.event_id,
                response.data,
            )
            return event.event_id

        return str(rv)

    def close(self):
        # type: () -> None
        if self._pool is not None:
            logger.debug("Closing HTTP transport")
            self._pool.clear()
