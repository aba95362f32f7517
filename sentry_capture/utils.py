import json
import linecache
import logging
import os
import sys

from contextlib import contextmanager
from datetime import datetime, timezone
from urllib.parse import urlsplit

from sentry_capture.consts import PROTOCOL_VERSION, SOURCE_CONTEXT_LINES
from sentry_capture.exceptions import InvalidDsnError

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any
    from typing import Dict
    from typing import Iterator
    from typing import List
    from typing import Optional
    from typing import Tuple
    from typing import Union
    from types import FrameType
    from types import TracebackType

    from sentry_capture._types import ErrorLike, ExcInfo


# The logger is created here but initialized in the debug support module
logger = logging.getLogger("sentry_capture.errors")

MAX_STRING_LENGTH = 512


@contextmanager
def capture_internal_exceptions():
    # type: () -> Iterator[None]
    try:
        yield
    except Exception:
        logger.error("Internal error in sentry_capture", exc_info=True)


def to_timestamp(value):
    # type: (datetime) -> float
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def format_timestamp(value):
    # type: (datetime) -> str
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def json_dumps(data):
    # type: (Any) -> bytes
    """Serialize data into a compact JSON representation encoded as UTF-8."""
    return json.dumps(data, allow_nan=False, separators=(",", ":")).encode("utf-8")


class Dsn(object):
    """Represents a DSN."""

    def __init__(self, value):
        # type: (Union[Dsn, str]) -> None
        if isinstance(value, Dsn):
            self.__dict__ = dict(value.__dict__)
            return
        try:
            parts = urlsplit(str(value).strip())
            port = parts.port
        except ValueError as e:
            raise InvalidDsnError("Invalid DSN (%s)" % e)
        if parts.scheme not in ("http", "https"):
            raise InvalidDsnError("Unsupported scheme %r" % parts.scheme)
        self.scheme = parts.scheme

        if parts.hostname is None:
            raise InvalidDsnError("Missing hostname")

        # Keep the host as written, including the brackets of IPv6 literals.
        host = parts.netloc.rpartition("@")[2]
        if host.startswith("["):
            self.host = host[: host.index("]") + 1]
        else:
            self.host = host.partition(":")[0]
        self.port = port
        if self.port is None:
            self.port = self.scheme == "https" and 443 or 80
        self.public_key = parts.username
        if not self.public_key:
            raise InvalidDsnError("Missing public key")
        self.secret_key = parts.password or None

        path = parts.path.rsplit("/", 1)

        try:
            self.project_id = str(int(path.pop()))
        except (ValueError, TypeError):
            raise InvalidDsnError(
                "Invalid project in DSN (%r)" % (parts.path or "")[1:]
            )

        self.path = "/".join(path) + "/"

    @property
    def netloc(self):
        # type: () -> str
        """The netloc part of a DSN."""
        rv = self.host
        if (self.scheme, self.port) not in (("http", 80), ("https", 443)):
            rv = "%s:%s" % (rv, self.port)
        return rv

    @property
    def store_api_url(self):
        # type: () -> str
        """The URL events are posted to."""
        return self.to_auth().store_api_url

    def to_auth(self, client=None):
        # type: (Optional[str]) -> Auth
        """Returns the auth info object for this dsn."""
        return Auth(
            scheme=self.scheme,
            host=self.netloc,
            path=self.path,
            project_id=self.project_id,
            public_key=self.public_key,
            secret_key=self.secret_key,
            client=client,
        )

    def __str__(self):
        # type: () -> str
        return "%s://%s%s@%s%s%s" % (
            self.scheme,
            self.public_key,
            self.secret_key and ":" + self.secret_key or "",
            self.netloc,
            self.path,
            self.project_id,
        )


class Auth(object):
    """Helper object that represents the auth info."""

    def __init__(
        self,
        scheme,
        host,
        project_id,
        public_key,
        secret_key=None,
        version=PROTOCOL_VERSION,
        client=None,
        path="/",
    ):
        # type: (str, str, str, str, Optional[str], int, Optional[str], str) -> None
        self.scheme = scheme
        self.host = host
        self.path = path
        self.project_id = project_id
        self.public_key = public_key
        self.secret_key = secret_key
        self.version = version
        self.client = client

    @property
    def store_api_url(self):
        # type: () -> str
        """Returns the API url for storing events."""
        return "%s://%s%sapi/%s/store/" % (
            self.scheme,
            self.host,
            self.path,
            self.project_id,
        )

    def to_header(self, timestamp=None):
        # type: (Optional[datetime]) -> str
        """Returns the auth header a string."""
        rv = [("sentry_version", self.version)]  # type: List[Tuple[str, Any]]
        if timestamp is not None:
            rv.append(("sentry_timestamp", int(to_timestamp(timestamp))))
        rv.append(("sentry_key", self.public_key))
        if self.secret_key is not None:
            rv.append(("sentry_secret", self.secret_key))
        if self.client is not None:
            rv.append(("sentry_client", self.client))
        return "Sentry " + ",".join("%s=%s" % (key, value) for key, value in rv)


def get_type_name(cls):
    # type: (Optional[type]) -> Optional[str]
    return getattr(cls, "__qualname__", None) or getattr(cls, "__name__", None)


def get_type_module(cls):
    # type: (Optional[type]) -> Optional[str]
    mod = getattr(cls, "__module__", None)
    if mod not in (None, "builtins", "__builtins__"):
        return mod
    return None


def should_hide_frame(frame):
    # type: (FrameType) -> bool
    """Frames of this library, and frames whose locals set
    `__traceback_hide__`, are left out of stack traces."""
    module = frame.f_globals.get("__name__") or ""
    if module == "sentry_capture" or module.startswith("sentry_capture."):
        return True
    return bool(frame.f_locals.get("__traceback_hide__"))


def iter_stacks(tb):
    # type: (Optional[TracebackType]) -> Iterator[TracebackType]
    while tb is not None:
        if not should_hide_frame(tb.tb_frame):
            yield tb
        tb = tb.tb_next


def slim_string(value, length=MAX_STRING_LENGTH):
    # type: (str, int) -> str
    if not value or len(value) <= length:
        return value
    return value[: length - 3] + "..."


def _source_line(line):
    # type: (str) -> str
    return slim_string(line.rstrip("\r\n"))


def get_source_context(frame, tb_lineno):
    # type: (FrameType, Optional[int]) -> Tuple[List[str], Optional[str], List[str]]
    """The source around line `tb_lineno` of `frame`: up to
    `SOURCE_CONTEXT_LINES` lines before it, the line itself and up to as many
    lines after it. Empty if the source can't be found."""
    if tb_lineno is None:
        return [], None, []

    # With the module globals, linecache asks the module's loader for the
    # source of files that are not on disk (zip imports and the like).
    lines = linecache.getlines(frame.f_code.co_filename, frame.f_globals)
    index = tb_lineno - 1
    if not 0 <= index < len(lines):
        return [], None, []

    start = max(0, index - SOURCE_CONTEXT_LINES)
    end = index + 1 + SOURCE_CONTEXT_LINES
    return (
        [_source_line(line) for line in lines[start:index]],
        _source_line(lines[index]),
        [_source_line(line) for line in lines[index + 1 : end]],
    )


def safe_str(value):
    # type: (Any) -> str
    try:
        return str(value)
    except Exception:
        return safe_repr(value)


def safe_repr(value):
    # type: (Any) -> str
    try:
        return repr(value)
    except Exception:
        return "<broken repr>"


def filename_for_module(module, abs_path):
    # type: (Optional[str], Optional[str]) -> Optional[str]
    """The path of a module's source relative to the directory holding its
    top-level package, e.g. `sentry_capture/utils.py`."""
    if not abs_path or not module:
        return abs_path

    if abs_path.endswith(".pyc"):
        abs_path = abs_path[:-1]

    package = module.partition(".")[0]
    if package == module:
        return os.path.basename(abs_path)

    package_file = getattr(sys.modules.get(package), "__file__", None)
    if not package_file:
        return abs_path

    # package_file is <root>/<package>/__init__.py
    root = os.path.dirname(os.path.dirname(package_file)) + os.sep
    if not abs_path.startswith(root):
        return abs_path
    return abs_path[len(root) :]


def walk_exception_chain(exc_info):
    # type: (ExcInfo) -> Iterator[ExcInfo]
    """Yields the given exception and then every exception it was caused by,
    outermost first. An exception that shows up a second time ends the walk,
    so cyclic cause graphs terminate."""
    exc_type, exc_value, tb = exc_info
    # Holds on to the exceptions so that their ids can't be reused.
    seen = {}  # type: Dict[int, BaseException]

    while exc_type is not None and exc_value is not None:
        if id(exc_value) in seen:
            return
        seen[id(exc_value)] = exc_value
        yield exc_type, exc_value, tb

        if exc_value.__suppress_context__:
            exc_value = exc_value.__cause__
        else:
            exc_value = exc_value.__context__
        exc_type = type(exc_value)
        tb = getattr(exc_value, "__traceback__", None)


def exc_info_from_error(error):
    # type: (Optional[ErrorLike]) -> ExcInfo
    """Turns an exception or an `exc_info` tuple into an `exc_info` tuple.
    `None` stands for the exception currently being handled."""
    if error is None:
        exc_info = sys.exc_info()  # type: ExcInfo
    elif isinstance(error, tuple) and len(error) == 3:
        exc_info = error
    elif isinstance(error, BaseException):
        exc_info = (type(error), error, error.__traceback__)
    else:
        raise ValueError("Expected an exception or exc_info tuple, got %r" % (error,))

    if exc_info[1] is None:
        raise ValueError("There is no exception to capture")
    return exc_info


def _normalize_module_name(name):
    # type: (str) -> str
    return name.lower()


def _generate_installed_modules():
    # type: () -> Iterator[Tuple[str, str]]
    from importlib import metadata

    for dist in metadata.distributions():
        name = dist.metadata["Name"]
        # `metadata` values may be `None`, see:
        # https://github.com/python/cpython/issues/91216
        if name is not None:
            version = dist.version
            if version is not None:
                yield _normalize_module_name(name), version


_installed_modules = None  # type: Optional[Dict[str, str]]


def get_installed_modules():
    # type: () -> Dict[str, str]
    global _installed_modules
    if _installed_modules is None:
        _installed_modules = dict(_generate_installed_modules())
    return dict(_installed_modules)
