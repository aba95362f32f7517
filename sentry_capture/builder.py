import os
import uuid

from datetime import datetime, timezone

from sentry_capture.consts import DEFAULT_OPTIONS, PLATFORM
from sentry_capture.event import (
    SDK_INFO,
    Breadcrumb,
    Event,
    ExceptionRecord,
    Frame,
    Level,
    Message,
)
from sentry_capture.serializer import serialize_databag
from sentry_capture.utils import (
    capture_internal_exceptions,
    exc_info_from_error,
    filename_for_module,
    get_source_context,
    get_type_module,
    get_type_name,
    iter_stacks,
    safe_str,
    walk_exception_chain,
)

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types import FrameType
    from types import TracebackType
    from typing import Any
    from typing import Dict
    from typing import List
    from typing import Mapping
    from typing import Optional
    from typing import Sequence
    from typing import Union

    from sentry_capture._types import ErrorLike, ExcInfo
    from sentry_capture.client import Client
    from sentry_capture.event import SdkInfo


def frame_from_traceback(
    frame,  # type: FrameType
    tb_lineno=None,  # type: Optional[int]
    with_locals=False,  # type: bool
    include_source_context=True,  # type: bool
):
    # type: (...) -> Frame
    f_code = getattr(frame, "f_code", None)
    if not f_code:
        abs_path = None
        function = None
    else:
        abs_path = frame.f_code.co_filename
        function = frame.f_code.co_name
    try:
        module = frame.f_globals["__name__"]
    except Exception:
        module = None

    if tb_lineno is None:
        tb_lineno = frame.f_lineno

    if include_source_context:
        pre_context, context_line, post_context = get_source_context(frame, tb_lineno)
    else:
        pre_context, context_line, post_context = [], None, []

    return Frame(
        function=function or "<unknown>",
        module=module,
        filename=filename_for_module(module, abs_path) or None,
        abs_path=os.path.abspath(abs_path) if abs_path else None,
        lineno=tb_lineno,
        context_line=context_line,
        pre_context=pre_context,
        post_context=post_context,
        vars=serialize_databag(dict(frame.f_locals)) if with_locals else None,
    )


def frames_from_traceback(tb, with_locals=False, include_source_context=True):
    # type: (Optional[TracebackType], bool, bool) -> List[Frame]
    """Frames of a traceback, outermost call first."""
    return [
        frame_from_traceback(
            tb_.tb_frame,
            tb_lineno=tb_.tb_lineno,
            with_locals=with_locals,
            include_source_context=include_source_context,
        )
        for tb_ in iter_stacks(tb)
    ]


def exceptions_from_error_tuple(
    exc_info,  # type: ExcInfo
    with_locals=False,  # type: bool
    include_source_context=True,  # type: bool
):
    # type: (...) -> List[ExceptionRecord]
    """Flattens an exception and everything it was caused by into records,
    the given exception first and its innermost cause last."""
    rv = []
    for exc_type, exc_value, tb in walk_exception_chain(exc_info):
        rv.append(
            ExceptionRecord(
                module=get_type_module(exc_type),
                type=get_type_name(exc_type) or "<unknown>",
                value=safe_str(exc_value),
                frames=frames_from_traceback(tb, with_locals, include_source_context),
            )
        )
    return rv


def culprit_from_frames(frames):
    # type: (Sequence[Frame]) -> Optional[str]
    if not frames:
        return None
    frame = frames[-1]
    if frame.module:
        return "%s in %s" % (frame.module, frame.function)
    return frame.function


class EventBuilder(object):
    """Collects the data of a single event and freezes it with `build()`.

    A builder belongs to one capture. It is created by
    :py:meth:`sentry_capture.client.Client.create_event_builder`, which
    copies the client's defaults into it, and may then be changed freely
    through its attributes and setters.
    """

    def __init__(self, client=None):
        # type: (Optional[Client]) -> None
        self._client = client

        self.event_id = None  # type: Optional[Union[str, uuid.UUID]]
        self.timestamp = None  # type: Optional[datetime]
        self.logger = None  # type: Optional[str]
        self.platform = PLATFORM  # type: str
        self.sdk = SDK_INFO  # type: SdkInfo
        self.level = None  # type: Optional[Union[Level, str, int]]
        self.culprit = None  # type: Optional[str]
        self.server_name = None  # type: Optional[str]
        self.release = None  # type: Optional[str]
        self.environment = None  # type: Optional[str]
        self.tags = {}  # type: Dict[str, str]
        self.modules = {}  # type: Dict[str, str]
        self.extra = {}  # type: Dict[str, Any]
        self.fingerprint = None  # type: Optional[List[str]]
        self.exception = []  # type: List[ExceptionRecord]
        self.message = None  # type: Optional[Message]
        self.breadcrumbs = []  # type: List[Breadcrumb]
        self.contexts = {}  # type: Dict[str, Dict[str, Any]]

    @property
    def options(self):
        # type: () -> Dict[str, Any]
        if self._client is not None:
            return self._client.options
        return DEFAULT_OPTIONS

    def set_message(self, message, *params):
        # type: (str, *Any) -> None
        """Sets the message of the event. `params` are interpolated into the
        message with `%` formatting; the template and the params are sent
        alongside the formatted text so that Sentry can group by template."""
        if self.level is None:
            self.level = Level.INFO

        formatted = None
        if params:
            with capture_internal_exceptions():
                formatted = message % params

        self.message = Message(message=message, params=params, formatted=formatted)

    def set_exception(self, error=None):
        # type: (Optional[ErrorLike]) -> None
        """Attaches an exception and the chain of exceptions that caused it.

        Takes an exception instance or an `exc_info` tuple; without an
        argument the exception currently being handled is used.
        """
        exc_info = exc_info_from_error(error)
        exceptions = exceptions_from_error_tuple(
            exc_info,
            with_locals=self.options["with_locals"],
            include_source_context=self.options["include_source_context"],
        )

        if self.culprit is None:
            self.culprit = culprit_from_frames(exceptions[0].frames)

        if self.message is None:
            self.message = Message(message=safe_str(exc_info[1]))

        self.exception = exceptions

    def set_tag(self, key, value):
        # type: (str, Any) -> None
        self.tags[key] = safe_str(value)

    def set_extra(self, key, value):
        # type: (str, Any) -> None
        self.extra[key] = value

    def set_context(self, key, value):
        # type: (str, Mapping[str, Any]) -> None
        self.contexts[key] = dict(value)

    def add_breadcrumb(
        self,
        message=None,  # type: Optional[str]
        category=None,  # type: Optional[str]
        level=None,  # type: Optional[Union[Level, str, int]]
        type="default",  # type: str
        data=None,  # type: Optional[Mapping[str, Any]]
        timestamp=None,  # type: Optional[datetime]
    ):
        # type: (...) -> None
        self.breadcrumbs.append(
            Breadcrumb(
                timestamp=timestamp or datetime.now(timezone.utc),
                type=type,
                category=category,
                message=message,
                level=Level.parse(level) if level is not None else None,
                data=data,
            )
        )

        max_breadcrumbs = self.options["max_breadcrumbs"]
        if len(self.breadcrumbs) > max_breadcrumbs:
            del self.breadcrumbs[: len(self.breadcrumbs) - max_breadcrumbs]

    def _resolve_event_id(self):
        # type: () -> str
        if self.event_id is None:
            return uuid.uuid4().hex
        if isinstance(self.event_id, uuid.UUID):
            return self.event_id.hex
        return uuid.UUID(str(self.event_id)).hex

    def _resolve_timestamp(self):
        # type: () -> datetime
        if self.timestamp is None:
            return datetime.now(timezone.utc)
        if self.timestamp.tzinfo is None:
            return self.timestamp.replace(tzinfo=timezone.utc)
        return self.timestamp.astimezone(timezone.utc)

    def _resolve_level(self):
        # type: () -> Level
        if self.level is not None:
            return Level.parse(self.level)
        if self.exception:
            return Level.ERROR
        return Level.INFO

    def build(self):
        # type: () -> Event
        """Freezes the current state into an :py:class:`Event`.

        A missing event id or timestamp is generated for the returned event
        only; the builder itself is left untouched, so it can be built again.
        """
        return Event(
            event_id=self._resolve_event_id(),
            timestamp=self._resolve_timestamp(),
            level=self._resolve_level(),
            sdk=self.sdk,
            platform=self.platform,
            logger=self.logger,
            culprit=self.culprit,
            server_name=self.server_name,
            release=self.release,
            environment=self.environment,
            tags=self.tags,
            modules=self.modules,
            extra=self.extra,
            fingerprint=self.fingerprint,
            exception=self.exception,
            message=self.message,
            breadcrumbs=self.breadcrumbs,
            contexts=self.contexts,
        )

    def capture(self):
        # type: () -> str
        """Builds the event and sends it through the client. Returns the id
        assigned by Sentry, or an empty string if the event was not sent."""
        if self._client is None:
            raise ValueError("This event builder is not bound to a client")
        return self._client.send_event(self.build())
