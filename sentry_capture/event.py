"""
The frozen, wire-shaped records a capture produces.

Every class in here is immutable: mappings are copied into read-only proxies
and sequences into tuples when an instance is created, so the builder that
produced an :py:class:`Event` can keep changing without affecting it.
Attribute names are the names used on the wire.
"""

import os
import platform
import socket
import sys

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from types import MappingProxyType

from sentry_capture.consts import PLATFORM, SDK_NAME, VERSION
from sentry_capture.utils import get_installed_modules

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any
    from typing import Dict
    from typing import List
    from typing import Optional
    from typing import Tuple
    from typing import Union


class Level(IntEnum):
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4

    def __str__(self):
        # type: () -> str
        return self.name.lower()

    @classmethod
    def parse(cls, value):
        # type: (Union[Level, str, int]) -> Level
        """Accepts a level, a level name or a `logging` level number."""
        if isinstance(value, Level):
            return value
        if isinstance(value, str):
            name = value.upper()
            if name == "CRITICAL":
                name = "FATAL"
            try:
                return cls[name]
            except KeyError:
                raise ValueError("Unknown level %r" % (value,))
        if value >= 50:
            return cls.FATAL
        if value >= 40:
            return cls.ERROR
        if value >= 30:
            return cls.WARNING
        if value >= 20:
            return cls.INFO
        return cls.DEBUG


def _copy_document(value, memo):
    # type: (Any, Dict[int, Any]) -> Any
    """Copies every container of a free-form value, however deeply nested.
    Other objects are shared with the original."""
    if id(value) in memo:
        return memo[id(value)]

    if isinstance(value, Mapping):
        rv_dict = memo[id(value)] = {}  # type: Dict[Any, Any]
        for k, v in value.items():
            rv_dict[k] = _copy_document(v, memo)
        return rv_dict

    if isinstance(value, list):
        rv_list = memo[id(value)] = []  # type: List[Any]
        rv_list.extend(_copy_document(v, memo) for v in value)
        return rv_list

    if isinstance(value, tuple):
        return tuple(_copy_document(v, memo) for v in value)

    if isinstance(value, set):
        return set(value)

    return value


def _frozen_mapping(value):
    # type: (Optional[Mapping[str, Any]]) -> Mapping[str, Any]
    memo = {}  # type: Dict[int, Any]
    return MappingProxyType(
        {key: _copy_document(v, memo) for key, v in dict(value or ()).items()}
    )


def _frozen_documents(value):
    # type: (Optional[Mapping[str, Mapping[str, Any]]]) -> Mapping[str, Mapping[str, Any]]
    return MappingProxyType(
        {key: _frozen_mapping(doc) for key, doc in (value or {}).items()}
    )


def _freeze(obj, name, value):
    # type: (Any, str, Any) -> None
    object.__setattr__(obj, name, value)


@dataclass(frozen=True)
class SdkInfo:
    name: str
    version: str

    @property
    def client(self):
        # type: () -> str
        """The identity sent as `User-Agent` and `sentry_client`."""
        return "%s/%s" % (self.name, self.version)


SDK_INFO = SdkInfo(name=SDK_NAME, version=VERSION)


@dataclass(frozen=True)
class Frame:
    function: str
    module: "Optional[str]" = None
    filename: "Optional[str]" = None
    abs_path: "Optional[str]" = None
    lineno: "Optional[int]" = None
    context_line: "Optional[str]" = None
    pre_context: "Tuple[str, ...]" = ()
    post_context: "Tuple[str, ...]" = ()
    vars: "Optional[Mapping[str, Any]]" = None

    def __post_init__(self):
        # type: () -> None
        _freeze(self, "pre_context", tuple(self.pre_context))
        _freeze(self, "post_context", tuple(self.post_context))
        if self.vars is not None:
            _freeze(self, "vars", _frozen_mapping(self.vars))


@dataclass(frozen=True)
class ExceptionRecord:
    type: str
    value: str
    module: "Optional[str]" = None
    frames: "Tuple[Frame, ...]" = ()

    def __post_init__(self):
        # type: () -> None
        _freeze(self, "frames", tuple(self.frames))


@dataclass(frozen=True)
class Message:
    message: str
    params: "Tuple[Any, ...]" = ()
    formatted: "Optional[str]" = None

    def __post_init__(self):
        # type: () -> None
        _freeze(self, "params", _copy_document(tuple(self.params), {}))


@dataclass(frozen=True)
class Breadcrumb:
    timestamp: datetime
    type: str = "default"
    category: "Optional[str]" = None
    message: "Optional[str]" = None
    level: "Optional[Level]" = None
    data: "Optional[Mapping[str, Any]]" = None

    def __post_init__(self):
        # type: () -> None
        if self.data is not None:
            _freeze(self, "data", _frozen_mapping(self.data))


@dataclass(frozen=True)
class Event:
    event_id: str
    timestamp: datetime
    level: Level
    sdk: SdkInfo = SDK_INFO
    platform: str = PLATFORM
    logger: "Optional[str]" = None
    culprit: "Optional[str]" = None
    server_name: "Optional[str]" = None
    release: "Optional[str]" = None
    environment: "Optional[str]" = None
    tags: "Mapping[str, str]" = field(default_factory=dict)
    modules: "Mapping[str, str]" = field(default_factory=dict)
    extra: "Mapping[str, Any]" = field(default_factory=dict)
    fingerprint: "Optional[Tuple[str, ...]]" = None
    exception: "Tuple[ExceptionRecord, ...]" = ()
    message: "Optional[Message]" = None
    breadcrumbs: "Tuple[Breadcrumb, ...]" = ()
    contexts: "Mapping[str, Mapping[str, Any]]" = field(default_factory=dict)

    def __post_init__(self):
        # type: () -> None
        _freeze(self, "tags", _frozen_mapping(self.tags))
        _freeze(self, "modules", _frozen_mapping(self.modules))
        _freeze(self, "extra", _frozen_mapping(self.extra))
        _freeze(self, "contexts", _frozen_documents(self.contexts))
        _freeze(self, "exception", tuple(self.exception))
        _freeze(self, "breadcrumbs", tuple(self.breadcrumbs))
        if self.fingerprint is not None:
            _freeze(self, "fingerprint", tuple(self.fingerprint))


_RUNTIME_CONTEXT = {
    "name": platform.python_implementation(),
    "version": "%s.%s.%s" % (sys.version_info[:3]),
    "build": sys.version,
}


@dataclass(frozen=True)
class EventDefaults:
    """Static data copied into every event builder a client creates.

    The containers are copied when the defaults are created and copied again
    into each builder, so neither the caller nor a builder can change them.
    """

    logger: "Optional[str]" = None
    level: "Optional[Level]" = None
    server_name: "Optional[str]" = None
    release: "Optional[str]" = None
    environment: "Optional[str]" = None
    tags: "Mapping[str, str]" = field(default_factory=dict)
    modules: "Mapping[str, str]" = field(default_factory=dict)
    extra: "Mapping[str, Any]" = field(default_factory=dict)
    contexts: "Mapping[str, Mapping[str, Any]]" = field(default_factory=dict)

    def __post_init__(self):
        # type: () -> None
        if self.level is not None:
            _freeze(self, "level", Level.parse(self.level))
        _freeze(self, "tags", _frozen_mapping(self.tags))
        _freeze(self, "modules", _frozen_mapping(self.modules))
        _freeze(self, "extra", _frozen_mapping(self.extra))
        _freeze(self, "contexts", _frozen_documents(self.contexts))

    @classmethod
    def for_process(cls, **overrides):
        # type: (**Any) -> EventDefaults
        """Defaults describing the running process: host name, release and
        environment from `SENTRY_RELEASE` / `SENTRY_ENVIRONMENT`, installed
        distributions and the Python runtime. Keyword arguments win over the
        detected values."""
        values = {
            "server_name": socket.gethostname(),
            "release": os.environ.get("SENTRY_RELEASE"),
            "environment": os.environ.get("SENTRY_ENVIRONMENT"),
            "modules": get_installed_modules(),
            "contexts": {"runtime": _RUNTIME_CONTEXT},
        }  # type: dict[str, Any]
        values.update(overrides)
        return cls(**values)
