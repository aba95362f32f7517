import dataclasses
import logging

from datetime import datetime, timezone

import pytest

from sentry_capture import Event, EventDefaults, Level
from sentry_capture.event import SDK_INFO, Frame, SdkInfo


TIMESTAMP = datetime(2021, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value,expected",
    [
        (Level.WARNING, Level.WARNING),
        ("error", Level.ERROR),
        ("INFO", Level.INFO),
        ("critical", Level.FATAL),
        ("fatal", Level.FATAL),
        (logging.DEBUG, Level.DEBUG),
        (logging.INFO, Level.INFO),
        (logging.WARNING, Level.WARNING),
        (logging.ERROR, Level.ERROR),
        (logging.CRITICAL, Level.FATAL),
    ],
)
def test_level_parse(value, expected):
    assert Level.parse(value) is expected


def test_level_parse_unknown():
    with pytest.raises(ValueError):
        Level.parse("loud")


def test_levels_are_ordered_and_lowercase():
    assert Level.DEBUG < Level.INFO < Level.WARNING < Level.ERROR < Level.FATAL
    assert [str(level) for level in Level] == [
        "debug",
        "info",
        "warning",
        "error",
        "fatal",
    ]


def test_sdk_info_client():
    assert SdkInfo("my-sdk", "1.0").client == "my-sdk/1.0"
    assert SDK_INFO.name == "sentry-capture"


def test_event_is_frozen():
    event = Event(event_id="a" * 32, timestamp=TIMESTAMP, level=Level.INFO)

    with pytest.raises(dataclasses.FrozenInstanceError):
        event.level = Level.ERROR

    with pytest.raises(TypeError):
        event.tags["foo"] = "bar"


def test_event_copies_its_containers():
    tags = {"foo": "bar"}
    extra = {"list": [1, 2]}
    contexts = {"runtime": {"name": "CPython"}}
    breadcrumbs = []

    event = Event(
        event_id="a" * 32,
        timestamp=TIMESTAMP,
        level=Level.INFO,
        tags=tags,
        extra=extra,
        contexts=contexts,
        breadcrumbs=breadcrumbs,
        fingerprint=["a", "b"],
    )

    tags["foo"] = "changed"
    extra["other"] = True
    contexts["runtime"]["name"] = "PyPy"
    contexts["os"] = {}

    assert event.tags == {"foo": "bar"}
    assert event.extra == {"list": [1, 2]}
    assert event.contexts["runtime"] == {"name": "CPython"}
    assert "os" not in event.contexts
    assert event.breadcrumbs == ()
    assert event.fingerprint == ("a", "b")


def test_frame_context_is_tuple():
    pre_context = ["a", "b"]
    frame = Frame(function="f", pre_context=pre_context, vars={"x": 1})
    pre_context.append("c")

    assert frame.pre_context == ("a", "b")
    assert frame.post_context == ()
    assert frame.vars == {"x": 1}


def test_event_defaults_are_frozen():
    tags = {"team": "backend"}
    defaults = EventDefaults(level="warning", tags=tags)
    tags["team"] = "frontend"

    assert defaults.level is Level.WARNING
    assert defaults.tags == {"team": "backend"}
    with pytest.raises(TypeError):
        defaults.tags["x"] = "y"


def test_event_defaults_for_process(monkeypatch):
    monkeypatch.setenv("SENTRY_RELEASE", "1.2.3")
    monkeypatch.setenv("SENTRY_ENVIRONMENT", "staging")

    defaults = EventDefaults.for_process(environment="production")

    assert defaults.release == "1.2.3"
    assert defaults.environment == "production"
    assert defaults.server_name
    assert "pytest" in defaults.modules
    assert defaults.contexts["runtime"]["name"]
