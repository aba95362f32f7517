import sys
import uuid

from datetime import datetime, timedelta, timezone

import pytest

from sentry_capture import EventBuilder, Level
from sentry_capture.serializer import serialize_event
from sentry_capture.utils import json_dumps


EVENT_ID = "0123456789abcdef0123456789abcdef"
TIMESTAMP = datetime(2021, 6, 1, 12, 0, tzinfo=timezone.utc)


def raise_inner():
    raise KeyError("inner")


def raise_chain(depth):
    if depth <= 1:
        raise_inner()
    try:
        raise_chain(depth - 1)
    except Exception as e:
        raise ValueError("depth %s" % depth) from e


def catch(func, *args):
    try:
        func(*args)
    except Exception as e:
        return e
    raise AssertionError("did not raise")


def test_build_defaults():
    event = EventBuilder().build()

    assert len(event.event_id) == 32
    assert uuid.UUID(event.event_id).hex == event.event_id
    assert event.timestamp.tzinfo is not None
    assert event.level is Level.INFO
    assert event.platform == "python"
    assert event.sdk.name == "sentry-capture"
    assert event.exception == ()
    assert event.message is None


def test_build_does_not_write_back_generated_values():
    builder = EventBuilder()

    first = builder.build()
    second = builder.build()

    assert builder.event_id is None
    assert builder.timestamp is None
    assert first.event_id != second.event_id


def test_repeated_builds_are_identical():
    builder = EventBuilder()
    builder.event_id = EVENT_ID
    builder.timestamp = TIMESTAMP
    builder.set_tag("foo", "bar")
    builder.set_message("hello %s", "world")
    builder.add_breadcrumb("crumb", timestamp=TIMESTAMP)
    builder.set_exception(catch(raise_chain, 2))

    first = builder.build()
    second = builder.build()

    assert first == second
    assert json_dumps(serialize_event(first)) == json_dumps(serialize_event(second))


@pytest.mark.parametrize(
    "given",
    [
        EVENT_ID,
        uuid.UUID(EVENT_ID),
        str(uuid.UUID(EVENT_ID)),
        EVENT_ID.upper(),
    ],
)
def test_event_id_is_normalized(given):
    builder = EventBuilder()
    builder.event_id = given

    assert builder.build().event_id == EVENT_ID


def test_invalid_event_id():
    builder = EventBuilder()
    builder.event_id = "not-an-id"

    with pytest.raises(ValueError):
        builder.build()


def test_timestamps_are_utc():
    builder = EventBuilder()

    builder.timestamp = datetime(2021, 6, 1, 12, 0)
    assert builder.build().timestamp == TIMESTAMP

    builder.timestamp = datetime(2021, 6, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert builder.build().timestamp == TIMESTAMP
    assert builder.build().timestamp.tzinfo == timezone.utc


@pytest.mark.parametrize("depth", [1, 2, 5])
def test_exception_chain_is_flattened_outer_first(depth):
    builder = EventBuilder()
    builder.set_exception(catch(raise_chain, depth))

    records = builder.build().exception

    assert len(records) == depth
    assert [record.type for record in records] == ["ValueError"] * (depth - 1) + [
        "KeyError"
    ]
    assert [record.value for record in records] == [
        "depth %s" % i for i in range(depth, 1, -1)
    ] + ["'inner'"]
    assert all(record.module is None for record in records)


def test_frames_are_outermost_first():
    builder = EventBuilder()
    builder.set_exception(catch(raise_chain, 1))

    (record,) = builder.build().exception
    functions = [frame.function for frame in record.frames]

    assert functions == ["catch", "raise_chain", "raise_inner"]
    frame = record.frames[-1]
    assert frame.module == __name__
    assert frame.lineno == raise_inner.__code__.co_firstlineno + 1
    assert frame.context_line == '    raise KeyError("inner")'
    assert frame.abs_path.endswith("test_builder.py")
    assert frame.vars is None


def test_culprit_and_level_from_exception():
    builder = EventBuilder()
    builder.set_exception(catch(raise_chain, 2))

    event = builder.build()

    assert event.culprit == "%s in raise_chain" % __name__
    assert event.level is Level.ERROR
    assert event.message.message == "depth 2"


def test_exception_keeps_explicit_values():
    builder = EventBuilder()
    builder.culprit = "GET /foo"
    builder.level = "warning"
    builder.set_message("explicit")
    builder.set_exception(catch(raise_inner))

    event = builder.build()

    assert event.culprit == "GET /foo"
    assert event.level is Level.WARNING
    assert event.message.message == "explicit"


def test_set_exception_from_current_exception():
    builder = EventBuilder()
    try:
        raise_inner()
    except KeyError:
        builder.set_exception()

    assert builder.build().exception[0].type == "KeyError"


def test_set_exception_without_exception():
    with pytest.raises(ValueError):
        EventBuilder().set_exception()


def test_set_exception_with_empty_exc_info():
    builder = EventBuilder()

    with pytest.raises(ValueError):
        builder.set_exception(sys.exc_info())

    assert builder.exception == []
    assert builder.message is None


def test_exception_type_name_and_module():
    class CustomError(Exception):
        pass

    builder = EventBuilder()
    builder.set_exception(CustomError("custom"))

    (record,) = builder.build().exception

    assert record.type == "test_exception_type_name_and_module.<locals>.CustomError"
    assert record.module == __name__
    assert record.value == "custom"
    assert record.frames == ()
    assert builder.build().culprit is None


def test_cyclic_exception_chain_terminates():
    a = ValueError("a")
    b = KeyError("b")
    a.__cause__ = b
    b.__cause__ = a

    builder = EventBuilder()
    builder.set_exception(a)

    assert [record.type for record in builder.build().exception] == [
        "ValueError",
        "KeyError",
    ]


def test_set_message():
    builder = EventBuilder()
    builder.set_message("%s and %d", "foo", 42)

    message = builder.build().message

    assert message.message == "%s and %d"
    assert message.params == ("foo", 42)
    assert message.formatted == "foo and 42"


def test_set_message_with_broken_params():
    builder = EventBuilder()
    builder.set_message("%d", "not a number")

    message = builder.build().message

    assert message.message == "%d"
    assert message.formatted is None


def test_breadcrumbs():
    builder = EventBuilder()
    builder.add_breadcrumb(
        "clicked", category="ui", level="warning", data={"id": 1}, timestamp=TIMESTAMP
    )

    (crumb,) = builder.build().breadcrumbs

    assert crumb.message == "clicked"
    assert crumb.category == "ui"
    assert crumb.level is Level.WARNING
    assert crumb.type == "default"
    assert crumb.data == {"id": 1}
    assert crumb.timestamp == TIMESTAMP


def test_breadcrumbs_are_capped(make_client):
    builder = make_client(max_breadcrumbs=3).create_event_builder()

    for i in range(5):
        builder.add_breadcrumb("crumb %s" % i)

    assert [crumb.message for crumb in builder.build().breadcrumbs] == [
        "crumb 2",
        "crumb 3",
        "crumb 4",
    ]


def test_event_is_isolated_from_builder():
    builder = EventBuilder()
    builder.set_tag("foo", "bar")
    builder.set_extra("list", [1])
    builder.set_context("device", {"name": "phone"})

    event = builder.build()

    builder.set_tag("foo", "baz")
    builder.set_extra("other", True)
    builder.contexts["device"]["name"] = "tablet"
    builder.add_breadcrumb("late")

    assert event.tags == {"foo": "bar"}
    assert event.extra == {"list": [1]}
    assert event.contexts == {"device": {"name": "phone"}}
    assert event.breadcrumbs == ()


def test_nested_values_are_isolated_from_builder():
    builder = EventBuilder()
    builder.set_extra("items", [1])
    builder.set_extra("user", {"roles": ["admin"]})
    builder.set_context("device", {"screens": [{"width": 800}]})
    crumb_data = {"ids": [1]}
    builder.add_breadcrumb("loaded", data=crumb_data)

    event = builder.build()

    builder.extra["items"].append(2)
    builder.extra["user"]["roles"].append("guest")
    builder.contexts["device"]["screens"][0]["width"] = 1024
    crumb_data["ids"].append(2)

    assert event.extra["items"] == [1]
    assert event.extra["user"] == {"roles": ["admin"]}
    assert event.contexts["device"]["screens"] == [{"width": 800}]
    assert event.breadcrumbs[0].data == {"ids": [1]}


def test_self_referencing_extra_is_copied():
    items = [1]
    items.append(items)
    builder = EventBuilder()
    builder.set_extra("items", items)

    copied = builder.build().extra["items"]

    assert copied is not items
    assert copied[1] is copied


def test_tags_are_strings():
    builder = EventBuilder()
    builder.set_tag("number", 42)

    assert builder.build().tags == {"number": "42"}


def test_with_locals(make_client):
    builder = make_client(with_locals=True).create_event_builder()

    def fail():
        answer = 42  # noqa: F841
        raise_inner()

    builder.set_exception(catch(fail))

    frames = builder.build().exception[0].frames
    assert frames[1].function == "fail"
    assert frames[1].vars == {"answer": 42}


def test_without_source_context(make_client):
    builder = make_client(include_source_context=False).create_event_builder()
    builder.set_exception(catch(raise_inner))

    frame = builder.build().exception[0].frames[-1]
    assert frame.context_line is None
    assert frame.pre_context == ()


def test_capture_requires_client():
    with pytest.raises(ValueError):
        EventBuilder().capture()


def test_capture_sends_through_client(make_client, capturing_sender):
    builder = make_client().create_event_builder()
    builder.set_message("hello")

    assert builder.capture() == "fedcba9876543210fedcba9876543210"
    assert len(capturing_sender.requests) == 1
