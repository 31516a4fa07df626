"""
Tests for `services/context_tracker.py`.

Interactions are written through the real InteractionLogger; the tracker's
clock is injected so the recency window can be crossed without sleeping.
"""

import datetime as dt

import pytest

from services.context_tracker import ContextTracker
from services.database import connect, utcnow
from services.interaction_logger import InteractionLogger
from shared.models import FlexIdType, Input, Message, StructuredInput


def _message(sentence="and tomorrow?", user_id=0, flex_id="", flex_id_type=FlexIdType.NONE):
    msg_input = Input(StructuredInput("weather", 0.7, sentence), user_id, flex_id, flex_id_type)
    return Message(user=None, input=msg_input)


def _tracker(db_path, offset_seconds=0):
    return ContextTracker(db_path, window_seconds=300,
                          clock=lambda: utcnow() + dt.timedelta(seconds=offset_seconds))


@pytest.fixture
def log(db_path):
    return InteractionLogger(db_path)


def test_recent_turn_by_same_user_is_a_continuation(db_path, log):
    log.save(_message("will it rain", user_id=4).input, "Take an umbrella", "weather_pkg", "forecast")

    message = _message(user_id=4)
    lookup = _tracker(db_path).add_context(message)

    assert lookup.is_found
    linked = lookup.value
    assert linked.continuation
    assert linked.context["package_name"] == "weather_pkg"
    assert linked.context["route"] == "forecast"
    assert linked.context["previous_sentence"] == "will it rain"
    assert linked.context["previous_reply"] == "Take an umbrella"
    # The original message and its structured input are left alone.
    assert not message.continuation
    assert message.context == {}
    assert linked.input.structured_input is message.input.structured_input


def test_most_recent_turn_wins(db_path, log):
    log.save(_message(user_id=4).input, "a", "weather_pkg", "first")
    log.save(_message(user_id=4).input, "b", "billing_pkg", "second")

    lookup = _tracker(db_path).add_context(_message(user_id=4))
    assert lookup.value.context["package_name"] == "billing_pkg"
    assert lookup.value.context["route"] == "second"


def test_turn_outside_window_is_not_a_continuation(db_path, log):
    log.save(_message(user_id=4).input, "a", "weather_pkg", "forecast")
    assert _tracker(db_path, offset_seconds=301).add_context(_message(user_id=4)).is_absent


def test_turn_at_edge_of_window_still_counts(db_path, log):
    log.save(_message(user_id=4).input, "a", "weather_pkg", "forecast")
    assert _tracker(db_path, offset_seconds=290).add_context(_message(user_id=4)).is_found


def test_unhandled_previous_turn_is_not_a_continuation(db_path, log):
    log.save(_message(user_id=4).input, "I'm not sure I understand you.", "", "")
    assert _tracker(db_path).add_context(_message(user_id=4)).is_absent


def test_other_users_turns_are_ignored(db_path, log):
    log.save(_message(user_id=5).input, "a", "weather_pkg", "forecast")
    assert _tracker(db_path).add_context(_message(user_id=4)).is_absent


def test_unresolved_sender_matched_by_flexid(db_path, log):
    sender = dict(flex_id="ada@example.com", flex_id_type=FlexIdType.EMAIL)
    log.save(_message(**sender).input, "a", "weather_pkg", "forecast")

    tracker = _tracker(db_path)
    assert tracker.add_context(_message(**sender)).is_found
    assert tracker.add_context(_message(flex_id="ada@example.com", flex_id_type=FlexIdType.PHONE)).is_absent


def test_anonymous_sender_never_continues(db_path, log):
    log.save(_message().input, "a", "weather_pkg", "forecast")
    assert _tracker(db_path).add_context(_message()).is_absent


def test_unparseable_timestamp_is_a_failure(db_path, log):
    log.save(_message(user_id=4).input, "a", "weather_pkg", "forecast")
    with connect(db_path) as con:
        con.execute("UPDATE interactions SET created_at = 'yesterday'")

    lookup = _tracker(db_path).add_context(_message(user_id=4))
    assert lookup.is_failed


def test_storage_error_is_a_failure(tmp_path):
    path = tmp_path / "broken.db"
    path.write_bytes(b"this is not a database file" * 200)
    assert ContextTracker(str(path)).add_context(_message(user_id=4)).is_failed


def test_closed_exchange_lets_the_topic_change(db_path, log):
    # The package answered with an empty route, so the exchange is over.
    log.save(_message("will it rain", user_id=4).input, "Sunny all day", "weather_pkg", "")

    billing = Message(user=None, input=Input(StructuredInput("billing", 0.99, "refund my order"), 4))
    assert _tracker(db_path).add_context(billing).is_absent


def test_naive_timestamp_is_read_as_utc(db_path, log):
    log.save(_message(user_id=4).input, "a", "weather_pkg", "forecast")
    naive = utcnow().replace(tzinfo=None).isoformat()
    with connect(db_path) as con:
        con.execute("UPDATE interactions SET created_at = ?", (naive,))

    assert _tracker(db_path).add_context(_message(user_id=4)).is_found
    assert _tracker(db_path, offset_seconds=301).add_context(_message(user_id=4)).is_absent
