import asyncio

import pytest

from replayact.agent.actions import ActionKind, FailureKind
from replayact.agent.executor import ActionExecutor
from replayact.errors import BridgeError


def execute(bridge, payload):
    return asyncio.run(ActionExecutor(bridge).execute(payload))


def test_every_action_kind_has_a_handler(bridge):
    assert set(ActionExecutor(bridge)._handlers) == set(ActionKind)


def test_click_goes_through_the_page(bridge):
    outcome = execute(bridge, {"action": "click", "selector": "#save"})

    assert outcome.success
    assert bridge.executed == [{"action": "click", "selector": "#save"}]


def test_navigate_reports_target(bridge):
    outcome = execute(bridge, {"action": "navigate", "url": "https://crm.example.com/new"})

    assert outcome.success
    assert outcome.message == "Navigating to https://crm.example.com/new"


def test_non_string_text_is_rejected_before_the_page(bridge):
    outcome = execute(bridge, {"action": "type", "selector": "#price", "value": 450000})

    assert not outcome.success
    assert outcome.failure == FailureKind.TYPE_ERROR
    assert bridge.requests == []


def test_unknown_action(bridge):
    outcome = execute(bridge, {"action": "teleport"})

    assert outcome.failure == FailureKind.UNKNOWN_ACTION
    assert "teleport" in outcome.message


def test_missing_selector(bridge):
    outcome = execute(bridge, {"action": "click"})

    assert outcome.failure == FailureKind.EXECUTION_ERROR
    assert bridge.requests == []


def test_non_numeric_coordinates(bridge):
    outcome = execute(bridge, {"action": "click_coordinates", "x": "10", "y": 20})

    assert outcome.failure == FailureKind.TYPE_ERROR


@pytest.mark.parametrize("kind, expected", [
    ("ElementNotFound", FailureKind.ELEMENT_NOT_FOUND),
    ("NoMatchingElement", FailureKind.NO_MATCHING_ELEMENT),
    ("Timeout", FailureKind.TRANSPORT_ERROR),
    ("NoPage", FailureKind.TRANSPORT_ERROR),
    (None, FailureKind.EXECUTION_ERROR),
])
def test_page_errors_map_to_failure_kinds(bridge, kind, expected):
    bridge.action_errors = [BridgeError("boom", kind=kind)]

    outcome = execute(bridge, {"action": "click_text", "text": "Save"})

    assert not outcome.success
    assert outcome.failure == expected
    assert outcome.message == "boom"


def test_wait_and_noop_stay_in_python(bridge):
    assert execute(bridge, {"action": "wait", "duration": 5}).success
    assert execute(bridge, {"action": "noop"}).success
    assert bridge.requests == []


def test_non_string_text_at_cursor_is_rejected_before_the_page(bridge):
    outcome = execute(bridge, {"action": "type_at_cursor", "text": ["12", "Oak"]})

    assert outcome.failure == FailureKind.TYPE_ERROR
    assert bridge.requests == []
