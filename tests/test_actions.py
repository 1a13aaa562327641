import pytest

from replayact.agent.actions import ACTION_FIELDS, REQUIRED_FIELDS, Action, ActionKind, ActionOutcome, FailureKind


def test_every_kind_has_field_tables():
    assert set(ACTION_FIELDS) == set(ActionKind)
    assert set(REQUIRED_FIELDS) == set(ActionKind)
    for kind in ActionKind:
        assert set(REQUIRED_FIELDS[kind]) <= set(ACTION_FIELDS[kind])


def test_value_is_an_alias_of_text():
    action = Action.from_payload({"action": "type", "selector": "#price", "value": "{{PRICE}}", "field_label": "Price"})

    assert action.kind == ActionKind.TYPE
    assert action.text == "{{PRICE}}"
    assert action.extra == {"field_label": "Price"}
    assert action.to_payload() == {"action": "type", "selector": "#price", "text": "{{PRICE}}", "field_label": "Price"}


def test_unknown_kind_is_kept_for_reporting():
    action = Action.from_payload({"action": "Teleport", "x": 1})

    assert action.kind is None
    assert action.name == "Teleport"
    assert action.missing_fields() == ()


def test_kind_is_case_insensitive():
    assert Action.from_payload({"action": " CLICK ", "selector": "a"}).kind == ActionKind.CLICK


def test_payload_must_be_a_dict():
    with pytest.raises(TypeError):
        Action.from_payload(["click"])


def test_missing_required_fields():
    assert Action.from_payload({"action": "navigate"}).missing_fields() == ("url",)
    assert Action.from_payload({"action": "click_coordinates", "x": 10}).missing_fields() == ("y",)


def test_describe():
    assert Action.from_payload({"action": "type", "selector": "#a", "text": "hi"}).describe() == "type 'hi' on #a"
    assert Action.from_payload({"action": "wait"}).describe() == "wait 1000ms"


def test_failure_kind_from_page_error_names():
    assert FailureKind.from_page("ElementNotFound") == FailureKind.ELEMENT_NOT_FOUND
    assert FailureKind.from_page("NoMatchingElement") == FailureKind.NO_MATCHING_ELEMENT
    assert FailureKind.from_page("SomethingElse") == FailureKind.EXECUTION_ERROR
    assert FailureKind.from_page(None) == FailureKind.EXECUTION_ERROR


def test_history_result():
    assert ActionOutcome.ok().history_result == "success"
    assert ActionOutcome.failed(FailureKind.TYPE_ERROR, "bad text").history_result == "failed: bad text"
