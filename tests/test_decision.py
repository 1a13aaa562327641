import asyncio

import pytest

from conftest import ScriptedService, decision
from replayact.agent.actions import ActionKind
from replayact.agent.decision import (
    DecisionContext, ReasoningDecisionSource, RemoteTraceDecisionSource, TraceDecisionSource, resolve_termination,
)
from replayact.agent.state import HistoryEntry
from replayact.agent.trace import Trace
from replayact.browser.dom import ElementSummary
from replayact.errors import DecisionParseError, DecisionTransportError


def context(**kwargs):
    return DecisionContext(goal="Add the listing", current_url="https://crm.example.com", **kwargs)


def decide(source, ctx=None):
    return asyncio.run(source.decide(ctx or context()))


@pytest.mark.parametrize("payload, explicit, rationale, expected", [
    ({"action": "click"}, True, "", True),
    (None, False, "Task complete", False),
    ({"action": "click"}, None, "Form finished.", True),
    ({"action": "click"}, None, "Clicking save", False),
    (None, None, "", True),
])
def test_resolve_termination(payload, explicit, rationale, expected):
    assert resolve_termination(payload, explicit, rationale) is expected


def test_reasoning_payload_shape():
    service = ScriptedService([decision({"action": "click", "selector": "#save"})])
    source = ReasoningDecisionSource(service, history_window=2)
    ctx = context(
        snapshot="data:image/png;base64,AAAA",
        elements=[ElementSummary(type="button", text="Save", selector="#save")],
        history=[HistoryEntry("click", "#a", "success"), HistoryEntry("type", "#b", "success"), HistoryEntry("scroll", None, "failed: x")],
        iteration=3,
    )

    result = decide(source, ctx)

    assert result.action.kind == ActionKind.CLICK
    assert result.done is False
    payload = service.payloads[0]
    assert payload["screenshot"] == "data:image/png;base64,AAAA"
    assert payload["currentUrl"] == "https://crm.example.com"
    assert payload["iteration"] == 3
    assert payload["availableElements"] == [{"type": "button", "text": "Save", "selector": "#save"}]
    assert payload["actionHistory"] == [
        {"action": "type", "selector": "#b", "result": "success"},
        {"action": "scroll", "result": "failed: x"},
    ]


def test_done_inside_action_is_honored():
    service = ScriptedService([decision({"action": "click", "selector": "#save", "done": True}, response="Saving")])

    result = decide(ReasoningDecisionSource(service))

    assert result.done is True
    assert result.action is None


def test_service_exception_is_a_transport_error():
    service = ScriptedService([TimeoutError("slow")])

    with pytest.raises(DecisionTransportError):
        decide(ReasoningDecisionSource(service))


def test_unsuccessful_envelope_is_a_transport_error():
    service = ScriptedService([{"success": False, "error": "rate limited"}])

    with pytest.raises(DecisionTransportError, match="rate limited"):
        decide(ReasoningDecisionSource(service))


@pytest.mark.parametrize("envelope", [
    "nonsense",
    {"success": True},
    {"success": True, "data": {"action": "click"}},
])
def test_malformed_envelopes_are_parse_errors(envelope):
    with pytest.raises(DecisionParseError):
        decide(ReasoningDecisionSource(ScriptedService([envelope])))


def test_action_without_kind_counts_as_no_action():
    service = ScriptedService([decision({"selector": "#x"}, response="Looking")])

    result = decide(ReasoningDecisionSource(service))

    assert result.action is None
    assert result.done is True


def test_trace_source_walks_the_cursor():
    trace = Trace.from_dict({"id": "wf", "actions": [
        {"action": "type", "selector": "#city", "value": "{{CITY}}"},
        {"action": "type", "selector": "#pool", "value": "{{POOL}}"},
    ]})
    source = TraceDecisionSource(trace, {"city": "Portland"})

    first = decide(source, context(step_cursor=0))
    second = decide(source, context(step_cursor=1))
    last = decide(source, context(step_cursor=2))

    assert first.action.text == "Portland"
    assert first.rationale == "Step 1/2"
    assert second.unresolved == ["POOL"]
    assert last.done is True
    assert last.action is None


class FakeRemote:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    async def get_next_action(self, workflow_id, listing_id, current_step):
        self.calls.append((workflow_id, listing_id, current_step))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def test_remote_trace_source():
    client = FakeRemote({"action": {"action": "type", "selector": "#a", "value": "12 Oak St"}, "step": 2, "totalSteps": 5})

    result = decide(RemoteTraceDecisionSource(client, "wf1", "L1"), context(step_cursor=1))

    assert client.calls == [("wf1", "L1", 1)]
    assert result.action.text == "12 Oak St"
    assert result.rationale == "Step 2/5"


def test_remote_trace_source_done_and_errors():
    assert decide(RemoteTraceDecisionSource(FakeRemote({"done": True}), "wf1", "L1")).done is True
    with pytest.raises(DecisionTransportError):
        decide(RemoteTraceDecisionSource(FakeRemote(ConnectionError("down")), "wf1", "L1"))
    with pytest.raises(DecisionParseError):
        decide(RemoteTraceDecisionSource(FakeRemote({"step": 1}), "wf1", "L1"))
