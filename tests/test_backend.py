import asyncio
import json

import httpx
import pytest

from replayact.agent.actions import Action
from replayact.agent.state import RunResult, RunStatus
from replayact.agent.substitution import Listing
from replayact.agent.trace import Trace, TraceStatus
from replayact.backend.client import BackendClient, BackendReasoningService, derive_workflow_name
from replayact.backend.store import BackendWorkflowStore
from replayact.errors import BackendError, TraceFrozenError


class Recorder:
    """httpx mock handler that answers from a path -> body table and keeps the requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body, request.headers.get("authorization")))
        status, reply = self.routes.get((request.method, request.url.path), (404, {"success": False, "error": "Not found"}))
        return httpx.Response(status, json=reply)


def client_for(routes, **kwargs):
    recorder = Recorder(routes)
    client = BackendClient("http://backend.test", transport=httpx.MockTransport(recorder), **kwargs)
    return client, recorder


@pytest.mark.parametrize("goal, name", [
    ("Create a workflow to add a new listing", "Add a new listing"),
    ("automate posting listings on the CRM", "Posting listings on the CRM"),
    ("Learn how to upload photos", "Upload photos"),
    ("go", "Go"),
])
def test_derive_workflow_name(goal, name):
    assert derive_workflow_name(goal) == name


def test_long_names_are_cut():
    assert derive_workflow_name("x" * 80) == "X" + "x" * 49 + "..."


def test_create_workflow_sends_bearer_token():
    client, recorder = client_for(
        {("POST", "/api/workflows"): (201, {"success": True, "data": {"workflow": {"id": "wf1"}}})},
        auth_token="secret",
    )

    async def scenario():
        async with client:
            return await client.create_workflow("Add listing", "Add a listing", "https://crm.example.com")

    assert asyncio.run(scenario()) == {"id": "wf1"}
    method, path, body, auth = recorder.requests[0]
    assert body == {"name": "Add listing", "description": "Add a listing", "website": "https://crm.example.com"}
    assert auth == "Bearer secret"


def test_unsuccessful_reply_raises_backend_error():
    client, _ = client_for({("POST", "/api/extension/report-result"): (400, {"success": False, "error": "Listing not found"})})

    with pytest.raises(BackendError, match="Listing not found") as info:
        asyncio.run(client.report_result("L1", True))
    assert info.value.status_code == 400


def test_non_json_reply_raises_backend_error():
    def handler(request):
        return httpx.Response(502, text="Bad gateway")

    client = BackendClient("http://backend.test", transport=httpx.MockTransport(handler))

    with pytest.raises(BackendError, match="502"):
        asyncio.run(client.get_workflow("wf1"))


def test_transport_failure_raises_backend_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    client = BackendClient("http://backend.test", transport=httpx.MockTransport(handler))

    with pytest.raises(BackendError, match="ConnectError"):
        asyncio.run(client.get_next_action("wf1", "L1", 0))


def test_reasoning_service_wraps_ai_decision():
    client, recorder = client_for({
        ("POST", "/api/extension/ai-decision"): (200, {"success": True, "data": {"response": "ok", "action": {"action": "noop"}}}),
    })
    service = BackendReasoningService(client)

    envelope = asyncio.run(service.request({"goal": "Add listing", "iteration": 1}))

    assert envelope == {"success": True, "data": {"response": "ok", "action": {"action": "noop"}}}
    assert recorder.requests[0][2] == {"goal": "Add listing", "iteration": 1}


def test_reasoning_service_reports_backend_failure():
    client, _ = client_for({})

    envelope = asyncio.run(BackendReasoningService(client).request({"goal": "x"}))

    assert envelope["success"] is False
    assert "Not found" in envelope["error"]


def test_backend_store_round_trip():
    client, recorder = client_for({
        ("POST", "/api/workflows"): (201, {"success": True, "data": {"workflow": {"id": "wf9"}}}),
        ("POST", "/api/extension/record-action"): (200, {"success": True, "data": {"step": 1}}),
        ("POST", "/api/workflows/wf9/finalize"): (200, {"success": True, "data": {"workflow": {"id": "wf9", "status": "ready"}}}),
        ("GET", "/api/workflows/wf9"): (200, {"success": True, "data": {"workflow": {
            "id": "wf9",
            "name": "Add listing",
            "status": "ready",
            "recordedActions": [
                {"action": "click", "selector": "#save", "step": 2},
                {"action": "type", "selector": "#a", "value": "{{ADDRESS}}", "step": 1},
            ],
        }}}),
        ("POST", "/api/extension/report-result"): (200, {"success": True, "data": {}}),
    })
    store = BackendWorkflowStore(client)

    async def scenario():
        trace = await store.create("Create a workflow to add a new listing", "https://crm.example.com")
        await store.record(trace, Action.from_payload({"action": "type", "selector": "#a", "value": "{{ADDRESS}}"}))
        await store.finalize(trace)
        loaded = await store.load("wf9")
        await store.report(Listing(id="L1"), RunResult(status=RunStatus.FAILED, message="Element not found"))
        await store.report(Listing(), RunResult(status=RunStatus.COMPLETED))
        return trace, loaded

    trace, loaded = asyncio.run(scenario())

    assert trace.workflow_id == "wf9"
    assert trace.name == "Add a new listing"
    assert trace.status == TraceStatus.READY
    recorded = recorder.requests[1][2]
    assert recorded == {"workflowId": "wf9", "action": {"action": "type", "selector": "#a", "value": "{{ADDRESS}}"}}
    assert [a.action.selector for a in loaded] == ["#a", "#save"]
    assert recorder.requests[-1][2] == {"listingId": "L1", "success": False, "error": "Element not found"}
    assert len(recorder.requests) == 5


def test_backend_record_keeps_local_trace_in_step_with_backend():
    client, recorder = client_for({
        ("POST", "/api/extension/record-action"): (500, {"success": False, "error": "Database unavailable"}),
    })
    store = BackendWorkflowStore(client)
    trace = Trace(workflow_id="wf9")

    with pytest.raises(BackendError, match="Database unavailable"):
        asyncio.run(store.record(trace, {"action": "click", "selector": "#save"}))

    assert len(trace) == 0


def test_backend_record_refuses_finalized_trace_without_calling_out():
    client, recorder = client_for({})
    store = BackendWorkflowStore(client)
    trace = Trace(workflow_id="wf9", status=TraceStatus.READY)

    with pytest.raises(TraceFrozenError):
        asyncio.run(store.record(trace, {"action": "click", "selector": "#save"}))

    assert recorder.requests == []
