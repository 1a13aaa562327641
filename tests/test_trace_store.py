import asyncio
import json
import os

import pytest

from replayact.agent.state import RunResult, RunStatus
from replayact.agent.substitution import Listing
from replayact.agent.trace import Trace, TraceStatus
from replayact.backend.store import FileWorkflowStore
from replayact.errors import TraceFrozenError


def test_append_numbers_steps_and_keeps_value_key():
    trace = Trace(workflow_id="wf1")
    trace.append({"action": "type", "selector": "#a", "value": "{{ADDRESS}}", "field_label": "Address"}, timestamp="t1")
    trace.append({"action": "click", "selector": "#save"}, timestamp="t2")

    assert [a.step for a in trace.actions] == [1, 2]
    assert trace.to_dict()["actions"][0] == {
        "action": "type", "selector": "#a", "value": "{{ADDRESS}}", "field_label": "Address", "step": 1, "timestamp": "t1",
    }


def test_finalized_trace_is_frozen():
    trace = Trace(workflow_id="wf1")
    trace.append({"action": "click", "selector": "#save"})
    trace.finalize()

    assert trace.status == TraceStatus.READY
    with pytest.raises(TraceFrozenError):
        trace.append({"action": "click", "selector": "#again"})
    assert len(trace) == 1


def test_save_and_load(tmp_path):
    trace = Trace(workflow_id="wf1", name="Add listing", website="https://crm.example.com")
    trace.append({"action": "navigate", "url": "https://crm.example.com/new"})
    trace.finalize()
    path = os.path.join(tmp_path, "wf1.json")

    trace.save(path)
    loaded = Trace.load(path)

    assert loaded.to_dict() == trace.to_dict()


def test_file_store_lifecycle(tmp_path):
    store = FileWorkflowStore(str(tmp_path))

    async def scenario():
        trace = await store.create("Learn how to add a listing", "https://crm.example.com")
        await store.record(trace, {"action": "click", "selector": "#new"})
        await store.finalize(trace)
        await store.report(Listing(id="L1"), RunResult(status=RunStatus.COMPLETED, iterations=2))
        return trace, await store.load(trace.workflow_id)

    trace, loaded = asyncio.run(scenario())

    assert loaded.name == "Add a listing"
    assert loaded.status == TraceStatus.READY
    assert loaded[0].action.selector == "#new"
    with open(os.path.join(tmp_path, "workflows", "reports.jsonl"), encoding="utf-8") as f:
        entry = json.loads(f.readline())
    assert entry["listing_id"] == "L1"
    assert entry["iterations"] == 2
