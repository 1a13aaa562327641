import asyncio
import json
import logging
import os

from replayact.agent.reporting import StatusReporter, save_results
from replayact.agent.state import RunResult, RunStatus


def test_status_events_reach_async_sink():
    events = []

    async def sink(event):
        events.append(event)

    reporter = StatusReporter(sink=sink)

    async def scenario():
        await reporter.update("Executing: click on #save", "Iteration 1/50")
        await reporter.message("Saved", "info")

    asyncio.run(scenario())

    assert events[0] == {
        "type": "status_update", "currentAction": "Executing: click on #save", "progress": "Iteration 1/50", "running": True,
    }
    assert events[1] == {"type": "agent_message", "content": "Saved", "messageType": "info"}


def test_failing_sink_does_not_raise():
    def sink(event):
        raise RuntimeError("listener gone")

    asyncio.run(StatusReporter(sink=sink).message("still fine"))


def test_message_log_is_bounded():
    reporter = StatusReporter(max_messages=20)

    async def scenario():
        for i in range(150):
            await reporter.message(f"message {i}")

    asyncio.run(scenario())

    assert len(reporter.messages) == 20
    assert reporter.messages[0] == "message 130"
    assert reporter.messages[-1] == "message 149"


def test_save_results_masks_secrets(tmp_path):
    config = {"api_keys": {"openrouter_api_key": "sk-live"}, "backend": {"url": "http://b", "auth_token": "tok"}}
    result = RunResult(status=RunStatus.COMPLETED, exit_by="done", message="Task complete", iterations=3)

    save_results(str(tmp_path), "run1", result, config, logging.getLogger("replayact.test"), extra={"workflow_id": "wf1"})

    with open(os.path.join(tmp_path, "result.json"), encoding="utf-8") as f:
        saved = json.load(f)
    assert saved["run_id"] == "run1"
    assert saved["status"] == "completed"
    assert saved["workflow_id"] == "wf1"
    with open(os.path.join(tmp_path, "config.toml"), encoding="utf-8") as f:
        text = f.read()
    assert "sk-live" not in text
    assert 'auth_token = "Your token here"' in text
