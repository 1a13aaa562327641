import logging

import pytest

from replayact.errors import BridgeError


class FakeBridge:
    """Stands in for ``PageBridge``: answers page requests from memory and records executed actions."""

    def __init__(self, url="https://crm.example.com/listings/new", elements=None):
        self.page = object()
        self._url = url
        self.closed = False
        self.elements = elements if elements is not None else [
            {"type": "input", "tag": "input", "inputType": "text", "label": "Address", "selector": "#address"},
            {"type": "button", "text": "Save", "selector": "#save"},
        ]
        self.requests = []
        self.executed = []
        self.notifications = []
        # BridgeErrors raised by the next execute_action requests, in order
        self.action_errors = []
        self.capture_errors = []

    @property
    def available(self):
        return self.page is not None and not self.closed

    @property
    def url(self):
        return self._url if self.available else ""

    async def request(self, message):
        self.requests.append(message)
        if not self.available:
            raise BridgeError("No active page", kind="NoPage")
        message_type = message["type"]
        if message_type == "capture_screenshot":
            if self.capture_errors:
                raise self.capture_errors.pop(0)
            return {"success": True, "data": "data:image/png;base64,iVBORw0KGgo="}
        if message_type == "get_page_info":
            return {"success": True, "data": {"url": self._url, "title": "New listing"}}
        if message_type == "inspect_page":
            return {"success": True, "data": list(self.elements)}
        if message_type == "execute_action":
            if self.action_errors:
                raise self.action_errors.pop(0)
            self.executed.append(message["action"])
            return {"success": True, "result": {"ok": True}}
        return {"success": True}

    async def page_info(self):
        reply = await self.request({"type": "get_page_info"})
        return reply["data"]

    async def notify(self, message):
        self.notifications.append(message)


class ScriptedService:
    """Reasoning service that replays canned envelopes; exceptions in the script are raised."""

    def __init__(self, replies, on_request=None):
        self.replies = list(replies)
        self.payloads = []
        self.sessions = []
        self.on_request = on_request

    async def request(self, payload, session=None):
        self.payloads.append(payload)
        self.sessions.append(session)
        if self.on_request is not None:
            self.on_request(payload)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


def decision(action=None, response="", done=None):
    data = {"response": response, "action": action}
    if done is not None:
        data["done"] = done
    return {"success": True, "data": data}


def make_config(tmp_path, **agent):
    agent_config = {
        "inter_action_delay": 0,
        "decision_backoff_factor": 0,
        "replay_delay": 0,
        "max_iterations": 10,
    }
    agent_config.update(agent)
    return {
        "basic": {"save_file_dir": str(tmp_path)},
        "agent": agent_config,
    }


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def make_agent(tmp_path, bridge):
    from replayact.agent.agent import BrowserAgent
    from replayact.backend.store import FileWorkflowStore

    def _make(service=None, store=None, **agent):
        return BrowserAgent(
            config=make_config(tmp_path, **agent),
            run_id="test_run",
            bridge=bridge,
            store=store or FileWorkflowStore(str(tmp_path)),
            reasoning_service=service,
            logger=logging.getLogger("replayact.test"),
            create_timestamp_dir=False,
        )

    return _make
