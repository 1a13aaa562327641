import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from replayact.browser.bridge import PageBridge, is_restricted_url
from replayact.browser.content import HANDLE_EXPRESSION, PRESENCE_EXPRESSION
from replayact.errors import BridgeError


class FakePage:
    def __init__(self, handler, url="https://crm.example.com"):
        self.handler = handler
        self.url = url
        self.closed = False
        self.evaluated = []

    def is_closed(self):
        return self.closed

    async def evaluate(self, expression, arg=None):
        self.evaluated.append(expression)
        if expression == PRESENCE_EXPRESSION:
            return True
        assert expression == HANDLE_EXPRESSION
        return await self.handler(arg)

    async def screenshot(self, **kwargs):
        return b"\x89PNG"


def request(bridge, message):
    return asyncio.run(bridge.request(message))


async def ok(message):
    return {"success": True, "data": {"url": "https://crm.example.com", "title": "CRM"}}


def test_page_info():
    bridge = PageBridge(FakePage(ok))

    assert asyncio.run(bridge.page_info()) == {"url": "https://crm.example.com", "title": "CRM"}


def test_screenshot_is_a_png_data_url():
    reply = request(PageBridge(FakePage(ok)), {"type": "capture_screenshot"})

    assert reply["data"] == "data:image/png;base64,iVBORw=="


def test_unknown_message_type():
    with pytest.raises(BridgeError) as info:
        request(PageBridge(FakePage(ok)), {"type": "format_disk"})
    assert info.value.kind == "UnknownMessage"


def test_page_side_failure_carries_error_kind():
    async def missing(message):
        return {"success": False, "error": "Element not found: #x", "errorKind": "ElementNotFound"}

    with pytest.raises(BridgeError, match="Element not found") as info:
        request(PageBridge(FakePage(missing)), {"type": "execute_action", "action": {"action": "click", "selector": "#x"}})
    assert info.value.kind == "ElementNotFound"


def test_request_is_bounded_by_timeout():
    async def hang(message):
        await asyncio.sleep(5)

    with pytest.raises(BridgeError) as info:
        request(PageBridge(FakePage(hang), timeout=0.05), {"type": "get_page_info"})
    assert info.value.kind == "Timeout"


def test_navigation_tearing_down_the_context_counts_as_success():
    async def navigating(message):
        raise PlaywrightError("Execution context was destroyed, most likely because of a navigation")

    reply = request(PageBridge(FakePage(navigating)), {"type": "execute_action", "action": {"action": "click", "selector": "a"}})

    assert reply["result"] == {"navigated": True}


def test_other_playwright_errors_are_page_errors():
    async def broken(message):
        raise PlaywrightError("Target closed")

    with pytest.raises(BridgeError) as info:
        request(PageBridge(FakePage(broken)), {"type": "inspect_page"})
    assert info.value.kind == "PageError"


def test_closed_page():
    page = FakePage(ok)
    page.closed = True
    bridge = PageBridge(page)

    assert not bridge.available
    assert bridge.url == ""
    with pytest.raises(BridgeError):
        request(bridge, {"type": "get_page_info"})


def test_notify_drops_failures():
    async def broken(message):
        raise PlaywrightError("Target closed")

    asyncio.run(PageBridge(FakePage(broken)).notify({"type": "show_overlay"}))


@pytest.mark.parametrize("url, restricted", [
    ("chrome://settings", True),
    ("edge://newtab", True),
    ("about:blank", True),
    ("", True),
    ("https://crm.example.com", False),
    ("http://localhost:3000", False),
])
def test_is_restricted_url(url, restricted):
    assert is_restricted_url(url) is restricted
