# -*- coding: utf-8 -*-
# Copyright (c) 2024 OSU Natural Language Processing Group
#
# Licensed under the OpenRAIL-S License;
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.licenses.ai/ai-pubs-open-rails-vz1
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
import asyncio
import base64
import logging

from playwright.async_api import Error as PlaywrightError

from replayact.browser.content import CONTENT_SCRIPT, HANDLE_EXPRESSION, PRESENCE_EXPRESSION
from replayact.errors import BridgeError

logger = logging.getLogger(__name__)

MESSAGE_TYPES = (
    "capture_screenshot",
    "get_page_info",
    "inspect_page",
    "execute_action",
    "show_overlay",
    "update_overlay",
    "add_overlay_message",
    "hide_overlay",
    "clear_error_logs",
    "get_error_logs",
)

RESTRICTED_SCHEMES = ("chrome://", "edge://", "about:")

# A click that starts a navigation tears down the page's JS context mid-call.
_CONTEXT_GONE_MARKERS = ("Execution context was destroyed",)


async def install_content_script(page):
    """Register the content script so every document loaded in ``page`` gets it."""
    await page.add_init_script(CONTENT_SCRIPT)


class PageBridge:
    """
    Request/response channel to the script running inside the page.

    Every request is bounded by ``timeout`` seconds; a closed page, a timeout
    or a ``{"success": false}`` reply all surface as ``BridgeError``.
    """

    def __init__(self, page, timeout=30):
        self.page = page
        self.timeout = timeout

    @property
    def available(self):
        return self.page is not None and not self.page.is_closed()

    @property
    def url(self):
        return self.page.url if self.available else ""

    def _require_page(self):
        if not self.available:
            raise BridgeError("No active page", kind="NoPage")

    async def ensure_content_script(self):
        self._require_page()
        present = await self._bounded(self.page.evaluate(PRESENCE_EXPRESSION), "ping")
        if not present:
            logger.debug(f"Injecting content script into {self.page.url}")
            await self._bounded(self.page.evaluate(CONTENT_SCRIPT), "inject")

    async def _bounded(self, awaitable, label):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise BridgeError(f"Page did not answer '{label}' within {self.timeout}s", kind="Timeout") from e
        except PlaywrightError as e:
            raise BridgeError(f"Page request '{label}' failed: {e}", kind="PageError") from e

    async def capture_screenshot(self):
        self._require_page()
        png = await self._bounded(self.page.screenshot(type="png", full_page=False), "capture_screenshot")
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")

    async def request(self, message):
        message_type = message.get("type")
        if message_type not in MESSAGE_TYPES:
            raise BridgeError(f"Unsupported message type: {message_type}", kind="UnknownMessage")
        if message_type == "capture_screenshot":
            return {"success": True, "data": await self.capture_screenshot()}

        await self.ensure_content_script()
        try:
            reply = await self._bounded(self.page.evaluate(HANDLE_EXPRESSION, message), message_type)
        except BridgeError as e:
            if (
                message_type == "execute_action"
                and e.kind == "PageError"
                and any(marker in str(e) for marker in _CONTEXT_GONE_MARKERS)
            ):
                return {"success": True, "result": {"navigated": True}}
            raise

        if not isinstance(reply, dict):
            raise BridgeError(f"Malformed reply to '{message_type}': {reply!r}", kind="Malformed")
        if not reply.get("success"):
            raise BridgeError(reply.get("error") or f"'{message_type}' failed", kind=reply.get("errorKind"))
        return reply

    async def page_info(self):
        reply = await self.request({"type": "get_page_info"})
        return reply.get("data") or {}

    async def notify(self, message):
        """Fire an overlay/log message; page-side failures are logged and dropped."""
        try:
            await self.request(message)
        except BridgeError as e:
            logger.debug(f"Overlay message '{message.get('type')}' not delivered: {e}")


def is_restricted_url(url):
    return not url or url.startswith(RESTRICTED_SCHEMES)
