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
import logging

from replayact.agent.actions import (
    ActionKind, ActionOutcome, DEFAULT_WAIT_MS, FailureKind, TEXT_INPUT_KINDS, Action,
)
from replayact.errors import BridgeError

logger = logging.getLogger(__name__)

COORDINATE_KINDS = (ActionKind.CLICK_COORDINATES, ActionKind.MOUSE_MOVE, ActionKind.SCROLL)


class ActionExecutor:
    """
    Runs one action against the page and reports an ``ActionOutcome``.

    ``execute`` never raises: targeting misses, contract violations and
    transport failures all come back as failed outcomes so the agent loop
    decides what happens next.
    """

    def __init__(self, bridge):
        self.bridge = bridge
        self._handlers = {
            ActionKind.CLICK: self._in_page,
            ActionKind.CLICK_TEXT: self._in_page,
            ActionKind.TYPE: self._in_page,
            ActionKind.SCROLL: self._in_page,
            ActionKind.NAVIGATE: self._navigate,
            ActionKind.UPLOAD: self._in_page,
            ActionKind.WAIT: self._wait,
            ActionKind.CLICK_COORDINATES: self._in_page,
            ActionKind.TYPE_AT_CURSOR: self._in_page,
            ActionKind.KEY_PRESS: self._in_page,
            ActionKind.MOUSE_MOVE: self._in_page,
            ActionKind.NOOP: self._noop,
        }
        missing = set(ActionKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No executor handler for: {sorted(k.value for k in missing)}")

    async def execute(self, action) -> ActionOutcome:
        if not isinstance(action, Action):
            action = Action.from_payload(action)
        if action.kind is None:
            return ActionOutcome.failed(FailureKind.UNKNOWN_ACTION, f"Unknown action: {action.name}")

        problem = self._validate(action)
        if problem is not None:
            return problem
        try:
            return await self._handlers[action.kind](action)
        except BridgeError as e:
            failure = FailureKind.from_page(e.kind)
            if e.kind in ("Timeout", "PageError", "NoPage"):
                failure = FailureKind.TRANSPORT_ERROR
            return ActionOutcome.failed(failure, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error while executing {action.describe()}")
            return ActionOutcome.failed(FailureKind.EXECUTION_ERROR, f"{type(e).__name__}: {e}")

    def _validate(self, action):
        # text must be a string before anything touches the page
        if action.kind in TEXT_INPUT_KINDS and action.text is not None and not isinstance(action.text, str):
            return ActionOutcome.failed(
                FailureKind.TYPE_ERROR,
                f"Invalid text value: expected string, got {type(action.text).__name__}",
            )
        missing = action.missing_fields()
        if missing:
            return ActionOutcome.failed(
                FailureKind.EXECUTION_ERROR,
                f"{action.name} requires {', '.join(missing)}",
            )
        if action.kind in COORDINATE_KINDS:
            for axis in ("x", "y"):
                value = getattr(action, axis)
                if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
                    return ActionOutcome.failed(
                        FailureKind.TYPE_ERROR,
                        f"Coordinate {axis} must be a number, got {type(value).__name__}",
                    )
        return None

    async def _in_page(self, action):
        reply = await self.bridge.request({"type": "execute_action", "action": action.to_payload()})
        return ActionOutcome.ok(data=reply.get("result"), message=action.describe())

    async def _navigate(self, action):
        # the page starts loading after the reply; the new document is the completion signal
        reply = await self.bridge.request({"type": "execute_action", "action": action.to_payload()})
        data = reply.get("result") or {"navigatingTo": action.url}
        return ActionOutcome.ok(data=data, message=f"Navigating to {action.url}")

    async def _wait(self, action):
        duration = action.duration if isinstance(action.duration, (int, float)) and action.duration > 0 else DEFAULT_WAIT_MS
        await asyncio.sleep(duration / 1000)
        return ActionOutcome.ok(message=f"Waited {duration}ms")

    async def _noop(self, action):
        return ActionOutcome.ok(message="noop")
