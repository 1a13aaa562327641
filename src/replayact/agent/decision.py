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
"""
Decision sources: where the next action comes from.

The agent loop only talks to ``DecisionSource.decide``; whether the answer
comes from a reasoning model or from a recorded trace is the source's business.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from replayact.agent.actions import Action
from replayact.agent.substitution import substitute_action
from replayact.errors import DecisionError, DecisionParseError, DecisionTransportError
from replayact.prompts.format import mentions_completion

logger = logging.getLogger(__name__)


@dataclass
class DecisionContext:
    goal: str
    snapshot: Optional[str] = None
    elements: Sequence[Any] = ()
    history: Sequence[Any] = ()
    iteration: int = 0
    step_cursor: int = 0
    current_url: str = ""
    page_title: str = ""
    session: Any = None


@dataclass
class Decision:
    action: Optional[Action]
    rationale: str = ""
    done: bool = False
    unresolved: List[str] = field(default_factory=list)


class DecisionSource(ABC):
    name = "decision"
    # trace replay does not look at the page, so the loop can skip capture/inspect
    needs_perception = True

    @abstractmethod
    async def decide(self, context: DecisionContext) -> Decision:
        """Return the next decision; raise DecisionTransportError (retryable) or DecisionParseError."""


def resolve_termination(action_payload, explicit_done, rationale):
    """
    Layered completion check.

    An explicit ``done`` flag is authoritative, and ``done: true`` wins over an
    accompanying action. Without a flag the rationale is scanned for completion
    phrases, and a reply with no action at all also counts as done.
    """
    if explicit_done is not None:
        return bool(explicit_done)
    if mentions_completion(rationale):
        return True
    return action_payload is None


class ReasoningDecisionSource(DecisionSource):
    name = "reasoning"

    def __init__(self, service, history_window=5):
        self.service = service
        self.history_window = history_window

    def build_payload(self, context: DecisionContext):
        history = list(context.history)[-self.history_window:] if self.history_window > 0 else []
        return {
            "screenshot": context.snapshot,
            "goal": context.goal,
            "currentUrl": context.current_url,
            "availableElements": [e.to_payload() if hasattr(e, "to_payload") else e for e in context.elements],
            "iteration": context.iteration,
            "actionHistory": [h.to_payload() if hasattr(h, "to_payload") else h for h in history],
        }

    async def decide(self, context: DecisionContext) -> Decision:
        payload = self.build_payload(context)
        try:
            envelope = await self.service.request(payload, context.session)
        except DecisionError:
            raise
        except Exception as e:
            raise DecisionTransportError(f"Decision request failed: {e}") from e

        if not isinstance(envelope, dict):
            raise DecisionParseError(f"Decision response must be an object, got {type(envelope).__name__}")
        if not envelope.get("success"):
            raise DecisionTransportError(envelope.get("error") or "Decision service reported failure")

        data = envelope.get("data")
        if not isinstance(data, dict):
            raise DecisionParseError("Decision response has no data object")
        action_payload = data.get("action")
        if action_payload is not None and not isinstance(action_payload, dict):
            raise DecisionParseError(f"Action must be an object, got {type(action_payload).__name__}")

        explicit_done = data.get("done") if isinstance(data.get("done"), bool) else None
        if action_payload is not None:
            if isinstance(action_payload.get("done"), bool):
                explicit_done = action_payload["done"] or bool(explicit_done)
            action_payload = {k: v for k, v in action_payload.items() if k != "done"}
            if not action_payload.get("action"):
                action_payload = None

        rationale = data.get("response") or ""
        if not isinstance(rationale, str):
            rationale = str(rationale)

        done = resolve_termination(action_payload, explicit_done, rationale)
        action = Action.from_payload(action_payload) if action_payload is not None else None
        if done and action is not None:
            logger.info(f"Decision marked done; not executing accompanying {action.describe()}")
            action = None
        return Decision(action=action, rationale=rationale, done=done)


class TraceDecisionSource(DecisionSource):
    """Deterministic replay of a recorded trace against one listing."""

    name = "trace"
    needs_perception = False

    def __init__(self, trace, record):
        self.trace = trace
        self.record = record

    async def decide(self, context: DecisionContext) -> Decision:
        cursor = context.step_cursor
        if cursor >= len(self.trace):
            return Decision(action=None, rationale="All recorded steps replayed", done=True)
        recorded = self.trace[cursor]
        action, unresolved = substitute_action(recorded.action, self.record)
        return Decision(
            action=action,
            rationale=f"Step {cursor + 1}/{len(self.trace)}",
            done=False,
            unresolved=list(unresolved),
        )


class RemoteTraceDecisionSource(DecisionSource):
    """Replay driven by the backend, which keeps the trace and substitutes server-side."""

    name = "remote_trace"
    needs_perception = False

    def __init__(self, client, workflow_id, listing_id):
        self.client = client
        self.workflow_id = workflow_id
        self.listing_id = listing_id

    async def decide(self, context: DecisionContext) -> Decision:
        try:
            reply = await self.client.get_next_action(self.workflow_id, self.listing_id, context.step_cursor)
        except Exception as e:
            raise DecisionTransportError(f"get-next-action failed: {e}") from e
        if not isinstance(reply, dict):
            raise DecisionParseError("get-next-action returned a non-object reply")
        if reply.get("done"):
            return Decision(action=None, rationale="All recorded steps replayed", done=True)
        action_payload = reply.get("action")
        if not isinstance(action_payload, dict):
            raise DecisionParseError("get-next-action reply has neither done nor an action")
        step = reply.get("step", context.step_cursor + 1)
        total = reply.get("totalSteps", "?")
        return Decision(action=Action.from_payload(action_payload), rationale=f"Step {step}/{total}", done=False)
