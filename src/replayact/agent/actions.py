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
Action vocabulary shared by the reasoning and the trace-driven decision sources.

Both sources hand the agent the same wire dict (``{"action": "click",
"selector": "#go", ...}``); ``Action.from_payload`` normalizes it once so the
executor only ever sees one shape.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class ActionKind(str, Enum):
    CLICK = "click"
    CLICK_TEXT = "click_text"
    TYPE = "type"
    SCROLL = "scroll"
    NAVIGATE = "navigate"
    UPLOAD = "upload"
    WAIT = "wait"
    # Computer-control dialect produced by the vision model
    CLICK_COORDINATES = "click_coordinates"
    TYPE_AT_CURSOR = "type_at_cursor"
    KEY_PRESS = "key_press"
    MOUSE_MOVE = "mouse_move"
    NOOP = "noop"


# Fields each kind reads; everything else on the action is ignored for that kind.
ACTION_FIELDS: Dict[ActionKind, Tuple[str, ...]] = {
    ActionKind.CLICK: ("selector", "x", "y"),
    ActionKind.CLICK_TEXT: ("text",),
    ActionKind.TYPE: ("selector", "text"),
    ActionKind.SCROLL: ("x", "y"),
    ActionKind.NAVIGATE: ("url",),
    ActionKind.UPLOAD: ("selector", "filepath"),
    ActionKind.WAIT: ("duration",),
    ActionKind.CLICK_COORDINATES: ("x", "y"),
    ActionKind.TYPE_AT_CURSOR: ("text",),
    ActionKind.KEY_PRESS: ("key",),
    ActionKind.MOUSE_MOVE: ("x", "y"),
    ActionKind.NOOP: (),
}

REQUIRED_FIELDS: Dict[ActionKind, Tuple[str, ...]] = {
    ActionKind.CLICK: ("selector",),
    ActionKind.CLICK_TEXT: ("text",),
    ActionKind.TYPE: ("selector",),
    ActionKind.SCROLL: (),
    ActionKind.NAVIGATE: ("url",),
    ActionKind.UPLOAD: ("selector",),
    ActionKind.WAIT: (),
    ActionKind.CLICK_COORDINATES: ("x", "y"),
    ActionKind.TYPE_AT_CURSOR: (),
    ActionKind.KEY_PRESS: ("key",),
    ActionKind.MOUSE_MOVE: ("x", "y"),
    ActionKind.NOOP: (),
}

TEXT_INPUT_KINDS = (ActionKind.TYPE, ActionKind.TYPE_AT_CURSOR)

DEFAULT_WAIT_MS = 1000

_PAYLOAD_FIELDS = ("selector", "text", "url", "filepath", "x", "y", "key", "duration")


@dataclass(frozen=True)
class Action:
    kind: Optional[ActionKind]
    raw_kind: str = ""
    selector: Optional[str] = None
    text: Any = None
    url: Optional[str] = None
    filepath: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    key: Optional[str] = None
    duration: Optional[float] = None
    reasoning: str = ""
    # Keys the agent does not interpret (field_label, ...) survive a record/replay round trip.
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload):
        """
        Build an action from a decision payload.

        ``value`` is accepted as an alias of ``text``; recorded traces and the
        backend use the former. Unknown kinds are kept as ``raw_kind`` with
        ``kind=None`` so execution can report them.
        """
        if isinstance(payload, Action):
            return payload
        if not isinstance(payload, dict):
            raise TypeError(f"Action payload must be a dict, got {type(payload).__name__}")

        raw_kind = payload.get("action")
        raw_kind = raw_kind.strip() if isinstance(raw_kind, str) else ""
        try:
            kind = ActionKind(raw_kind.lower())
        except ValueError:
            kind = None

        text = payload.get("text")
        if text is None or text == "":
            text = payload.get("value", text)

        known = set(_PAYLOAD_FIELDS) | {"action", "value", "reasoning"}
        extra = {k: v for k, v in payload.items() if k not in known}

        reasoning = payload.get("reasoning")
        return cls(
            kind=kind,
            raw_kind=raw_kind,
            selector=payload.get("selector"),
            text=text,
            url=payload.get("url"),
            filepath=payload.get("filepath"),
            x=payload.get("x"),
            y=payload.get("y"),
            key=payload.get("key"),
            duration=payload.get("duration"),
            reasoning=reasoning if isinstance(reasoning, str) else "",
            extra=extra,
        )

    @property
    def name(self):
        return self.kind.value if self.kind else (self.raw_kind or "unknown")

    def missing_fields(self):
        if self.kind is None:
            return ()
        return tuple(f for f in REQUIRED_FIELDS[self.kind] if getattr(self, f) in (None, ""))

    def to_payload(self):
        payload = dict(self.extra)
        payload["action"] = self.name
        for name in _PAYLOAD_FIELDS:
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        if self.reasoning:
            payload["reasoning"] = self.reasoning
        return payload

    def with_fields(self, **changes):
        return replace(self, **changes)

    def describe(self):
        if self.kind is None:
            return f"{self.name} (unknown action)"
        parts = [self.name]
        if self.kind in (ActionKind.TYPE, ActionKind.TYPE_AT_CURSOR) and isinstance(self.text, str):
            shown = self.text if len(self.text) <= 50 else self.text[:50] + "..."
            parts.append(f"'{shown}'")
        elif self.kind == ActionKind.CLICK_TEXT and self.text:
            parts.append(f"'{self.text}'")
        if self.selector and "selector" in ACTION_FIELDS[self.kind]:
            parts.append(f"on {self.selector}")
        if self.kind == ActionKind.NAVIGATE and self.url:
            parts.append(f"to {self.url}")
        if self.kind == ActionKind.KEY_PRESS and self.key:
            parts.append(self.key)
        if self.kind in (ActionKind.CLICK_COORDINATES, ActionKind.MOUSE_MOVE, ActionKind.SCROLL) and self.x is not None:
            parts.append(f"at ({self.x}, {self.y})")
        if self.kind == ActionKind.WAIT:
            parts.append(f"{self.duration or DEFAULT_WAIT_MS}ms")
        return " ".join(parts)


class FailureKind(str, Enum):
    ELEMENT_NOT_FOUND = "element_not_found"
    NO_MATCHING_ELEMENT = "no_matching_element"
    TYPE_ERROR = "type_error"
    UNKNOWN_ACTION = "unknown_action"
    CAPTURE_ERROR = "capture_error"
    TRANSPORT_ERROR = "transport_error"
    EXECUTION_ERROR = "execution_error"

    @classmethod
    def from_page(cls, name):
        """Map the error name thrown by the content script onto a failure kind."""
        return {
            "ElementNotFound": cls.ELEMENT_NOT_FOUND,
            "NoMatchingElement": cls.NO_MATCHING_ELEMENT,
            "TypeError": cls.TYPE_ERROR,
            "UnknownAction": cls.UNKNOWN_ACTION,
        }.get(name or "", cls.EXECUTION_ERROR)


@dataclass(frozen=True)
class ActionOutcome:
    success: bool
    data: Any = None
    failure: Optional[FailureKind] = None
    message: str = ""

    @classmethod
    def ok(cls, data=None, message=""):
        return cls(success=True, data=data, message=message)

    @classmethod
    def failed(cls, failure, message):
        return cls(success=False, failure=failure, message=message)

    @property
    def history_result(self):
        return "success" if self.success else f"failed: {self.message}"
