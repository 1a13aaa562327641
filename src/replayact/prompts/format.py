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
import json
import logging

from replayact.errors import DecisionParseError

logger = logging.getLogger(__name__)

COMPLETION_PHRASES = ("task complete", "finished")


def format_elements(elements, max_text=80):
    """
    Render inspected elements as one line each for the prompt.
    Accepts ``ElementSummary`` objects or their wire dicts.
    """
    if not elements:
        return []
    lines = []
    for element in elements:
        if hasattr(element, "to_payload"):
            element = element.to_payload()
        if not isinstance(element, dict):
            logger.warning(f"Skipping invalid element: {element!r}")
            continue
        kind = element.get("type", "")
        if kind == "input":
            label = element.get("label") or element.get("placeholder") or ""
            subtype = element.get("inputType") or element.get("tag", "")
            lines.append(f'[input:{subtype}] "{label}" -> {element.get("selector", "")}')
        elif kind == "link":
            text = (element.get("text") or "")[:max_text]
            lines.append(f'[link] "{text}" href={element.get("href", "")}')
        else:
            text = (element.get("text") or "")[:max_text]
            lines.append(f'[{kind or "button"}] "{text}" -> {element.get("selector", "")}')
    return lines


def extract_json_block(text):
    """
    Return the first balanced ``{...}`` block in ``text`` or None.

    Braces inside JSON strings are ignored so values such as ``"{{ADDRESS}}"``
    do not end the block early.
    """
    if not text:
        return None
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_decision_payload(text):
    """Parse the model's free-text reply into a dict; raises DecisionParseError."""
    block = extract_json_block(text)
    if block is None:
        raise DecisionParseError("No JSON found in response")
    try:
        payload = json.loads(block)
    except json.JSONDecodeError as e:
        raise DecisionParseError(f"Malformed JSON in response: {e}") from e
    if not isinstance(payload, dict):
        raise DecisionParseError(f"Decision payload must be an object, got {type(payload).__name__}")
    return payload


def mentions_completion(text):
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in COMPLETION_PHRASES)


def _coordinate(tool_input):
    coordinate = tool_input.get("coordinate") or []
    if not isinstance(coordinate, (list, tuple)) or len(coordinate) < 2:
        return None, None
    return coordinate[0], coordinate[1]


def convert_computer_use_action(tool_input, session):
    """
    Translate a computer-use tool call (``{"action": "left_click", ...}``)
    into an action payload of the page dialect.

    ``session`` keeps the last pointer position so a click without
    coordinates lands where the mouse was last moved.
    """
    name = tool_input.get("action")
    if name == "mouse_move":
        x, y = _coordinate(tool_input)
        session.remember_mouse(x or 0, y or 0)
        return {"action": "mouse_move", "x": session.last_mouse_x, "y": session.last_mouse_y}
    if name == "left_click":
        x, y = _coordinate(tool_input)
        return {
            "action": "click_coordinates",
            "x": x if x else session.last_mouse_x,
            "y": y if y else session.last_mouse_y,
        }
    if name == "type":
        return {"action": "type_at_cursor", "text": tool_input.get("text", "")}
    if name == "key":
        return {"action": "key_press", "key": tool_input.get("text") or ""}
    if name == "screenshot":
        # a fresh screenshot is taken every iteration anyway
        return {"action": "noop"}
    raise DecisionParseError(f"Unknown computer action: {name}")


def normalize_decision_payload(payload, session):
    """
    Reduce a parsed reply to ``(action_payload_or_None, explicit_done_or_None, reasoning)``.

    Both the page dialect (``{"action": "click", ...}``) and the computer-use
    tool form (``{"name": "computer", "input": {...}}``) are accepted.
    """
    reasoning = payload.get("reasoning") if isinstance(payload.get("reasoning"), str) else ""
    done = payload.get("done") if isinstance(payload.get("done"), bool) else None

    if payload.get("name") == "computer":
        tool_input = payload.get("input")
        if not isinstance(tool_input, dict):
            raise DecisionParseError("Computer tool call without an input object")
        return convert_computer_use_action(tool_input, session), done, reasoning

    if "action" not in payload or payload.get("action") in (None, ""):
        return None, done, reasoning
    if not isinstance(payload["action"], str):
        raise DecisionParseError(f"Action kind must be a string, got {type(payload['action']).__name__}")
    action = {k: v for k, v in payload.items() if k != "done"}
    return action, done, reasoning
