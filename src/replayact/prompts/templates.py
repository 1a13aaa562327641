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
from .format import format_elements


##### Prompt builders for the reasoning decision source

def build_action_schema() -> str:
    return """
<actions>
{"action": "click", "selector": "CSS selector", "x": "optional offset inside the element", "y": "optional offset"}
{"action": "click_text", "text": "visible text of a link or button"}
{"action": "type", "selector": "CSS selector", "value": "text or {{FIELD_NAME}} placeholder", "field_label": "human-readable field name"}
{"action": "scroll", "x": 0, "y": 600}
{"action": "navigate", "url": "https://..."}
{"action": "upload", "selector": "CSS selector of a file input"}
{"action": "wait", "duration": 1000}
</actions>

Every reply is ONE JSON object:
{"action": "...", ..., "reasoning": "why this action", "done": false}

Set "done": true (and omit the action) once the goal is achieved."""


def build_system_prompt() -> str:
    system_lines = [
        "You are a browser automation agent in LEARNING MODE.",
        "One action per turn. Prefer selectors from the element list over guessing.",
        "Close or accept blocking modals, overlays and cookie banners first.",
        "Do not repeat an action unless the page visibly changed.",
        "Use placeholder variables like {{ADDRESS}}, {{PRICE}}, {{BEDROOMS}} for any data that will change per listing.",
        "When the goal is achieved, reply with done: true.",
    ]
    return "\n".join(system_lines) + "\n" + build_action_schema()


def format_history(history) -> str:
    lines = []
    for i, entry in enumerate(history, start=1):
        if hasattr(entry, "to_payload"):
            entry = entry.to_payload()
        target = f" {entry['selector']}" if entry.get("selector") else ""
        lines.append(f"{i}. {entry.get('action')}{target} -> {entry.get('result')}")
    return "\n".join(lines)


def build_decision_prompt(goal: str, current_url: str, elements, history, iteration: int) -> tuple:
    element_lines = format_elements(elements)
    user_lines = [
        "Goal:",
        goal,
        "Current page:",
        current_url or "unknown",
        f"Iteration: {iteration}",
        "Available interactive elements:",
        "\n".join(element_lines) if element_lines else "No interactive elements found.",
        "Previous actions:",
        format_history(history) if history else "No previous actions yet.",
    ]
    return build_system_prompt(), "\n".join(user_lines)
