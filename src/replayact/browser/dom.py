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
import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

MAX_ELEMENTS_PER_KIND = 30


@dataclass(frozen=True)
class ElementSummary:
    """One interactive element as seen by the inspector: an input, a button or a link."""

    type: str
    tag: str = ""
    selector: str = ""
    input_type: str = ""
    label: str = ""
    placeholder: str = ""
    text: str = ""
    href: str = ""

    @classmethod
    def from_payload(cls, payload):
        return cls(
            type=payload.get("type", ""),
            tag=payload.get("tag", ""),
            selector=payload.get("selector", ""),
            input_type=payload.get("inputType", ""),
            label=payload.get("label", ""),
            placeholder=payload.get("placeholder", ""),
            text=payload.get("text", ""),
            href=payload.get("href", ""),
        )

    def to_payload(self):
        if self.type == "input":
            return {
                "type": "input",
                "tag": self.tag,
                "inputType": self.input_type,
                "label": self.label,
                "placeholder": self.placeholder,
                "selector": self.selector,
            }
        if self.type == "link":
            return {"type": "link", "text": self.text, "href": self.href, "selector": self.selector}
        return {"type": self.type, "text": self.text, "selector": self.selector}


class PageInspector:
    """Read-only snapshot of the interactive elements currently on the page."""

    def __init__(self, bridge, max_per_kind=MAX_ELEMENTS_PER_KIND):
        self.bridge = bridge
        self.max_per_kind = max_per_kind

    async def inspect(self) -> List[ElementSummary]:
        reply = await self.bridge.request({"type": "inspect_page"})
        raw = reply.get("data") or []
        counts = {}
        elements = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            summary = ElementSummary.from_payload(item)
            counts[summary.type] = counts.get(summary.type, 0) + 1
            if counts[summary.type] > self.max_per_kind:
                continue
            elements.append(summary)
        if len(elements) < len(raw):
            logger.debug(f"Inspector kept {len(elements)} of {len(raw)} elements")
        return elements
