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
import datetime
import json
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from replayact.agent.actions import Action
from replayact.errors import TraceFrozenError


class TraceStatus(str, Enum):
    LEARNING = "learning"
    READY = "ready"
    ACTIVE = "active"


@dataclass(frozen=True)
class RecordedAction:
    action: Action
    step: int
    timestamp: str

    def to_payload(self):
        payload = self.action.to_payload()
        # recorded traces carry the typed text as ``value``
        if "text" in payload:
            payload["value"] = payload.pop("text")
        payload["step"] = self.step
        payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_payload(cls, payload, step=None):
        data = dict(payload)
        recorded_step = data.pop("step", None)
        timestamp = data.pop("timestamp", "")
        return cls(
            action=Action.from_payload(data),
            step=recorded_step if recorded_step is not None else (step or 0),
            timestamp=timestamp,
        )


@dataclass
class Trace:
    workflow_id: Optional[str] = None
    name: str = ""
    description: str = ""
    website: str = ""
    status: TraceStatus = TraceStatus.LEARNING
    actions: List[RecordedAction] = field(default_factory=list)

    def __len__(self):
        return len(self.actions)

    def __getitem__(self, index):
        return self.actions[index]

    @property
    def frozen(self):
        return self.status != TraceStatus.LEARNING

    def append(self, action, timestamp=None):
        if self.frozen:
            raise TraceFrozenError(f"Workflow {self.workflow_id} is {self.status.value}; its trace can no longer change")
        if timestamp is None:
            timestamp = datetime.datetime.now(datetime.timezone.utc).isoformat()
        recorded = RecordedAction(Action.from_payload(action), len(self.actions) + 1, timestamp)
        self.actions.append(recorded)
        return recorded

    def finalize(self):
        if self.status == TraceStatus.LEARNING:
            self.status = TraceStatus.READY
        return self

    def to_dict(self):
        return {
            "id": self.workflow_id,
            "name": self.name,
            "description": self.description,
            "website": self.website,
            "status": self.status.value,
            "actions": [a.to_payload() for a in self.actions],
        }

    @classmethod
    def from_dict(cls, data):
        actions = [RecordedAction.from_payload(a, step=i + 1) for i, a in enumerate(data.get("actions") or [])]
        actions.sort(key=lambda a: a.step)
        return cls(
            workflow_id=data.get("id") or data.get("workflow_id"),
            name=data.get("name", ""),
            description=data.get("description", ""),
            website=data.get("website", ""),
            status=TraceStatus(data.get("status", TraceStatus.READY.value)),
            actions=actions,
        )

    def save(self, path):
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path):
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))
