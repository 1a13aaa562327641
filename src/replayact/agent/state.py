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
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

HISTORY_SIZE = 10


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass
class HistoryEntry:
    action: str
    selector: Optional[str]
    result: str

    def to_payload(self):
        payload = {"action": self.action, "result": self.result}
        if self.selector:
            payload["selector"] = self.selector
        return payload


class ReasoningSession:
    """
    Conversation state for one reasoning-driven run.

    Holds the multi-turn messages sent to the model and the last pointer
    position, which the computer-use dialect needs to resolve a click issued
    without coordinates. Created with the run and dropped when it ends.
    """

    def __init__(self, max_turns=6):
        self.max_turns = max_turns
        self.messages: List[Dict[str, Any]] = []
        self.last_mouse_x = 0
        self.last_mouse_y = 0

    def add_turn(self, user_message, assistant_message):
        self.messages.append(user_message)
        self.messages.append(assistant_message)
        # keep whole user/assistant pairs
        overflow = len(self.messages) - 2 * self.max_turns
        if overflow > 0:
            del self.messages[:overflow]

    def remember_mouse(self, x, y):
        self.last_mouse_x = x
        self.last_mouse_y = y

    def clear(self):
        self.messages.clear()
        self.last_mouse_x = 0
        self.last_mouse_y = 0


@dataclass
class RunResult:
    status: RunStatus
    exit_by: str = ""
    message: str = ""
    iterations: int = 0
    steps_completed: int = 0
    executed_actions: List[Dict[str, Any]] = field(default_factory=list)
    unresolved_placeholders: int = 0

    @property
    def success(self):
        return self.status == RunStatus.COMPLETED

    def to_dict(self):
        return {
            "status": self.status.value,
            "exit_by": self.exit_by,
            "message": self.message,
            "iterations": self.iterations,
            "steps_completed": self.steps_completed,
            "executed_actions": list(self.executed_actions),
            "unresolved_placeholders": self.unresolved_placeholders,
        }


class AgentRun:
    """In-memory state of the current run. Only the orchestrator touches it."""

    def __init__(self, history_size=HISTORY_SIZE):
        self.history_size = history_size
        self.reset()

    def reset(self):
        self.running = False
        self.status = RunStatus.IDLE
        self.goal: Optional[str] = None
        self.tab_handle = None
        self.iteration_count = 0
        self.action_history: Deque[HistoryEntry] = deque(maxlen=self.history_size)
        self.step_cursor = 0
        self.session: Optional[ReasoningSession] = None
        self.workflow_id = None
        self.consecutive_failures = 0
        self.stop_requested = False
        self.executed_actions: List[Dict[str, Any]] = []
        self.unresolved_placeholders = 0

    def start(self, goal, tab_handle=None, session=None, workflow_id=None):
        self.reset()
        self.running = True
        self.status = RunStatus.RUNNING
        self.goal = goal
        self.tab_handle = tab_handle
        self.session = session
        self.workflow_id = workflow_id

    def record(self, action_name, selector, result):
        self.action_history.append(HistoryEntry(action_name, selector, result))
