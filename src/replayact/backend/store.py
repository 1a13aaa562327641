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
"""Where learned traces live: the backend, or JSON files on disk."""
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod

from replayact.agent.actions import Action
from replayact.agent.trace import RecordedAction, Trace, TraceStatus
from replayact.backend.client import derive_workflow_name
from replayact.errors import TraceFrozenError

logger = logging.getLogger(__name__)


class WorkflowStore(ABC):
    @abstractmethod
    async def create(self, goal, website):
        """Open a new trace in learning status."""

    @abstractmethod
    async def record(self, trace, action):
        """Append one successfully executed action."""

    @abstractmethod
    async def finalize(self, trace):
        """Close the trace for recording; it becomes replayable."""

    @abstractmethod
    async def load(self, workflow_id):
        """Return the trace stored under ``workflow_id``."""

    async def report(self, listing, result):
        """Outcome of one replay. Stores without a listing ledger ignore it."""


class BackendWorkflowStore(WorkflowStore):
    def __init__(self, client):
        self.client = client

    async def create(self, goal, website):
        name = derive_workflow_name(goal)
        workflow = await self.client.create_workflow(name, goal, website)
        return Trace(workflow_id=workflow.get("id"), name=name, description=goal, website=website)

    async def record(self, trace, action):
        if trace.frozen:
            raise TraceFrozenError(f"Workflow {trace.workflow_id} is {trace.status.value}; its trace can no longer change")
        # the backend stamps step and timestamp itself
        payload = RecordedAction(Action.from_payload(action), len(trace) + 1, "").to_payload()
        payload.pop("step", None)
        payload.pop("timestamp", None)
        await self.client.record_action(trace.workflow_id, payload)
        # local copy only grows once the backend has the step
        return trace.append(action)

    async def finalize(self, trace):
        trace.finalize()
        await self.client.finalize_workflow(trace.workflow_id)
        return trace

    async def load(self, workflow_id):
        workflow = await self.client.get_workflow(workflow_id)
        return Trace.from_dict({
            "id": workflow.get("id", workflow_id),
            "name": workflow.get("name", ""),
            "description": workflow.get("description", ""),
            "website": workflow.get("website", ""),
            "status": workflow.get("status", TraceStatus.READY.value),
            "actions": workflow.get("recordedActions") or [],
        })

    async def report(self, listing, result):
        if listing is None or listing.id is None:
            return
        await self.client.report_result(listing.id, result.success, None if result.success else result.message)


class FileWorkflowStore(WorkflowStore):
    """One JSON file per workflow under ``<root>/workflows``; replay reports go to ``reports.jsonl``."""

    def __init__(self, root):
        self.root = os.path.join(root, "workflows")
        os.makedirs(self.root, exist_ok=True)

    def path_for(self, workflow_id):
        return os.path.join(self.root, f"{workflow_id}.json")

    async def create(self, goal, website):
        trace = Trace(
            workflow_id=uuid.uuid4().hex[:12],
            name=derive_workflow_name(goal),
            description=goal,
            website=website,
        )
        trace.save(self.path_for(trace.workflow_id))
        return trace

    async def record(self, trace, action):
        recorded = trace.append(action)
        trace.save(self.path_for(trace.workflow_id))
        return recorded

    async def finalize(self, trace):
        trace.finalize()
        trace.save(self.path_for(trace.workflow_id))
        logger.info(f"Workflow {trace.workflow_id} saved with {len(trace)} steps: {self.path_for(trace.workflow_id)}")
        return trace

    async def load(self, workflow_id):
        return Trace.load(self.path_for(workflow_id))

    async def report(self, listing, result):
        entry = {"listing_id": getattr(listing, "id", None), **result.to_dict()}
        with open(os.path.join(self.root, "reports.jsonl"), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
