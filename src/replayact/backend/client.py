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
HTTP client for the workflow/listing backend.

Every endpoint answers ``{"success": bool, "data": ..., "error": ...}``;
``{"success": false}`` and transport problems both raise ``BackendError``.
"""
import logging
import re

import httpx

from replayact.errors import BackendError

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URL = "http://localhost:3000"

_NAME_PREFIXES = (
    re.compile(r"create\s*(a\s*)?workflow\s*(to|for)?", re.IGNORECASE),
    re.compile(r"automate\s*", re.IGNORECASE),
    re.compile(r"learn\s*how\s*to\s*", re.IGNORECASE),
)


def derive_workflow_name(goal, max_length=50):
    """Short human-readable workflow name from a free-text goal."""
    name = goal
    for pattern in _NAME_PREFIXES:
        name = pattern.sub("", name, count=1)
    name = name.strip()
    if len(name) < 5:
        name = goal.strip()
    name = name[:1].upper() + name[1:]
    if len(name) > max_length:
        name = name[:max_length] + "..."
    return name


class BackendClient:
    def __init__(self, base_url=DEFAULT_BACKEND_URL, auth_token=None, timeout=30.0, transport=None):
        headers = {"Content-Type": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _call(self, method, path, payload=None):
        try:
            resp = await self._client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {type(e).__name__}: {e}") from e
        try:
            body = resp.json()
        except ValueError:
            raise BackendError(f"{method} {path} returned {resp.status_code}: {resp.text[:200]}", resp.status_code)
        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            raise BackendError(error or f"{method} {path} returned {resp.status_code}", resp.status_code)
        return body.get("data") or {}

    async def create_workflow(self, name, description, website):
        data = await self._call("POST", "/api/workflows", {"name": name, "description": description, "website": website})
        return data.get("workflow") or {}

    async def get_workflow(self, workflow_id):
        data = await self._call("GET", f"/api/workflows/{workflow_id}")
        return data.get("workflow") or {}

    async def finalize_workflow(self, workflow_id):
        data = await self._call("POST", f"/api/workflows/{workflow_id}/finalize")
        return data.get("workflow") or {}

    async def record_action(self, workflow_id, action):
        return await self._call("POST", "/api/extension/record-action", {"workflowId": workflow_id, "action": action})

    async def get_next_action(self, workflow_id, listing_id, current_step):
        return await self._call(
            "POST",
            "/api/extension/get-next-action",
            {"workflowId": workflow_id, "listingId": listing_id, "currentStep": current_step},
        )

    async def ai_decision(self, payload):
        return await self._call("POST", "/api/extension/ai-decision", payload)

    async def report_result(self, listing_id, success, error=None):
        return await self._call(
            "POST",
            "/api/extension/report-result",
            {"listingId": listing_id, "success": success, "error": error},
        )


class BackendReasoningService:
    """Reasoning through the backend's ``ai-decision`` endpoint."""

    def __init__(self, client):
        self.client = client

    async def request(self, payload, session=None):
        try:
            data = await self.client.ai_decision(payload)
        except BackendError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "data": data}
