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
Reasoning service backed by a vision LLM through litellm.

It answers the same envelope the backend's ``ai-decision`` endpoint does,
``{"success": true, "data": {"response": ..., "action": ..., "done": ...}}``,
so the decision source does not care which one it is talking to.
"""
import logging

from replayact.agent.state import ReasoningSession
from replayact.prompts.format import normalize_decision_payload, parse_decision_payload
from replayact.prompts.templates import build_decision_prompt
from replayact.utils.image import fit_data_url

logger = logging.getLogger(__name__)


class LLMReasoningService:
    def __init__(self, engine, temperature=None, max_new_tokens=2048):
        self.engine = engine
        self.temperature = temperature
        self.max_new_tokens = max_new_tokens

    async def request(self, payload, session=None):
        if session is None:
            session = ReasoningSession()
        system_prompt, user_prompt = build_decision_prompt(
            goal=payload["goal"],
            current_url=payload.get("currentUrl", ""),
            elements=payload.get("availableElements") or [],
            history=payload.get("actionHistory") or [],
            iteration=payload.get("iteration", 0),
        )
        screenshot = payload.get("screenshot")
        if screenshot:
            screenshot = fit_data_url(screenshot)
        history = session.messages
        messages = self.engine.build_messages(system_prompt, user_prompt, image_url=screenshot, history=history)

        try:
            output_text = await self.engine.generate(
                messages,
                max_new_tokens=self.max_new_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.warning(f"LLM call failed: {type(e).__name__}: {e}")
            return {"success": False, "error": f"{type(e).__name__}: {e}"}

        logger.debug(f"LLM output: {output_text}")
        parsed = parse_decision_payload(output_text)
        action, done, reasoning = normalize_decision_payload(parsed, session)

        # screenshots are not replayed into later turns
        session.add_turn(
            {"role": "user", "content": [{"type": "text", "text": user_prompt}]},
            {"role": "assistant", "content": [{"type": "text", "text": output_text}]},
        )

        data = {"response": reasoning or output_text, "action": action}
        if done is not None:
            data["done"] = done
        return {"success": True, "data": data}


