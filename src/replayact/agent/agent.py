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
import asyncio
import logging
import os
from datetime import datetime

import backoff

from replayact.agent.config import load_agent_config
from replayact.agent.decision import (
    DecisionContext, ReasoningDecisionSource, RemoteTraceDecisionSource, TraceDecisionSource,
)
from replayact.agent.executor import ActionExecutor
from replayact.agent.intent import HELP_MESSAGE, is_just_a_question
from replayact.agent.predictor import LLMReasoningService
from replayact.agent.reporting import StatusReporter, _compress_text, save_results
from replayact.agent.state import AgentRun, ReasoningSession, RunResult, RunStatus
from replayact.agent.substitution import Listing
from replayact.agent.trace import TraceStatus
from replayact.backend.client import BackendClient, BackendReasoningService
from replayact.backend.store import BackendWorkflowStore, FileWorkflowStore
from replayact.browser.bridge import PageBridge, is_restricted_url
from replayact.browser.dom import PageInspector
from replayact.browser.helper import (
    page_on_close_handler, page_on_open_handler, setup_agent_logger, start_agent_browser, stop_agent_browser,
)
from replayact.errors import (
    AgentAlreadyRunningError, BridgeError, CaptureError, DecisionParseError, DecisionSourceExhaustedError,
    DecisionTransportError, PageContextError,
)
from replayact.llm.engine import engine_factory
from replayact.utils.image import PerceptionCapture


class BrowserAgent:
    """
    Perceive / decide / act loop for one browser tab.

    The same loop drives learning (a reasoning model picks each action and the
    executed actions are recorded into a trace) and replay (the recorded trace
    is played back against one listing). Only one run may be active at a time.
    """

    def __init__(self,
                 config_path=None,
                 config=None,
                 run_id=None,
                 bridge=None,
                 store=None,
                 reasoning_service=None,
                 status_sink=None,
                 logger=None,
                 create_timestamp_dir=True,
                 **config_overrides
                 ):
        self.config = load_agent_config(config_path=config_path, config=config, **config_overrides)
        if self.config is None:
            raise ValueError(f"Could not load configuration from {config_path}")

        self.run_id = run_id or datetime.now().strftime("run_%Y%m%d_%H%M%S")
        base_dir = self.config["basic"]["save_file_dir"]
        if create_timestamp_dir:
            base_dir = os.path.join(base_dir, datetime.now().strftime("%Y%m%d_%H%M%S"))
        self.main_path = os.path.join(base_dir, self.run_id)

        if logger is None:
            logger = setup_agent_logger(self.run_id, self.main_path)
        self.logger = logger

        agent_config = self.config["agent"]
        self.session_control = {}
        self.playwright = None
        self.is_stopping = False
        self._page = None
        self.bridge = bridge or PageBridge(None, timeout=agent_config["bridge_timeout"])
        self.executor = ActionExecutor(self.bridge)
        self.inspector = PageInspector(self.bridge)
        screenshot_dir = self.main_path if self.config["basic"].get("save_screenshots") else None
        self.capture = PerceptionCapture(self.bridge, save_dir=screenshot_dir)

        self.status = StatusReporter(sink=status_sink, logger=self.logger)
        self.state = AgentRun(history_size=agent_config["history_size"])
        self._store = store
        self._reasoning_service = reasoning_service
        self._backend_client = None
        self.last_trace = None

    # ---- browser plumbing ----

    @property
    def page(self):
        return self._page

    @page.setter
    def page(self, value):
        self._page = value
        if isinstance(self.bridge, PageBridge):
            self.bridge.page = value

    async def page_on_open_handler(self, page):
        await page_on_open_handler(self, page)

    async def page_on_close_handler(self, page):
        await page_on_close_handler(self, page)

    async def start(self, website=None, headless=None):
        await start_agent_browser(self, website=website or self.config["basic"].get("default_website"), headless=headless)

    async def shutdown(self):
        await stop_agent_browser(self)
        if self._backend_client is not None:
            await self._backend_client.aclose()
            self._backend_client = None

    # ---- collaborators ----

    @property
    def backend_client(self):
        backend = self.config["backend"]
        if self._backend_client is None and backend.get("url"):
            self._backend_client = BackendClient(
                backend["url"], auth_token=backend.get("auth_token"), timeout=backend.get("timeout", 30.0),
            )
        return self._backend_client

    @property
    def store(self):
        if self._store is None:
            if self.backend_client is not None:
                self._store = BackendWorkflowStore(self.backend_client)
            else:
                self._store = FileWorkflowStore(self.config["basic"]["save_file_dir"])
        return self._store

    def reasoning_service(self):
        if self._reasoning_service is None:
            if self.config["agent"].get("reasoning") == "backend":
                if self.backend_client is None:
                    raise ValueError("reasoning = 'backend' needs [backend] url")
                self._reasoning_service = BackendReasoningService(self.backend_client)
            else:
                model_config = self.config["model"]
                engine = engine_factory(
                    api_key=self.config["api_keys"].get("openrouter_api_key") or None,
                    model=model_config["name"],
                    temperature=model_config["temperature"],
                    rate_limit=model_config["rate_limit"],
                    request_timeout_s=model_config["request_timeout_s"],
                )
                self._reasoning_service = LLMReasoningService(engine, temperature=model_config["temperature"])
        return self._reasoning_service

    # ---- status ----

    async def _update(self, current_action, progress=""):
        await self.status.update(current_action, progress, running=True)
        await self.bridge.notify({"type": "update_overlay", "status": current_action, "progress": progress})

    async def _say(self, content, message_type="info"):
        await self.status.message(content, message_type)
        await self.bridge.notify({"type": "add_overlay_message", "message": content, "messageType": message_type})

    # ---- run ----

    def stop(self):
        """Ask the current run to stop; it is noticed at the top of the next iteration."""
        if self.state.running:
            self.logger.info("🛑 Stop requested")
            self.state.stop_requested = True

    async def run(self, goal, source, *, trace=None, check_question=True):
        """
        Drive ``source`` until it reports done, the iteration cap is hit, the
        run is stopped or an unrecoverable error occurs.

        ``trace`` enables recording: a learning ``Trace``, or an async callable
        taking the page URL and returning one (it is called once the page
        context has been checked).
        """
        if self.state.running:
            raise AgentAlreadyRunningError()
        if check_question and is_just_a_question(goal):
            await self.status.message(HELP_MESSAGE)
            return RunResult(status=RunStatus.IDLE, exit_by="question", message=HELP_MESSAGE)

        session = None
        if source.needs_perception:
            session = ReasoningSession(max_turns=self.config["agent"]["session_turns"])
        self.state.start(goal, tab_handle=self.bridge.page, session=session)

        result = None
        try:
            result = await self._run_loop(goal, source, trace)
        except Exception as e:
            self.logger.exception(f"Run aborted by unexpected error: {e}")
            result = self._result(RunStatus.FAILED, "error", f"{type(e).__name__}: {e}")
        finally:
            if result is None:
                result = self._result(RunStatus.STOPPED, "cancelled", "Run cancelled")
            await self._teardown(result)
        return result

    def _result(self, status, exit_by, message):
        return RunResult(
            status=status,
            exit_by=exit_by,
            message=message,
            iterations=self.state.iteration_count,
            steps_completed=self.state.step_cursor,
            executed_actions=list(self.state.executed_actions),
            unresolved_placeholders=self.state.unresolved_placeholders,
        )

    async def _check_page_context(self):
        if not self.bridge.available:
            raise PageContextError("No active tab found")
        if is_restricted_url(self.bridge.url):
            raise PageContextError(
                "Cannot automate on browser internal pages. Please navigate to a regular website (http:// or https://)"
            )
        try:
            return await self.bridge.page_info()
        except BridgeError as e:
            raise PageContextError(f"Cannot reach the page: {e}") from e

    async def _perceive(self, source):
        info = await self.bridge.page_info()
        snapshot, elements = None, []
        if source.needs_perception:
            snapshot = await self.capture.capture()
            elements = await self.inspector.inspect()
        return info, snapshot, elements

    async def _decide(self, source, context):
        agent_config = self.config["agent"]
        max_tries = agent_config["decision_max_tries"]

        async def _on_backoff(details):
            self.logger.warning(
                f"⏳ Decision attempt {details['tries']} failed: {details['exception']}; "
                f"retrying in {details['wait']:.1f}s"
            )
            await self._update("API error, retrying...", f"Attempt {details['tries']}/{max_tries}")

        decide = backoff.on_exception(
            backoff.expo,
            DecisionTransportError,
            max_tries=max_tries,
            factor=agent_config["decision_backoff_factor"],
            jitter=None,
            on_backoff=_on_backoff,
            logger=None,
        )(source.decide)
        try:
            return await decide(context)
        except DecisionTransportError as e:
            raise DecisionSourceExhaustedError(max_tries, e) from e

    async def _record(self, trace, action):
        try:
            await self.store.record(trace, action)
        except Exception as e:
            self.logger.warning(f"Failed to record action {action.describe()}: {e}")

    async def _pause(self):
        delay = self.config["agent"]["inter_action_delay"]
        if delay > 0:
            await asyncio.sleep(delay)

    async def _run_loop(self, goal, source, trace):
        agent_config = self.config["agent"]
        max_iterations = agent_config["max_iterations"]
        max_failures = agent_config["max_continuous_failures"]
        state = self.state

        try:
            info = await self._check_page_context()
        except PageContextError as e:
            return self._result(RunStatus.FAILED, "page_context", str(e))
        state.tab_handle = self.bridge.page

        if callable(trace):
            await self._update("Creating workflow...", "Setting up AI learning mode")
            try:
                trace = await trace(info.get("url") or self.bridge.url)
            except Exception as e:
                return self._result(RunStatus.FAILED, "workflow_error", f"Failed to create workflow: {e}")
            await self._say(f"📝 Created workflow: \"{trace.name}\"")
        if trace is not None:
            self.last_trace = trace
            state.workflow_id = trace.workflow_id

        await self.bridge.notify({"type": "clear_error_logs"})
        await self.bridge.notify({"type": "show_overlay"})
        await self._say(f"🚀 Starting: {goal}")

        iteration = 0
        while iteration < max_iterations:
            if state.stop_requested:
                return self._result(RunStatus.STOPPED, "stopped", "Stopped by user")
            iteration += 1
            state.iteration_count = iteration
            progress = f"Iteration {iteration}/{max_iterations}"

            await self._update("Analyzing page...", progress)
            try:
                info, snapshot, elements = await self._perceive(source)
            except (BridgeError, CaptureError) as e:
                if not self.bridge.available:
                    return self._result(RunStatus.FAILED, "page_context", f"Lost the page: {e}")
                await self._say(f"⚠️ Could not read the page: {e}. Retrying...", "error")
                state.record("perceive", None, f"failed: {e}")
                iteration -= 1
                state.consecutive_failures += 1
                if state.consecutive_failures >= max_failures:
                    return self._result(RunStatus.FAILED, "max_failures", f"{max_failures} consecutive failures, last: {e}")
                await self._pause()
                continue

            context = DecisionContext(
                goal=goal,
                snapshot=snapshot,
                elements=elements,
                history=list(state.action_history),
                iteration=iteration,
                step_cursor=state.step_cursor,
                current_url=info.get("url", ""),
                page_title=info.get("title", ""),
                session=state.session,
            )
            await self._update("Deciding next action...", progress)
            try:
                decision = await self._decide(source, context)
            except DecisionSourceExhaustedError as e:
                self.logger.error(f"❌ {e}")
                return self._result(RunStatus.FAILED, "decision_error", str(e))
            except DecisionParseError as e:
                await self._say(f"⚠️ Could not understand the decision: {e}", "error")
                state.record("decide", None, f"failed: {e}")
                state.consecutive_failures += 1
                if state.consecutive_failures >= max_failures:
                    return self._result(RunStatus.FAILED, "max_failures", f"{max_failures} consecutive failures, last: {e}")
                await self._pause()
                continue

            if decision.done:
                message = decision.rationale or "Task complete"
                await self._say(f"✅ {_compress_text(message, 300)}")
                return self._result(RunStatus.COMPLETED, "done", message)

            action = decision.action
            if action is None:
                self.logger.warning("⚠️ No action returned and not done; moving on")
                await self._pause()
                continue

            if action.reasoning or decision.rationale:
                await self._say(f"🤔 {_compress_text(action.reasoning or decision.rationale, 300)}")
            await self._update(f"Executing: {action.describe()}", progress)
            outcome = await self.executor.execute(action)

            if outcome.success:
                state.record(action.name, action.selector, "success")
                state.executed_actions.append(action.to_payload())
                state.consecutive_failures = 0
                # counted once per step, not once per attempt
                state.unresolved_placeholders += len(decision.unresolved)
                if trace is not None:
                    await self._record(trace, action)
                state.step_cursor += 1
            else:
                state.record(action.name, action.selector, outcome.history_result)
                await self._say(f"⚠️ Action failed: {outcome.message}. Retrying...", "error")
                # failed attempts do not use up the iteration budget
                iteration -= 1
                state.consecutive_failures += 1
                if state.consecutive_failures >= max_failures:
                    return self._result(
                        RunStatus.FAILED, "max_failures", f"{max_failures} consecutive failures, last: {outcome.message}"
                    )
            await self._pause()

        return self._result(RunStatus.FAILED, "max_iterations", f"Reached maximum iterations ({max_iterations})")

    async def _teardown(self, result):
        if result.status in (RunStatus.FAILED, RunStatus.STOPPED):
            icon = "❌" if result.status == RunStatus.FAILED else "🛑"
            await self._say(f"{icon} {result.message}", "error" if result.status == RunStatus.FAILED else "info")
        self.logger.info(
            f"Run finished: {result.status.value} ({result.exit_by}) after {result.iterations} iterations, "
            f"{result.steps_completed} steps"
        )
        if self.state.session is not None:
            self.state.session.clear()
        self.state.reset()
        await self.status.update("Agent stopped", result.message, running=False)
        await self.bridge.notify({"type": "update_overlay", "status": "Agent stopped", "progress": result.message})

    # ---- call sites ----

    async def learn(self, goal, website=None):
        """Learn ``goal`` with the reasoning source, recording every executed action into a new workflow."""
        source = ReasoningDecisionSource(
            self.reasoning_service(), history_window=self.config["agent"]["history_window"]
        )

        async def open_trace(page_url):
            return await self.store.create(goal, website or page_url)

        self.last_trace = None
        result = await self.run(goal, source, trace=open_trace)
        if result.status == RunStatus.COMPLETED and self.last_trace is not None:
            try:
                await self.store.finalize(self.last_trace)
            except Exception as e:
                self.logger.error(f"Failed to finalize workflow {self.last_trace.workflow_id}: {e}")
        return result

    async def replay(self, trace, listing):
        """Play ``trace`` back once, with ``listing`` substituted into its placeholders."""
        if not isinstance(listing, Listing):
            listing = Listing.from_mapping(listing or {})
        if trace.status not in (TraceStatus.READY, TraceStatus.ACTIVE):
            return RunResult(
                status=RunStatus.FAILED,
                exit_by="not_ready",
                message="Workflow is not ready for deterministic playback",
            )
        goal = f"Replay workflow \"{trace.name or trace.workflow_id}\" for listing {listing.id or listing.address or ''}".strip()
        result = await self.run(goal, TraceDecisionSource(trace, listing), check_question=False)
        await self._report(listing, result)
        return result

    async def replay_remote(self, workflow_id, listing_id):
        """Replay driven by the backend: it serves each substituted step."""
        client = self.backend_client
        if client is None:
            raise ValueError("Remote replay needs [backend] url")
        source = RemoteTraceDecisionSource(client, workflow_id, listing_id)
        result = await self.run(f"Replay workflow {workflow_id} for listing {listing_id}", source, check_question=False)
        await self._report(Listing(id=str(listing_id)), result)
        return result

    async def replay_batch(self, trace, listings, delay=None):
        if delay is None:
            delay = self.config["agent"]["replay_delay"]
        results = []
        for index, listing in enumerate(listings):
            if index > 0 and delay > 0:
                await asyncio.sleep(delay)
            self.logger.info(f"🔁 Listing {index + 1}/{len(listings)}")
            results.append(await self.replay(trace, listing))
        succeeded = sum(1 for r in results if r.success)
        self.logger.info(f"Batch finished: {succeeded}/{len(results)} listings succeeded")
        return results

    async def _report(self, listing, result):
        try:
            await self.store.report(listing, result)
        except Exception as e:
            self.logger.warning(f"Failed to report result for listing {listing.id}: {e}")

    def save(self, result, extra=None):
        os.makedirs(self.main_path, exist_ok=True)
        return save_results(self.main_path, self.run_id, result, self.config, self.logger, extra=extra)
