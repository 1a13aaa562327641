# -*- coding: utf-8 -*-
import os
import json
import inspect
import logging
from collections import deque
from replayact.browser.helper import saveconfig

module_logger = logging.getLogger(__name__)

MAX_MESSAGES = 100


def _compress_text(text: str, max_length: int) -> str:
    """Compress text by truncating and adding ellipsis if needed."""
    if not text or len(text) <= max_length:
        return text
    return text[:max_length-3] + "..."


class StatusReporter:
    """
    Status/progress channel towards whoever is watching the run.

    ``sink`` receives ``{"type": "status_update", "currentAction", "progress",
    "running"}`` and ``{"type": "agent_message", "content"}`` dicts; it may be
    sync or async. A missing or failing listener never affects the run.
    """

    def __init__(self, sink=None, logger=None, max_messages=MAX_MESSAGES):
        self.sink = sink
        self.logger = logger or module_logger
        self.last_status = None
        self.messages = deque(maxlen=max_messages)

    async def _deliver(self, event):
        if self.sink is None:
            return
        try:
            result = self.sink(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            module_logger.debug(f"Status listener dropped {event.get('type')}: {e}")

    async def update(self, current_action, progress="", running=True):
        self.last_status = {"currentAction": current_action, "progress": progress, "running": running}
        self.logger.info(f"📍 {current_action}" + (f" | {progress}" if progress else ""))
        await self._deliver({"type": "status_update", **self.last_status})

    async def message(self, content, message_type="info"):
        self.messages.append(content)
        if message_type == "error":
            self.logger.warning(f"💬 {content}")
        else:
            self.logger.info(f"💬 {content}")
        await self._deliver({"type": "agent_message", "content": content, "messageType": message_type})


def save_results(main_path, run_id, result, config, logger, extra=None):
    """Write ``result.json`` and ``config.toml`` for one run into ``main_path``."""
    final_json = {"run_id": run_id, **result.to_dict(), **(extra or {})}
    try:
        with open(os.path.join(main_path, 'result.json'), 'w', encoding='utf-8') as file:
            json.dump(final_json, file, indent=4, default=str, ensure_ascii=False)
        logger.info("Successfully saved result.json")
    except OSError as e:
        logger.error(f"Failed to save result.json: {e}")

    try:
        saveconfig(config, os.path.join(main_path, 'config.toml'))
        logger.info("Successfully saved config.toml")
    except OSError as e:
        logger.error(f"Failed to save config.toml: {e}")
    return final_json
